"""Integration tests for posts, visibility tiers, likes and comments."""
from __future__ import annotations

from io import BytesIO
from typing import Iterator
from uuid import uuid4

import pytest
from boto3.exceptions import S3UploadFailedError
from fastapi import UploadFile

from snaptalk.services import post_service, storage_service
from snaptalk.services.storage_service import MediaUploadError, StorageConfig, StoredMedia, media_type_for


class FakeStorage:
    """Stands in for object storage; can be told to fail on the n-th upload."""

    def __init__(self) -> None:
        self.uploaded: list[str] = []
        self.released: list[str] = []
        self.fail_on: int | None = None

    async def upload(self, file: UploadFile, *, folder: str) -> StoredMedia:
        if self.fail_on is not None and len(self.uploaded) + 1 == self.fail_on:
            raise MediaUploadError("Error uploading media files")
        key = f"{folder}/{len(self.uploaded)}-{file.filename}"
        self.uploaded.append(key)
        media_type = media_type_for(file.content_type) or "image"
        return StoredMedia(
            url=f"https://cdn.test/{key}",
            key=key,
            media_type=media_type,
            content_type=file.content_type or "",
        )

    def release(self, keys) -> int:
        keys = list(keys)
        self.released.extend(keys)
        return len(keys)


@pytest.fixture
def storage(monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeStorage]:
    fake = FakeStorage()
    monkeypatch.setattr(post_service, "upload_media", fake.upload)
    monkeypatch.setattr(post_service, "release_media", fake.release)
    yield fake


def _create_post(client, content: str = "hello", privacy: str = "friends"):
    response = client.post("/api/posts", data={"content": content, "privacy": privacy})
    assert response.status_code == 201, response.text
    return response.json()["post"]


def _image(name: str = "photo.png", size: int = 16):
    return ("media", (name, BytesIO(b"\x89PNG" + b"0" * size), "image/png"))


def test_create_text_post_defaults_to_friends(authed_client, user_factory):
    alice = user_factory("alice")

    response = authed_client(alice).post("/api/posts", data={"content": "  first post  "})

    assert response.status_code == 201
    post = response.json()["post"]
    assert post["content"] == "first post"
    assert post["privacy"] == "friends"
    assert post["author"]["username"] == "alice"
    assert post["like_count"] == 0


def test_create_post_requires_text_or_media(authed_client, user_factory):
    alice = user_factory("alice")

    response = authed_client(alice).post("/api/posts", data={"content": "   "})

    assert response.status_code == 400
    assert response.json()["message"] == "Post must have content or media"


def test_create_post_rejects_overlong_content(authed_client, user_factory):
    alice = user_factory("alice")

    response = authed_client(alice).post("/api/posts", data={"content": "x" * 2001})

    assert response.status_code == 400


def test_create_post_with_media(authed_client, user_factory, storage):
    alice = user_factory("alice")

    response = authed_client(alice).post(
        "/api/posts",
        data={"content": "holiday", "privacy": "public"},
        files=[_image("a.png"), ("media", ("clip.mp4", BytesIO(b"0000"), "video/mp4"))],
    )

    assert response.status_code == 201, response.text
    media = response.json()["post"]["media"]
    assert [item["media_type"] for item in media] == ["image", "video"]
    assert all(item["url"].startswith("https://cdn.test/posts/") for item in media)
    assert len(storage.uploaded) == 2


def test_create_post_rejects_non_media_files(authed_client, user_factory, storage):
    alice = user_factory("alice")

    response = authed_client(alice).post(
        "/api/posts",
        data={"content": "notes"},
        files=[("media", ("notes.txt", BytesIO(b"plain"), "text/plain"))],
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Please upload only images or videos"
    assert storage.uploaded == []


def test_create_post_rejects_too_many_files(authed_client, user_factory, storage):
    alice = user_factory("alice")

    response = authed_client(alice).post(
        "/api/posts",
        data={"content": "album"},
        files=[_image(f"{index}.png") for index in range(6)],
    )

    assert response.status_code == 400
    assert storage.uploaded == []


def test_partial_upload_failure_releases_stored_media(authed_client, user_factory, storage):
    alice = user_factory("alice")
    storage.fail_on = 3

    response = authed_client(alice).post(
        "/api/posts",
        data={"content": "album"},
        files=[_image("1.png"), _image("2.png"), _image("3.png")],
    )

    assert response.status_code == 400
    assert sorted(storage.released) == sorted(storage.uploaded)
    assert len(storage.released) == 2
    assert authed_client(alice).get("/api/posts/feed").json()["pagination"]["total"] == 0


def test_feed_includes_own_and_friend_posts_only(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    carol = user_factory("carol")
    befriend(alice, bob)

    _create_post(authed_client(alice), "alice private", "private")
    _create_post(authed_client(bob), "bob friends", "friends")
    _create_post(authed_client(bob), "bob private", "private")
    _create_post(authed_client(carol), "carol public", "public")

    feed = authed_client(alice).get("/api/posts/feed").json()

    assert [post["content"] for post in feed["posts"]] == ["bob friends", "alice private"]
    assert feed["pagination"] == {"current": 1, "pages": 1, "total": 2}


def test_feed_pagination(authed_client, user_factory):
    alice = user_factory("alice")
    client = authed_client(alice)
    for index in range(5):
        _create_post(client, f"post {index}")

    page = client.get("/api/posts/feed", params={"page": 2, "limit": 2}).json()

    assert [post["content"] for post in page["posts"]] == ["post 2", "post 1"]
    assert page["pagination"] == {"current": 2, "pages": 3, "total": 5}


def test_user_posts_respect_visibility(authed_client, user_factory, befriend):
    owner = user_factory("owner")
    friend = user_factory("friend")
    stranger = user_factory("stranger")
    befriend(owner, friend)
    for privacy in ("public", "friends", "private"):
        _create_post(authed_client(owner), privacy, privacy)

    def visible_to(viewer) -> set[str]:
        response = authed_client(viewer).get(f"/api/posts/user/{owner.id}")
        assert response.status_code == 200
        return {post["privacy"] for post in response.json()["posts"]}

    assert visible_to(owner) == {"public", "friends", "private"}
    assert visible_to(friend) == {"public", "friends"}
    assert visible_to(stranger) == {"public"}


def test_user_posts_unknown_user(authed_client, user_factory):
    alice = user_factory("alice")

    response = authed_client(alice).get(f"/api/posts/user/{uuid4()}")

    assert response.status_code == 404


def test_like_toggle_is_idempotent_per_user(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    post = _create_post(authed_client(alice), "like me")
    client = authed_client(bob)

    first = client.post(f"/api/posts/{post['id']}/like").json()
    assert first["liked"] is True
    assert first["like_count"] == 1
    assert first["likes"][0]["user"]["username"] == "bob"

    second = client.post(f"/api/posts/{post['id']}/like").json()
    assert second["liked"] is False
    assert second["like_count"] == 0

    third = client.post(f"/api/posts/{post['id']}/like").json()
    assert third["like_count"] == 1

    fetched = client.get(f"/api/posts/{post['id']}").json()["post"]
    assert fetched["viewer_has_liked"] is True


def test_invisible_post_cannot_be_liked_or_commented(authed_client, user_factory):
    alice = user_factory("alice")
    stranger = user_factory("stranger")
    post = _create_post(authed_client(alice), "friends only", "friends")
    client = authed_client(stranger)

    assert client.get(f"/api/posts/{post['id']}").status_code == 404
    assert client.post(f"/api/posts/{post['id']}/like").status_code == 404
    assert client.post(f"/api/posts/{post['id']}/comment", json={"content": "hi"}).status_code == 404


def test_comment_appends_and_counts(authed_client, user_factory, befriend):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    post = _create_post(authed_client(alice), "talk to me")

    first = authed_client(bob).post(f"/api/posts/{post['id']}/comment", json={"content": " nice "})
    second = authed_client(alice).post(f"/api/posts/{post['id']}/comment", json={"content": "thanks"})

    assert first.status_code == 201
    assert first.json()["comment"]["content"] == "nice"
    assert second.json()["comment_count"] == 2

    comments = authed_client(alice).get(f"/api/posts/{post['id']}").json()["post"]["comments"]
    assert [comment["user"]["username"] for comment in comments] == ["bob", "alice"]


def test_comment_validation(authed_client, user_factory):
    alice = user_factory("alice")
    post = _create_post(authed_client(alice), "mine")
    client = authed_client(alice)

    blank = client.post(f"/api/posts/{post['id']}/comment", json={"content": "   "})
    long = client.post(f"/api/posts/{post['id']}/comment", json={"content": "x" * 501})

    assert blank.status_code == 400
    assert blank.json()["errors"][0]["message"] == "Comment content is required"
    assert long.status_code == 400


def test_only_author_can_delete_and_media_is_released(authed_client, user_factory, befriend, storage):
    alice = user_factory("alice")
    bob = user_factory("bob")
    befriend(alice, bob)
    created = authed_client(alice).post("/api/posts", data={"content": "bye"}, files=[_image()])
    post = created.json()["post"]

    forbidden = authed_client(bob).delete(f"/api/posts/{post['id']}")
    assert forbidden.status_code == 403

    deleted = authed_client(alice).delete(f"/api/posts/{post['id']}")
    assert deleted.status_code == 200
    assert storage.released == storage.uploaded
    assert authed_client(alice).get(f"/api/posts/{post['id']}").status_code == 404


def test_register_befriend_post_like_scenario(client):
    def register(username: str) -> tuple[str, dict[str, str]]:
        response = client.post("/api/auth/register", json={"username": username, "password": "password1"})
        assert response.status_code == 201
        payload = response.json()
        return payload["user"]["id"], {"Authorization": f"Bearer {payload['token']}"}

    alice_id, alice = register("alice")
    bob_id, bob = register("bob")

    assert client.post(f"/api/friends/request/{bob_id}", headers=alice).status_code == 201
    assert client.post(f"/api/friends/accept/{alice_id}", headers=bob).status_code == 200

    created = client.post("/api/posts", data={"content": "we are friends now"}, headers=alice)
    assert created.status_code == 201
    post_id = created.json()["post"]["id"]

    feed = client.get("/api/posts/feed", headers=bob).json()
    assert [post["id"] for post in feed["posts"]] == [post_id]

    liked = client.post(f"/api/posts/{post_id}/like", headers=bob).json()
    assert liked["liked"] is True
    assert liked["like_count"] == 1


class FailingS3Client:
    """boto3 client double whose n-th ``upload_fileobj`` call raises."""

    def __init__(self, fail_on: int) -> None:
        self.fail_on = fail_on
        self.uploaded: list[str] = []
        self.deleted: list[str] = []

    def upload_fileobj(self, file_obj, bucket: str, key: str, ExtraArgs=None) -> None:  # noqa: N803
        if len(self.uploaded) + 1 == self.fail_on:
            raise S3UploadFailedError(f"Failed to upload {key} to {bucket}: connection reset")
        self.uploaded.append(key)

    def delete_object(self, *, Bucket: str, Key: str) -> None:  # noqa: N803
        self.deleted.append(Key)


def test_transfer_failure_on_second_file_releases_first(authed_client, user_factory, monkeypatch):
    alice = user_factory("alice")
    s3 = FailingS3Client(fail_on=2)
    config = StorageConfig(
        key="key",
        secret="secret",
        region=None,
        bucket="media",
        endpoint="https://storage.test",
        public_base_url="https://storage.test/media",
    )
    monkeypatch.setattr(storage_service, "load_storage_config", lambda: config)
    monkeypatch.setattr(storage_service, "get_storage_client", lambda: s3)

    response = authed_client(alice).post(
        "/api/posts",
        data={"content": "album"},
        files=[_image("1.png"), _image("2.png")],
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Error uploading media files"
    assert len(s3.uploaded) == 1
    assert s3.deleted == s3.uploaded
    assert authed_client(alice).get("/api/posts/feed").json()["pagination"]["total"] == 0


def test_create_post_with_tagged_users(authed_client, user_factory):
    alice = user_factory("alice")
    bob = user_factory("bob")
    carol = user_factory("carol")

    response = authed_client(alice).post(
        "/api/posts",
        data={"content": "team photo", "tagged_users": [str(carol.id), str(bob.id), str(bob.id)]},
    )

    assert response.status_code == 201, response.text
    tagged = response.json()["post"]["tagged_users"]
    assert [user["username"] for user in tagged] == ["bob", "carol"]

    fetched = authed_client(alice).get("/api/posts/feed").json()["posts"][0]
    assert [user["id"] for user in fetched["tagged_users"]] == [str(bob.id), str(carol.id)]


def test_create_post_rejects_unknown_or_malformed_tags(authed_client, user_factory, storage):
    alice = user_factory("alice")
    client = authed_client(alice)

    unknown = client.post(
        "/api/posts",
        data={"content": "who?", "tagged_users": [str(uuid4())]},
        files=[_image()],
    )
    assert unknown.status_code == 400
    assert unknown.json()["message"] == "Tagged user not found"
    assert storage.uploaded == []

    malformed = client.post("/api/posts", data={"content": "who?", "tagged_users": ["not-a-uuid"]})
    assert malformed.status_code == 400
    assert malformed.json()["errors"][0]["field"].startswith("tagged_users")

    assert client.get("/api/posts/feed").json()["pagination"]["total"] == 0
