"""Tests for the startup migration switch."""
from __future__ import annotations

import pytest

from snaptalk.services import migrations


@pytest.fixture
def outside_pytest(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    monkeypatch.delenv("AUTO_MIGRATE", raising=False)
    monkeypatch.delenv("DISABLE_AUTO_MIGRATIONS", raising=False)
    return monkeypatch


def test_migrations_skipped_under_pytest():
    assert migrations.should_run_migrations("postgresql://db/snaptalk") is False


def test_migrations_default_to_non_sqlite_urls(outside_pytest):
    assert migrations.should_run_migrations("postgresql://db/snaptalk") is True
    assert migrations.should_run_migrations("sqlite:///./local.db") is False


def test_migration_flags_override_url(outside_pytest):
    outside_pytest.setenv("AUTO_MIGRATE", "yes")
    assert migrations.should_run_migrations("sqlite:///./local.db") is True

    outside_pytest.setenv("DISABLE_AUTO_MIGRATIONS", "1")
    assert migrations.should_run_migrations("postgresql://db/snaptalk") is False


def test_run_migrations_is_noop_when_disabled(outside_pytest):
    outside_pytest.setenv("DISABLE_AUTO_MIGRATIONS", "true")

    assert migrations.run_migrations_if_needed(database_url="postgresql://db/snaptalk") is False
