"""
Tests for the process-wide engine holder: memoization, health probe,
shutdown and session handling.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from blossom import db
from blossom.config import ConfigError
from blossom.repository import ShopRepository


# --- get_engine ---


def test_get_engine_returns_same_instance(process_database):
    first = db.get_engine()
    second = db.get_engine()

    assert first is second


def test_get_engine_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(ConfigError) as exc_info:
        db.get_engine()

    assert "DATABASE_URL" in str(exc_info.value)


def test_session_factory_is_memoized(process_database):
    assert db.get_session_factory() is db.get_session_factory()


# --- check_database_healthy ---


def test_healthy_database(process_database):
    assert db.check_database_healthy() is True


def test_unreachable_database_is_unhealthy(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'missing' / 'dir' / 'shops.db'}")

    assert db.check_database_healthy() is False


def test_missing_database_url_is_unhealthy(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    assert db.check_database_healthy() is False


def test_driver_error_is_swallowed():
    engine = MagicMock()
    engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

    with patch("blossom.db.get_engine", return_value=engine):
        assert db.check_database_healthy() is False


# --- dispose_engine / engine_lifespan ---


def test_dispose_without_engine_is_noop():
    db.dispose_engine()
    db.dispose_engine()


def test_dispose_releases_engine(process_database):
    engine = db.get_engine()

    db.dispose_engine()

    assert db._engine is None
    assert db.get_engine() is not engine


def test_engine_lifespan_disposes_on_exit(process_database):
    with db.engine_lifespan() as engine:
        assert engine is db.get_engine()

    assert db._engine is None


def test_engine_lifespan_disposes_on_error(process_database):
    with pytest.raises(RuntimeError):
        with db.engine_lifespan():
            raise RuntimeError("boom")

    assert db._engine is None


# --- get_db_session ---


def test_db_session_commits(process_database, cipher):
    with db.get_db_session() as session:
        ShopRepository(session, cipher).upsert_by_domain("commit.myshopify.com", {"name": "Commit"})

    with db.get_db_session() as session:
        shop = ShopRepository(session, cipher).find_by_domain("commit.myshopify.com")

    assert shop is not None
    assert shop["name"] == "Commit"


def test_db_session_rolls_back_on_error(process_database, cipher):
    with pytest.raises(RuntimeError):
        with db.get_db_session() as session:
            ShopRepository(session, cipher).upsert_by_domain("rollback.myshopify.com", {})
            raise RuntimeError("boom")

    with db.get_db_session() as session:
        assert ShopRepository(session, cipher).find_by_domain("rollback.myshopify.com") is None


# --- get_shops_table ---


def test_shops_table_reflected(process_database):
    table = db.get_shops_table()

    assert {"id", "domain", "name", "locale", "plan", "token_offline", "created_at", "updated_at"} <= set(
        table.c.keys()
    )