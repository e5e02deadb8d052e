"""Tests for database session configuration."""

import os
from unittest.mock import patch

import pytest


def test_pool_size_from_env():
    """Pool size should be configurable via DATABASE_POOL_SIZE."""
    with patch.dict(os.environ, {"DATABASE_POOL_SIZE": "30"}):
        # Re-import to pick up new env
        import importlib
        from lockout.db import session
        importlib.reload(session)

        assert session.pool_size == 30


def test_pool_size_default():
    """Pool size should default to 20."""
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("DATABASE_POOL_SIZE", None)

        import importlib
        from lockout.db import session
        importlib.reload(session)

        assert session.pool_size == 20


def test_max_overflow_from_env():
    """Max overflow should be configurable via DATABASE_MAX_OVERFLOW."""
    with patch.dict(os.environ, {"DATABASE_MAX_OVERFLOW": "50"}):
        import importlib
        from lockout.db import session
        importlib.reload(session)

        assert session.max_overflow == 50


def test_max_overflow_default():
    """Max overflow should default to 40."""
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("DATABASE_MAX_OVERFLOW", None)

        import importlib
        from lockout.db import session
        importlib.reload(session)

        assert session.max_overflow == 40


def test_sqlite_engine_skips_pool_tuning(tmp_path):
    from lockout.db import session

    engine = session.create_engine(f"sqlite+aiosqlite:///{tmp_path / 'lockout.db'}")

    assert engine.dialect.name == "sqlite"


@pytest.mark.asyncio
async def test_session_maker_created_lazily_and_disposed(tmp_path, monkeypatch):
    from lockout.db import session

    monkeypatch.setattr(session.settings, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'lockout.db'}")
    await session.dispose_engine()

    maker = session.get_session_maker()

    assert session.get_session_maker() is maker
    assert session.engine is not None

    await session.dispose_engine()

    assert session.engine is None
    assert session.async_session_maker is None
