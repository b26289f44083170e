from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from runnmate.config import get_settings
from runnmate.db.connection import check_db_health, engine_options


def _session_factory(session: AsyncMock) -> MagicMock:
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False
    return MagicMock(return_value=session)


class TestEngineOptions:
    def test_pool_settings_come_from_config(self) -> None:
        settings = get_settings().model_copy(
            update={"db_pool_size": 3, "db_max_overflow": 1, "db_pool_recycle_seconds": 120}
        )
        options = engine_options(settings)
        assert options["pool_size"] == 3
        assert options["max_overflow"] == 1
        assert options["pool_recycle"] == 120
        assert options["pool_pre_ping"] is True
        assert "connect_args" not in options

    def test_statement_cache_can_be_disabled_for_pooler(self) -> None:
        settings = get_settings().model_copy(update={"db_statement_cache_size": 0})
        assert engine_options(settings)["connect_args"] == {"statement_cache_size": 0}


class TestCheckDbHealth:
    async def test_select_one_is_healthy(self) -> None:
        session = AsyncMock()
        result = MagicMock()
        result.scalar.return_value = 1
        session.execute.return_value = result
        with patch("runnmate.db.connection.get_sessionmaker", return_value=_session_factory(session)):
            assert await check_db_health() is True

    async def test_database_error_is_logged_and_unhealthy(self, caplog: pytest.LogCaptureFixture) -> None:
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
        with (
            patch("runnmate.db.connection.get_sessionmaker", return_value=_session_factory(session)),
            caplog.at_level(logging.ERROR, logger="runnmate.db.connection"),
        ):
            assert await check_db_health() is False
        assert "Database health check failed" in caplog.text

    async def test_unexpected_errors_propagate(self) -> None:
        session = AsyncMock()
        session.execute.side_effect = RuntimeError("bug")
        with (
            patch("runnmate.db.connection.get_sessionmaker", return_value=_session_factory(session)),
            pytest.raises(RuntimeError),
        ):
            await check_db_health()
