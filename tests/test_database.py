import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import engine_options, get_db


def test_server_databases_ping_before_reuse():
    assert engine_options("postgresql+asyncpg://u:p@db/daylight")["pool_pre_ping"] is True


def test_sqlite_keeps_driver_defaults():
    assert "pool_pre_ping" not in engine_options("sqlite+aiosqlite:///:memory:")


@pytest.mark.asyncio
async def test_failed_request_rolls_back_the_session(monkeypatch):
    rolled_back = []

    async def record_rollback(self):
        rolled_back.append(self)

    monkeypatch.setattr(AsyncSession, "rollback", record_rollback)
    sessions = get_db()
    session = await sessions.__anext__()
    with pytest.raises(RuntimeError):
        await sessions.athrow(RuntimeError("handler failed"))
    assert rolled_back == [session]
