"""Request-scoped session: commit on success, roll back on error."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from inventory_tracker.db import base


@pytest.fixture
def session(monkeypatch):
    session = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    monkeypatch.setattr(base, "async_session_factory", factory)
    return session


@pytest.mark.asyncio
async def test_commits_after_successful_request(session):
    gen = base.get_db()
    assert await gen.__anext__() is session

    with pytest.raises(StopAsyncIteration):
        await gen.__anext__()

    session.commit.assert_awaited_once()
    session.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_rolls_back_and_reraises_on_error(session):
    gen = base.get_db()
    await gen.__anext__()

    with pytest.raises(RuntimeError):
        await gen.athrow(RuntimeError("boom"))

    session.rollback.assert_awaited_once()
    session.commit.assert_not_awaited()
