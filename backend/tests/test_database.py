"""
VetPintar Backend — Session Dependency Unit Tests
===================================================

What we test:
    ✅ Commit on success, then queued after-commit callbacks run
    ✅ Rollback on error discards queued callbacks
    ✅ A failing callback is logged and does not fail the request
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vetpintar.database import AFTER_COMMIT_KEY, after_commit, get_db_session, run_after_commit


def _factory(session):
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


class TestGetDbSession:

    @pytest.mark.asyncio
    async def test_callbacks_run_after_commit(self, mock_db_session):
        order = []
        mock_db_session.commit.side_effect = lambda: order.append("commit")

        async def publish():
            order.append("publish")

        with patch("vetpintar.database.async_session_factory", _factory(mock_db_session)):
            dependency = get_db_session()
            session = await dependency.__anext__()
            after_commit(session, publish)
            assert order == []

            with pytest.raises(StopAsyncIteration):
                await dependency.__anext__()

        assert order == ["commit", "publish"]
        assert AFTER_COMMIT_KEY not in mock_db_session.info
        mock_db_session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rollback_discards_callbacks(self, mock_db_session):
        publish = AsyncMock()

        with patch("vetpintar.database.async_session_factory", _factory(mock_db_session)):
            dependency = get_db_session()
            session = await dependency.__anext__()
            after_commit(session, publish)

            with pytest.raises(RuntimeError, match="boom"):
                await dependency.athrow(RuntimeError("boom"))

        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()
        publish.assert_not_awaited()
        assert AFTER_COMMIT_KEY not in mock_db_session.info

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_the_rest(self, mock_db_session):
        broken = AsyncMock(side_effect=RuntimeError("socket closed"))
        healthy = AsyncMock()
        after_commit(mock_db_session, broken)
        after_commit(mock_db_session, healthy)

        await run_after_commit(mock_db_session)

        broken.assert_awaited_once()
        healthy.assert_awaited_once()
