"""
Invoicerr Backend — Server-Sent Events Tests
==============================================

What we test:
    ✅ The first frame is produced before the disconnect check or any wait
    ✅ Frames repeat until the client disconnects
    ✅ Each frame uses its own session
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.utils.sse import format_sse, sse_frames


def session_factory(session):
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


def fake_request(*disconnected):
    request = MagicMock()
    request.url.path = "/api/quotes/sse"
    request.is_disconnected = AsyncMock(side_effect=list(disconnected))
    return request


class TestSseFrames:

    def test_format(self):
        assert format_sse({"total": 2}) == 'data: {"total": 2}\n\n'

    @pytest.mark.asyncio
    async def test_first_frame_immediate(self, mock_db_session):
        request = fake_request(True)
        snapshot = AsyncMock(return_value={"page_count": 1})
        factory = session_factory(mock_db_session)
        with patch("app.utils.sse.async_session_factory", factory):
            frames = sse_frames(request, snapshot, interval=30)
            first = await frames.__anext__()

            assert json.loads(first.removeprefix("data: ")) == {"page_count": 1}
            request.is_disconnected.assert_not_awaited()
            snapshot.assert_awaited_once_with(mock_db_session)

            with pytest.raises(StopAsyncIteration):
                await frames.__anext__()

    @pytest.mark.asyncio
    async def test_repeats_until_disconnect(self, mock_db_session):
        request = fake_request(False, False, True)
        snapshot = AsyncMock(side_effect=[{"n": 1}, {"n": 2}, {"n": 3}])
        factory = session_factory(mock_db_session)
        with patch("app.utils.sse.async_session_factory", factory):
            frames = [frame async for frame in sse_frames(request, snapshot, interval=0)]

        assert [json.loads(f.removeprefix("data: "))["n"] for f in frames] == [1, 2, 3]
        assert factory.call_count == 3
        assert request.is_disconnected.await_count == 3
