"""
Invoicerr Backend — Server-Sent Events Helpers
================================================

What:  Turns a "produce the current state" coroutine into an SSE stream.
Why:   List pages and the dashboard refresh live without client polling.
How:   The first frame is sent immediately, then one frame every
       `settings.sse_interval_seconds` until the client disconnects. Each
       frame opens its own DB session: the request-scoped session is
       closed as soon as the route returns the StreamingResponse.

Frame format:
    data: {"page_count": 2, "quotes": [...]}\n\n
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from starlette.responses import StreamingResponse

from app.config import settings
from app.database import async_session_factory

logger = logging.getLogger(__name__)

SnapshotFn = Callable[[AsyncSession], Awaitable[Any]]


def format_sse(data: Any) -> str:
    return f"data: {json.dumps(jsonable_encoder(data))}\n\n"


async def sse_frames(
    request: Request,
    snapshot: SnapshotFn,
    interval: Optional[float] = None,
) -> AsyncIterator[str]:
    interval = settings.sse_interval_seconds if interval is None else interval
    while True:
        async with async_session_factory() as session:
            data = await snapshot(session)
        yield format_sse(data)

        if await request.is_disconnected():
            logger.debug("SSE client disconnected from %s", request.url.path)
            break
        await asyncio.sleep(interval)


def sse_response(request: Request, snapshot: SnapshotFn) -> StreamingResponse:
    return StreamingResponse(
        sse_frames(request, snapshot),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
