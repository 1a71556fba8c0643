from __future__ import annotations

import json
from collections.abc import AsyncIterator

from fastapi.responses import StreamingResponse

from src.application.dtos.stream_dto import StreamEvent

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: StreamEvent) -> str:
    """Frame one event as ``data: <json>\\n\\n``."""
    data = json.dumps(event.to_payload(), separators=(",", ":"), ensure_ascii=False)
    return f"data: {data}\n\n"


async def _frames(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield format_sse(event)


def event_stream_response(events: AsyncIterator[StreamEvent]) -> StreamingResponse:
    return StreamingResponse(_frames(events), media_type="text/event-stream", headers=SSE_HEADERS)
