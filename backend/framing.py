# framing.py
"""Wire formats for relay events: SSE ``data:`` lines and socket text frames."""
from __future__ import annotations
import json
from typing import Any, Dict, Optional

from helpers import _iso_now
from models import RelayError, RequestContext, StreamChunk

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",  # nginx
}


def sse_event(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


def sse_content(chunk: StreamChunk, ctx: RequestContext) -> str:
    data = {
        "content": chunk.content,
        "type": "content",
        "timestamp": _iso_now(),
        "metadata": {"interviewType": ctx.type, "role": ctx.role},
    }
    if chunk.from_cache:
        data["fromCache"] = True
    return sse_event(data)


def sse_completion() -> str:
    return sse_event({"done": True, "type": "completion", "timestamp": _iso_now()})


def sse_error(error: RelayError) -> str:
    return sse_event({
        "error": error.message,
        "type": "error",
        "message": error.details,
        "timestamp": _iso_now(),
    })


def frame(type_: str, payload: Any) -> str:
    return json.dumps({"type": type_, "payload": payload}, ensure_ascii=False)


def error_frame(message: str, details: Optional[str] = None) -> str:
    payload = {"message": message}
    if details:
        payload["details"] = details
    return frame("error", payload)


def analysis_frame(chunk: StreamChunk, question: Optional[str]) -> str:
    payload: Dict[str, Any] = {"content": chunk.content, "isDone": chunk.is_final}
    if question is not None:
        payload["question"] = question
    if chunk.from_cache:
        payload["fromCache"] = True
    return frame("analysis_stream", payload)
