"""Server-Sent Events framing for streamed chat replies.

Each event is ``"data: " + JSON(event) + "\\n\\n"``. Event kinds:

    - meta  {seq}                     sent once, before the first token
    - delta {content}                 one per token
    - done  {totalChars}              terminal success
    - error {code, message, partial?} terminal failure

Consumers treat ``done`` and ``error`` as terminators.
"""
import json
from typing import Literal, Optional, Union

from pydantic import BaseModel

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class SSEMetaEvent(BaseModel):
    type: Literal["meta"] = "meta"
    seq: int


class SSEDeltaEvent(BaseModel):
    type: Literal["delta"] = "delta"
    content: str


class SSEDoneEvent(BaseModel):
    type: Literal["done"] = "done"
    totalChars: int


class SSEErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    code: str
    message: str
    partial: Optional[str] = None


SSEEvent = Union[SSEMetaEvent, SSEDeltaEvent, SSEDoneEvent, SSEErrorEvent]


def format_sse_event(event: SSEEvent) -> str:
    """Serialize one event in SSE framing (``partial`` omitted when unset)."""
    return f"data: {json.dumps(event.model_dump(exclude_none=True))}\n\n"
