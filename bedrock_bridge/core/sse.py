from __future__ import annotations

import json
from typing import Any

DONE_FRAME = b"data: [DONE]\n\n"


def sse_event(event: str, payload: dict[str, Any]) -> bytes:
    serialized = json.dumps(payload, ensure_ascii=False)
    return f"event: {event}\ndata: {serialized}\n\n".encode("utf-8")


def sse_data(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")
