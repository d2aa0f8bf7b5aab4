from __future__ import annotations

from typing import Any

from bedrock_bridge.core.sse import sse_event
from bedrock_bridge.core.stop_reasons import (
    ANTHROPIC_DEFAULT_STOP_REASON,
    to_anthropic_stop_reason,
)
from bedrock_bridge.core.streaming import BlockState, StreamSession
from bedrock_bridge.core.types import (
    BackendResponse,
    ContentBlockStartEvent,
    TextBlock,
    ToolUseBlock,
)

from .errors import map_anthropic_error


def translate_response(
    response: BackendResponse,
    model: str,
    message_id: str,
) -> dict[str, Any]:
    content: list[dict[str, Any]] = []
    for block in response.content:
        if isinstance(block, TextBlock):
            content.append({"type": "text", "text": block.text})
        elif isinstance(block, ToolUseBlock):
            content.append(
                {
                    "type": "tool_use",
                    "id": block.tool_use_id,
                    "name": block.name,
                    "input": block.input,
                }
            )

    return {
        "id": message_id,
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": content,
        "stop_reason": to_anthropic_stop_reason(response.stop_reason),
        "stop_sequence": None,
        "usage": {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        },
    }


class AnthropicStreamSession(StreamSession):
    """Messages API event stream: message_start, ping, content blocks, message_delta, message_stop."""

    default_stop_reason = ANTHROPIC_DEFAULT_STOP_REASON

    def __init__(self, *, message_id: str, model: str, input_tokens: int) -> None:
        super().__init__()
        self.message_id = message_id
        self.model = model
        self.estimated_input_tokens = input_tokens

    def map_stop_reason(self, stop_reason: str | None) -> str:
        return to_anthropic_stop_reason(stop_reason)

    def preamble_frames(self) -> list[bytes]:
        start_event = {
            "type": "message_start",
            "message": {
                "id": self.message_id,
                "type": "message",
                "role": "assistant",
                "model": self.model,
                "content": [],
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {
                    "input_tokens": self.estimated_input_tokens,
                    "output_tokens": 0,
                },
            },
        }
        return [
            sse_event("message_start", start_event),
            sse_event("ping", {"type": "ping"}),
        ]

    def block_start_frames(
        self,
        index: int,
        block: BlockState,
        event: ContentBlockStartEvent,
    ) -> list[bytes]:
        if event.is_tool_use:
            content_block: dict[str, Any] = {
                "type": "tool_use",
                "id": event.tool_use_id,
                "name": event.name,
                "input": {},
            }
        else:
            content_block = {"type": "text", "text": ""}

        block_start_event = {
            "type": "content_block_start",
            "index": index,
            "content_block": content_block,
        }
        return [sse_event("content_block_start", block_start_event)]

    def text_delta_frames(self, index: int, text: str) -> list[bytes]:
        delta_event = {
            "type": "content_block_delta",
            "index": index,
            "delta": {
                "type": "text_delta",
                "text": text,
            },
        }
        return [sse_event("content_block_delta", delta_event)]

    def tool_input_frames(
        self,
        index: int,
        block: BlockState,
        fragment: str,
    ) -> list[bytes]:
        delta_event = {
            "type": "content_block_delta",
            "index": index,
            "delta": {
                "type": "input_json_delta",
                "partial_json": fragment,
            },
        }
        return [sse_event("content_block_delta", delta_event)]

    def block_stop_frames(self, index: int) -> list[bytes]:
        block_stop_event = {
            "type": "content_block_stop",
            "index": index,
        }
        return [sse_event("content_block_stop", block_stop_event)]

    def terminal_frames(self) -> list[bytes]:
        message_delta_event = {
            "type": "message_delta",
            "delta": {
                "stop_reason": self.stop_reason,
                "stop_sequence": None,
            },
            "usage": {
                "output_tokens": self.output_tokens,
            },
        }
        return [
            sse_event("message_delta", message_delta_event),
            sse_event("message_stop", {"type": "message_stop"}),
        ]

    def error_frames(self, exc: Exception) -> list[bytes]:
        mapped = map_anthropic_error(exc)
        return [sse_event("error", mapped.to_error())]
