from __future__ import annotations

from typing import Any

from bedrock_bridge.core import json_value
from bedrock_bridge.core.sse import DONE_FRAME, sse_data
from bedrock_bridge.core.stop_reasons import (
    OPENAI_DEFAULT_FINISH_REASON,
    to_openai_finish_reason,
)
from bedrock_bridge.core.streaming import BlockState, StreamSession
from bedrock_bridge.core.types import (
    BackendResponse,
    ContentBlockStartEvent,
    TextBlock,
    ToolUseBlock,
)

from .errors import map_openai_error


def translate_response(
    response: BackendResponse,
    model: str,
    completion_id: str,
    created: int,
) -> dict[str, Any]:
    text_parts: list[str] = []
    tool_calls: list[dict[str, Any]] = []

    for block in response.content:
        if isinstance(block, TextBlock):
            text_parts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_calls.append(
                {
                    "id": block.tool_use_id,
                    "type": "function",
                    "function": {
                        "name": block.name,
                        "arguments": json_value.encode(block.input),
                    },
                }
            )

    message: dict[str, Any] = {
        "role": "assistant",
        "content": "".join(text_parts) if text_parts or not tool_calls else None,
    }
    if tool_calls:
        message["tool_calls"] = tool_calls

    return {
        "id": completion_id,
        "object": "chat.completion",
        "created": created,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": message,
                "finish_reason": to_openai_finish_reason(response.stop_reason),
            }
        ],
        "usage": usage_payload(
            response.usage.input_tokens,
            response.usage.output_tokens,
            response.usage.total_tokens,
        ),
    }


def usage_payload(
    prompt_tokens: int,
    completion_tokens: int,
    total_tokens: int | None = None,
) -> dict[str, int]:
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": (
            total_tokens if total_tokens is not None else prompt_tokens + completion_tokens
        ),
    }


class ChatStreamSession(StreamSession):
    """Chat Completions chunk stream terminated by ``data: [DONE]``."""

    default_stop_reason = OPENAI_DEFAULT_FINISH_REASON

    def __init__(
        self,
        *,
        completion_id: str,
        model: str,
        created: int,
        prompt_tokens: int,
        include_usage: bool = False,
    ) -> None:
        super().__init__()
        self.completion_id = completion_id
        self.model = model
        self.created = created
        self.estimated_prompt_tokens = prompt_tokens
        self.include_usage = include_usage

    def map_stop_reason(self, stop_reason: str | None) -> str:
        return to_openai_finish_reason(stop_reason)

    def preamble_frames(self) -> list[bytes]:
        return [self._chunk({"role": "assistant"})]

    def block_start_frames(
        self,
        index: int,
        block: BlockState,
        event: ContentBlockStartEvent,
    ) -> list[bytes]:
        if not event.is_tool_use:
            return []

        tool_call = {
            "index": block.tool_call_index,
            "id": event.tool_use_id,
            "type": "function",
            "function": {"name": event.name, "arguments": ""},
        }
        return [self._chunk({"tool_calls": [tool_call]})]

    def text_delta_frames(self, index: int, text: str) -> list[bytes]:
        return [self._chunk({"content": text})]

    def tool_input_frames(
        self,
        index: int,
        block: BlockState,
        fragment: str,
    ) -> list[bytes]:
        tool_call = {
            "index": block.tool_call_index,
            "function": {"arguments": fragment},
        }
        return [self._chunk({"tool_calls": [tool_call]})]

    def block_stop_frames(self, index: int) -> list[bytes]:
        return []

    def terminal_frames(self) -> list[bytes]:
        frames = [self._chunk({}, finish_reason=self.stop_reason)]

        if self.include_usage:
            prompt_tokens = (
                self.input_tokens
                if self.input_tokens is not None
                else self.estimated_prompt_tokens
            )
            usage_chunk = {
                "id": self.completion_id,
                "object": "chat.completion.chunk",
                "created": self.created,
                "model": self.model,
                "choices": [],
                "usage": usage_payload(prompt_tokens, self.output_tokens),
            }
            frames.append(sse_data(usage_chunk))

        frames.append(DONE_FRAME)
        return frames

    def error_frames(self, exc: Exception) -> list[bytes]:
        mapped = map_openai_error(exc)
        return [sse_data({"error": mapped.to_error()})]

    def _chunk(self, delta: dict[str, Any], finish_reason: str | None = None) -> bytes:
        chunk = {
            "id": self.completion_id,
            "object": "chat.completion.chunk",
            "created": self.created,
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "delta": delta,
                    "finish_reason": finish_reason,
                }
            ],
        }
        return sse_data(chunk)
