from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from bedrock_bridge.config import DEFAULT_BEDROCK_MODEL, Settings
from bedrock_bridge.core.types import (
    BackendResponse,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
    TextBlock,
    TokenUsage,
)
from bedrock_bridge.main import create_app


class FakeGateway:
    """In-memory stand-in for BedrockGateway that records every call."""

    def __init__(self) -> None:
        self.response = BackendResponse(
            content=(TextBlock(text="stub completion"),),
            stop_reason="end_turn",
            usage=TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15),
        )
        self.events: list[Any] = [
            MessageStartEvent(),
            ContentBlockDeltaEvent(index=0, text="s"),
            ContentBlockDeltaEvent(index=0, text="t"),
            ContentBlockDeltaEvent(index=0, text="ub"),
            ContentBlockStopEvent(index=0),
            MessageStopEvent(stop_reason="end_turn"),
            MetadataEvent(usage=TokenUsage(input_tokens=7, output_tokens=3, total_tokens=10)),
        ]
        self.error: Exception | None = None
        self.stream_error: Exception | None = None
        self.stream_error_after: int = 0
        self.calls: list[tuple[str, Any]] = []
        self.stream_closed = False

    async def invoke(self, model_id, params):
        self.calls.append((model_id, params))
        if self.error is not None:
            raise self.error
        return self.response

    async def invoke_stream(self, model_id, params):
        self.calls.append((model_id, params))
        if self.error is not None:
            raise self.error
        return self._events()

    async def _events(self):
        try:
            for position, event in enumerate(self.events):
                if self.stream_error is not None and position == self.stream_error_after:
                    raise self.stream_error
                yield event
            if self.stream_error is not None and self.stream_error_after >= len(self.events):
                raise self.stream_error
        finally:
            self.stream_closed = True


def parse_sse(body: str) -> list[tuple[str | None, str]]:
    """Split an SSE body into (event name, data) pairs."""

    frames = []
    for raw_frame in body.split("\n\n"):
        if not raw_frame.strip():
            continue
        event_name = None
        data_lines = []
        for line in raw_frame.split("\n"):
            if line.startswith("event: "):
                event_name = line[len("event: "):]
            elif line.startswith("data: "):
                data_lines.append(line[len("data: "):])
        frames.append((event_name, "\n".join(data_lines)))
    return frames


def sse_payloads(body: str) -> list[dict[str, Any]]:
    return [
        json.loads(data)
        for _event, data in parse_sse(body)
        if data and data != "[DONE]"
    ]


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        aws_region="us-east-1",
        default_bedrock_model=DEFAULT_BEDROCK_MODEL,
        proxy_api_key=None,
        bedrock_api_key=None,
    )


@pytest.fixture()
def client(settings: Settings, gateway: FakeGateway) -> TestClient:
    return TestClient(create_app(settings, gateway=gateway))
