from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from bedrock_bridge.config import Settings
from bedrock_bridge.core.errors import (
    BackendFailure,
    BackendHandshakeFailure,
    BackendStreamFailure,
    FailureCategory,
)
from bedrock_bridge.core.types import (
    BackendResponse,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    MessageStopEvent,
    MetadataEvent,
    Role,
    TextBlock,
    TokenUsage,
    ToolChoice,
    ToolResultBlock,
    ToolUseBlock,
)
from bedrock_bridge.main import create_app

from conftest import FakeGateway, parse_sse


def _messages_payload(**overrides):
    payload = {
        "model": "claude-sonnet-4-5",
        "max_tokens": 256,
        "messages": [{"role": "user", "content": "Hello"}],
    }
    payload.update(overrides)
    return payload


def test_messages_non_stream_success(client: TestClient, gateway: FakeGateway):
    response = client.post("/v1/messages", json=_messages_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["id"].startswith("msg_")
    assert body["type"] == "message"
    assert body["role"] == "assistant"
    assert body["model"] == "claude-sonnet-4-5"
    assert body["content"] == [{"type": "text", "text": "stub completion"}]
    assert body["stop_reason"] == "end_turn"
    assert body["stop_sequence"] is None
    assert body["usage"] == {"input_tokens": 10, "output_tokens": 5}

    model_id, params = gateway.calls[0]
    assert model_id == "us.anthropic.claude-sonnet-4-5-20250929-v1:0"
    assert params.inference_config.max_tokens == 256
    assert "Mapped model 'claude-sonnet-4-5'" in response.headers[
        "X-Anthropic-Compat-Warnings"
    ]


def test_messages_native_model_id_passes_through(
    client: TestClient,
    gateway: FakeGateway,
):
    model = "eu.anthropic.claude-3-haiku-20240307-v1:0"

    response = client.post("/v1/messages", json=_messages_payload(model=model))

    assert response.status_code == 200
    assert gateway.calls[0][0] == model
    assert "X-Anthropic-Compat-Warnings" not in response.headers


def test_messages_translates_system_tools_and_blocks(
    client: TestClient,
    gateway: FakeGateway,
):
    payload = _messages_payload(
        system=[
            {"type": "text", "text": "You are helpful."},
            {"type": "text", "text": "Be brief."},
        ],
        messages=[
            {"role": "user", "content": [{"type": "text", "text": "Weather in Oslo?"}]},
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Let me check."},
                    {
                        "type": "tool_use",
                        "id": "toolu_1",
                        "name": "get_weather",
                        "input": {"city": "Oslo"},
                    },
                ],
            },
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": "toolu_1",
                        "content": [{"type": "text", "text": "Cloudy"}],
                        "is_error": True,
                    },
                    {"type": "image", "source": {"type": "base64", "data": "AAAA"}},
                ],
            },
        ],
        tools=[
            {
                "name": "get_weather",
                "description": "Weather lookup",
                "input_schema": {"type": "object"},
            }
        ],
        tool_choice={"type": "tool", "name": "get_weather"},
        stop_sequences=["STOP"],
        temperature=0.5,
    )

    response = client.post("/v1/messages", json=payload)

    assert response.status_code == 200
    _model_id, params = gateway.calls[0]
    assert params.system == ("You are helpful.\nBe brief.",)
    assert [message.role for message in params.messages] == [
        Role.USER,
        Role.ASSISTANT,
        Role.USER,
    ]
    assert params.messages[1].content == (
        TextBlock(text="Let me check."),
        ToolUseBlock(tool_use_id="toolu_1", name="get_weather", input={"city": "Oslo"}),
    )
    assert params.messages[2].content == (
        ToolResultBlock(tool_use_id="toolu_1", text="Cloudy", is_error=True),
    )
    assert params.tool_config is not None
    assert params.tool_config.choice is ToolChoice.TOOL
    assert params.tool_config.choice_name == "get_weather"
    assert params.inference_config.stop_sequences == ("STOP",)
    assert params.inference_config.temperature == 0.5


def test_messages_tool_use_response(client: TestClient, gateway: FakeGateway):
    gateway.response = BackendResponse(
        content=(
            TextBlock(text="Checking."),
            ToolUseBlock(tool_use_id="toolu_2", name="get_weather", input={"city": "Oslo"}),
        ),
        stop_reason="tool_use",
        usage=TokenUsage(input_tokens=20, output_tokens=8, total_tokens=28),
    )

    response = client.post("/v1/messages", json=_messages_payload())

    body = response.json()
    assert body["stop_reason"] == "tool_use"
    assert body["content"][1] == {
        "type": "tool_use",
        "id": "toolu_2",
        "name": "get_weather",
        "input": {"city": "Oslo"},
    }


def test_messages_is_not_behind_proxy_api_key(gateway: FakeGateway):
    settings = Settings(proxy_api_key="secret-key-0123456789", bedrock_api_key=None)
    client = TestClient(create_app(settings, gateway=gateway))

    response = client.post("/v1/messages", json=_messages_payload())

    assert response.status_code == 200


def test_messages_validation_error_uses_anthropic_shape(client: TestClient):
    payload = _messages_payload()
    del payload["max_tokens"]

    response = client.post("/v1/messages", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["type"] == "error"
    assert body["error"]["type"] == "invalid_request_error"


@pytest.mark.parametrize(
    ("category", "status", "error_type"),
    [
        (FailureCategory.RATE_LIMITED, 429, "rate_limit_error"),
        (FailureCategory.INVALID_REQUEST, 400, "invalid_request_error"),
        (FailureCategory.ACCESS_DENIED, 401, "authentication_error"),
        (FailureCategory.NOT_FOUND, 404, "not_found_error"),
        (FailureCategory.UNAVAILABLE, 503, "api_error"),
        (FailureCategory.UNKNOWN, 500, "api_error"),
    ],
)
def test_messages_backend_failure_maps_status(
    client: TestClient,
    gateway: FakeGateway,
    category: FailureCategory,
    status: int,
    error_type: str,
):
    gateway.error = BackendHandshakeFailure(category, "backend said no")

    response = client.post("/v1/messages", json=_messages_payload())

    assert response.status_code == status
    body = response.json()
    assert body["type"] == "error"
    assert body["error"]["type"] == error_type
    assert "backend said no" in body["error"]["message"]


def test_messages_stream_event_sequence(client: TestClient, gateway: FakeGateway):
    with client.stream(
        "POST", "/v1/messages", json=_messages_payload(stream=True)
    ) as response:
        body = "".join(response.iter_text())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    frames = parse_sse(body)
    event_names = [event for event, _data in frames]
    assert event_names == [
        "message_start",
        "ping",
        "content_block_start",
        "content_block_delta",
        "content_block_delta",
        "content_block_delta",
        "content_block_stop",
        "message_delta",
        "message_stop",
    ]

    payloads = [json.loads(data) for _event, data in frames]
    assert all(payload["type"] == event for (event, _data), payload in zip(frames, payloads))
    message = payloads[0]["message"]
    assert message["id"].startswith("msg_")
    assert message["model"] == "claude-sonnet-4-5"
    assert message["usage"] == {"input_tokens": 1, "output_tokens": 0}
    assert payloads[2]["content_block"] == {"type": "text", "text": ""}
    text = "".join(
        payload["delta"]["text"]
        for payload in payloads
        if payload["type"] == "content_block_delta"
    )
    assert text == "stub"
    assert payloads[-2]["delta"]["stop_reason"] == "end_turn"
    assert payloads[-2]["usage"] == {"output_tokens": 3}
    assert gateway.stream_closed


def test_messages_stream_tool_use_blocks(client: TestClient, gateway: FakeGateway):
    gateway.events = [
        ContentBlockStartEvent(index=0, tool_use_id="toolu_7", name="lookup"),
        ContentBlockDeltaEvent(index=0, tool_input="{\"q\":"),
        ContentBlockDeltaEvent(index=0, tool_input="\"bedrock\"}"),
        ContentBlockStopEvent(index=0),
        MessageStopEvent(stop_reason="tool_use"),
        MetadataEvent(usage=TokenUsage(input_tokens=4, output_tokens=9, total_tokens=13)),
    ]

    with client.stream(
        "POST", "/v1/messages", json=_messages_payload(stream=True)
    ) as response:
        body = "".join(response.iter_text())

    payloads = [json.loads(data) for _event, data in parse_sse(body)]
    start = payloads[2]
    assert start["content_block"] == {
        "type": "tool_use",
        "id": "toolu_7",
        "name": "lookup",
        "input": {},
    }
    partial = "".join(
        payload["delta"]["partial_json"]
        for payload in payloads
        if payload["type"] == "content_block_delta"
    )
    assert json.loads(partial) == {"q": "bedrock"}
    assert payloads[-2]["delta"]["stop_reason"] == "tool_use"
    assert payloads[-2]["usage"] == {"output_tokens": 9}


def test_messages_stream_handshake_failure_is_http_error(
    client: TestClient,
    gateway: FakeGateway,
):
    gateway.error = BackendHandshakeFailure(FailureCategory.RATE_LIMITED, "slow down")

    response = client.post("/v1/messages", json=_messages_payload(stream=True))

    assert response.status_code == 429
    assert "event:" not in response.text
    assert response.json()["error"]["type"] == "rate_limit_error"


def test_messages_stream_mid_stream_failure_emits_single_error_event(
    client: TestClient,
    gateway: FakeGateway,
):
    gateway.stream_error = BackendStreamFailure(
        FailureCategory.RATE_LIMITED,
        "Too many tokens,\nslow down",
        code="throttlingException",
    )
    gateway.stream_error_after = 2

    with client.stream(
        "POST", "/v1/messages", json=_messages_payload(stream=True)
    ) as response:
        body = "".join(response.iter_text())

    assert response.status_code == 200
    frames = parse_sse(body)
    event_names = [event for event, _data in frames]
    assert event_names[-1] == "error"
    assert event_names.count("error") == 1
    assert "message_stop" not in event_names

    error = json.loads(frames[-1][1])
    assert error["type"] == "error"
    assert error["error"]["type"] == "rate_limit_error"
    assert "Too many tokens, slow down" in error["error"]["message"]
    assert gateway.stream_closed


def test_count_tokens_estimates_from_characters(client: TestClient, gateway: FakeGateway):
    payload = {
        "model": "claude-sonnet-4-5",
        "system": "abcd",
        "messages": [{"role": "user", "content": "efghijkl"}],
    }

    response = client.post("/v1/messages/count_tokens", json=payload)

    assert response.status_code == 200
    assert response.json() == {"input_tokens": 3}
    assert gateway.calls == []


def test_count_tokens_minimum_is_one(client: TestClient):
    payload = {
        "model": "claude-sonnet-4-5",
        "messages": [{"role": "user", "content": "hi"}],
    }

    response = client.post("/v1/messages/count_tokens", json=payload)

    assert response.json() == {"input_tokens": 1}


def test_messages_accepts_non_latin1_model_label(client: TestClient, gateway: FakeGateway):
    model = "Claude Sonnet 4.5 – beta"

    response = client.post("/v1/messages", json=_messages_payload(model=model))

    assert response.status_code == 200
    assert response.json()["model"] == model
    warning = response.headers["X-Anthropic-Compat-Warnings"]
    assert warning.isascii()
    assert "\\u2013" in warning


def test_messages_stream_accepts_model_label_with_newlines(client: TestClient):
    model = "claude\r\nSet-Cookie: x=1"

    with client.stream(
        "POST", "/v1/messages", json=_messages_payload(model=model, stream=True)
    ) as response:
        body = "".join(response.iter_text())

    assert response.status_code == 200
    assert "set-cookie" not in response.headers
    assert "\n" not in response.headers["X-Anthropic-Compat-Warnings"]
    assert [event for event, _data in parse_sse(body)][-1] == "message_stop"


def test_backend_failure_outside_adapters_uses_anthropic_shape(gateway: FakeGateway):
    app = create_app(Settings(proxy_api_key=None, bedrock_api_key=None), gateway=gateway)

    @app.get("/v1/messages/broken")
    async def broken():
        raise BackendFailure(FailureCategory.RATE_LIMITED, "slow down")

    response = TestClient(app).get("/v1/messages/broken")

    assert response.status_code == 429
    assert response.json() == {
        "type": "error",
        "error": {
            "type": "rate_limit_error",
            "message": "Rate limited by the inference backend: slow down",
        },
    }
