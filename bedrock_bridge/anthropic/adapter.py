from __future__ import annotations

import logging
import uuid
from typing import Any, AsyncIterator

from bedrock_bridge.core import json_value
from bedrock_bridge.core.compat import resolve_model, warning_headers as _warning_headers
from bedrock_bridge.core.gateway import InferenceGateway
from bedrock_bridge.core.model_resolver import ModelResolver
from bedrock_bridge.core.token_estimation import estimate_tokens_for_chars

from .errors import map_anthropic_error
from .request_translator import content_blocks, system_text, translate_messages_request
from .response_translator import AnthropicStreamSession, translate_response
from .schemas import (
    AnthropicTool,
    CountTokensRequest,
    CountTokensResponse,
    MessagesMessage,
    MessagesRequest,
    SystemTextBlock,
    TextContent,
    ToolResultContent,
    ToolUseContent,
)

logger = logging.getLogger(__name__)

WARNINGS_HEADER = "X-Anthropic-Compat-Warnings"


def warning_headers(warnings: list[str]) -> dict[str, str]:
    return _warning_headers(warnings, WARNINGS_HEADER)


async def create_messages_response(
    request: MessagesRequest,
    *,
    resolver: ModelResolver,
    gateway: InferenceGateway,
) -> tuple[dict[str, Any], list[str]]:
    model_id, warnings = resolve_model(resolver, request.model)
    logger.debug("Resolved model %s -> %s", request.model, model_id)
    params = translate_messages_request(request)

    try:
        response = await gateway.invoke(model_id, params)
    except Exception as exc:
        logger.error("Inference backend error: %r", exc)
        raise map_anthropic_error(exc) from exc

    payload = translate_response(response, model=request.model, message_id=_new_message_id())
    return payload, warnings


async def create_messages_stream(
    request: MessagesRequest,
    *,
    resolver: ModelResolver,
    gateway: InferenceGateway,
) -> tuple[AsyncIterator[bytes], list[str]]:
    model_id, warnings = resolve_model(resolver, request.model)
    logger.debug("Resolved model %s -> %s", request.model, model_id)
    params = translate_messages_request(request)

    # The handshake happens here, before any SSE bytes exist, so failures
    # still become a proper HTTP error response.
    try:
        events = await gateway.invoke_stream(model_id, params)
    except Exception as exc:
        logger.error("Inference backend error: %r", exc)
        raise map_anthropic_error(exc) from exc

    session = AnthropicStreamSession(
        message_id=_new_message_id(),
        model=request.model,
        input_tokens=estimate_input_tokens(request.system, request.messages, request.tools),
    )
    return session.run(events), warnings


def count_tokens(request: CountTokensRequest) -> CountTokensResponse:
    # Bedrock has no token counting API; estimate from characters.
    input_tokens = estimate_input_tokens(request.system, request.messages, request.tools)
    return CountTokensResponse(input_tokens=input_tokens)


def estimate_input_tokens(
    system: str | list[SystemTextBlock] | None,
    messages: list[MessagesMessage],
    tools: list[AnthropicTool] | None = None,
) -> int:
    char_count = len(system_text(system))

    for message in messages:
        for block in content_blocks(message):
            if isinstance(block, TextContent):
                char_count += len(block.text or "")
            elif isinstance(block, ToolUseContent) and block.input is not None:
                char_count += len(json_value.encode(block.input))
            elif isinstance(block, ToolResultContent):
                char_count += len(block.content_text())

    for tool in tools or []:
        char_count += len(tool.name) + len(tool.description or "")
        char_count += len(json_value.encode(tool.input_schema))

    return estimate_tokens_for_chars(char_count)


def _new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex}"
