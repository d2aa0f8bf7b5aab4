from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator

from bedrock_bridge.core.compat import (
    dedupe_preserve_order,
    resolve_model,
    warning_headers as _warning_headers,
)
from bedrock_bridge.core.gateway import InferenceGateway
from bedrock_bridge.core.model_resolver import CATALOG_MODEL_IDS, ModelResolver
from bedrock_bridge.core.token_estimation import estimate_tokens
from bedrock_bridge.core.types import ConverseParams

from .errors import map_openai_error
from .request_translator import extract_text_content, translate_chat_request
from .response_translator import ChatStreamSession, translate_response
from .schemas import ChatCompletionRequest

logger = logging.getLogger(__name__)

WARNINGS_HEADER = "X-OpenAI-Compat-Warnings"

_IGNORED_FIELDS = (
    "response_format",
    "frequency_penalty",
    "presence_penalty",
    "logprobs",
    "n",
    "seed",
    "user",
    "parallel_tool_calls",
    "metadata",
)


@dataclass
class PreparedChatRequest:
    model: str
    model_id: str
    params: ConverseParams
    prompt_tokens: int
    include_stream_usage: bool
    warnings: list[str]


def model_cards() -> list[dict[str, Any]]:
    created = int(time.time())
    return [
        {
            "id": model_id,
            "object": "model",
            "created": created,
            "owned_by": "anthropic",
        }
        for model_id in CATALOG_MODEL_IDS
    ]


def warning_headers(warnings: list[str]) -> dict[str, str]:
    return _warning_headers(warnings, WARNINGS_HEADER)


def prepare_chat_request(
    request: ChatCompletionRequest,
    resolver: ModelResolver,
) -> PreparedChatRequest:
    model_id, warnings = resolve_model(resolver, request.model)
    logger.debug("Resolved model %s -> %s", request.model, model_id)
    warnings.extend(_collect_warnings(request))

    prompt_parts = [
        text for text in (extract_text_content(m.content) for m in request.messages) if text
    ]

    return PreparedChatRequest(
        model=request.model,
        model_id=model_id,
        params=translate_chat_request(request),
        prompt_tokens=estimate_tokens("\n".join(prompt_parts)),
        include_stream_usage=bool(
            request.stream_options is not None and request.stream_options.include_usage
        ),
        warnings=dedupe_preserve_order(warnings),
    )


async def create_chat_completion(
    request: ChatCompletionRequest,
    *,
    resolver: ModelResolver,
    gateway: InferenceGateway,
) -> tuple[dict[str, Any], list[str]]:
    prepared = prepare_chat_request(request, resolver)

    try:
        response = await gateway.invoke(prepared.model_id, prepared.params)
    except Exception as exc:
        logger.error("Inference backend error: %r", exc)
        raise map_openai_error(exc) from exc

    payload = translate_response(
        response,
        model=prepared.model,
        completion_id=_new_chat_completion_id(),
        created=int(time.time()),
    )
    return payload, prepared.warnings


async def create_chat_completion_stream(
    request: ChatCompletionRequest,
    *,
    resolver: ModelResolver,
    gateway: InferenceGateway,
) -> tuple[AsyncIterator[bytes], list[str]]:
    prepared = prepare_chat_request(request, resolver)

    # Handshake before the response starts, so failures keep their HTTP status.
    try:
        events = await gateway.invoke_stream(prepared.model_id, prepared.params)
    except Exception as exc:
        logger.error("Inference backend error: %r", exc)
        raise map_openai_error(exc) from exc

    session = ChatStreamSession(
        completion_id=_new_chat_completion_id(),
        model=prepared.model,
        created=int(time.time()),
        prompt_tokens=prepared.prompt_tokens,
        include_usage=prepared.include_stream_usage,
    )
    return session.run(events), prepared.warnings


def _collect_warnings(request: ChatCompletionRequest) -> list[str]:
    ignored_fields: list[str] = []
    for field_name in _IGNORED_FIELDS:
        value = getattr(request, field_name)
        if value is not None:
            ignored_fields.append(field_name)

    if request.model_extra:
        ignored_fields.extend(sorted(request.model_extra.keys()))

    if not ignored_fields:
        return []

    return [
        "Ignored unsupported request fields: "
        + ", ".join(dedupe_preserve_order(ignored_fields))
    ]


def _new_chat_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"
