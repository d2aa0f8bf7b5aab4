from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from bedrock_bridge.core.compat import stream_headers
from bedrock_bridge.core.gateway import InferenceGateway
from bedrock_bridge.core.model_resolver import ModelResolver
from bedrock_bridge.dependencies import get_gateway, get_model_resolver, require_api_key
from bedrock_bridge.openai.adapter import (
    WARNINGS_HEADER,
    create_chat_completion,
    create_chat_completion_stream,
    warning_headers,
)
from bedrock_bridge.openai.schemas import ChatCompletionRequest

router = APIRouter(prefix="/v1", tags=["openai"], dependencies=[Depends(require_api_key)])


@router.post("/chat/completions")
async def chat_completions(
    payload: ChatCompletionRequest,
    resolver: ModelResolver = Depends(get_model_resolver),
    gateway: InferenceGateway = Depends(get_gateway),
):
    if payload.stream:
        iterator, warnings = await create_chat_completion_stream(
            payload, resolver=resolver, gateway=gateway
        )
        return StreamingResponse(
            iterator,
            media_type="text/event-stream",
            headers=stream_headers(warnings, WARNINGS_HEADER),
        )

    response_payload, warnings = await create_chat_completion(
        payload, resolver=resolver, gateway=gateway
    )
    return JSONResponse(content=response_payload, headers=warning_headers(warnings))
