from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from bedrock_bridge.anthropic.adapter import (
    WARNINGS_HEADER,
    count_tokens,
    create_messages_response,
    create_messages_stream,
    warning_headers,
)
from bedrock_bridge.anthropic.schemas import (
    CountTokensRequest,
    CountTokensResponse,
    MessagesRequest,
)
from bedrock_bridge.core.compat import stream_headers
from bedrock_bridge.core.gateway import InferenceGateway
from bedrock_bridge.core.model_resolver import ModelResolver
from bedrock_bridge.dependencies import get_gateway, get_model_resolver

# Not behind the proxy API key: Anthropic clients authenticate with their own token.
router = APIRouter(prefix="/v1", tags=["anthropic"])


@router.post("/messages")
async def messages(
    payload: MessagesRequest,
    resolver: ModelResolver = Depends(get_model_resolver),
    gateway: InferenceGateway = Depends(get_gateway),
):
    if payload.stream:
        iterator, warnings = await create_messages_stream(
            payload, resolver=resolver, gateway=gateway
        )
        return StreamingResponse(
            iterator,
            media_type="text/event-stream",
            headers=stream_headers(warnings, WARNINGS_HEADER),
        )

    response_payload, warnings = await create_messages_response(
        payload, resolver=resolver, gateway=gateway
    )
    return JSONResponse(content=response_payload, headers=warning_headers(warnings))


@router.post("/messages/count_tokens", response_model=CountTokensResponse)
async def messages_count_tokens(payload: CountTokensRequest) -> CountTokensResponse:
    return count_tokens(payload)
