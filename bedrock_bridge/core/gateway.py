from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, AsyncIterator, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from . import json_value
from .errors import (
    BackendFailure,
    BackendHandshakeFailure,
    BackendStreamFailure,
    FailureCategory,
)
from .types import (
    BackendResponse,
    BackendStreamEvent,
    ContentBlock,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    ConverseParams,
    InferenceConfig,
    Message,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
    TextBlock,
    TokenUsage,
    ToolChoice,
    ToolConfig,
    ToolResultBlock,
    ToolUseBlock,
    UnknownEvent,
)

if TYPE_CHECKING:
    from bedrock_bridge.config import Settings

logger = logging.getLogger(__name__)

# Bedrock error codes, lower-cased: event-stream errors arrive as
# "throttlingException" while API errors arrive as "ThrottlingException".
_ERROR_CODE_CATEGORIES = {
    "throttlingexception": FailureCategory.RATE_LIMITED,
    "toomanyrequestsexception": FailureCategory.RATE_LIMITED,
    "servicequotaexceededexception": FailureCategory.RATE_LIMITED,
    "validationexception": FailureCategory.INVALID_REQUEST,
    "accessdeniedexception": FailureCategory.ACCESS_DENIED,
    "unrecognizedclientexception": FailureCategory.ACCESS_DENIED,
    "expiredtokenexception": FailureCategory.ACCESS_DENIED,
    "resourcenotfoundexception": FailureCategory.NOT_FOUND,
    "modelnotfoundexception": FailureCategory.NOT_FOUND,
    "serviceunavailableexception": FailureCategory.UNAVAILABLE,
    "modelnotreadyexception": FailureCategory.UNAVAILABLE,
}


class InferenceGateway(Protocol):
    async def invoke(self, model_id: str, params: ConverseParams) -> BackendResponse:
        ...

    async def invoke_stream(
        self,
        model_id: str,
        params: ConverseParams,
    ) -> AsyncIterator[BackendStreamEvent]:
        """Open a stream; the handshake has completed when this returns."""
        ...


class BedrockGateway:
    """Calls the Bedrock Converse API through a boto3 ``bedrock-runtime`` client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    async def invoke(self, model_id: str, params: ConverseParams) -> BackendResponse:
        kwargs = build_converse_kwargs(model_id, params)
        try:
            response = await run_in_threadpool(self._client.converse, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise failure_from_boto_error(exc) from exc

        return parse_converse_response(response)

    async def invoke_stream(
        self,
        model_id: str,
        params: ConverseParams,
    ) -> AsyncIterator[BackendStreamEvent]:
        kwargs = build_converse_kwargs(model_id, params)
        try:
            response = await run_in_threadpool(self._client.converse_stream, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise failure_from_boto_error(exc, failure_cls=BackendHandshakeFailure) from exc

        return self._iterate_events(response["stream"])

    async def _iterate_events(self, stream: Any) -> AsyncIterator[BackendStreamEvent]:
        try:
            async for raw_event in iterate_in_threadpool(iter(stream)):
                yield parse_stream_event(raw_event)
        except (ClientError, BotoCoreError) as exc:
            raise failure_from_boto_error(exc, failure_cls=BackendStreamFailure) from exc
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()


def create_bedrock_client(settings: "Settings") -> Any:
    if settings.bedrock_api_key:
        # botocore picks bearer-token auth for bedrock from this variable.
        os.environ.setdefault("AWS_BEARER_TOKEN_BEDROCK", settings.bedrock_api_key)

    session = boto3.Session(
        profile_name=settings.aws_profile,
        region_name=settings.aws_region,
    )
    return session.client(
        "bedrock-runtime",
        config=BotoConfig(retries={"total_max_attempts": 1, "mode": "standard"}),
    )


def failure_from_boto_error(
    exc: ClientError | BotoCoreError,
    *,
    failure_cls: type[BackendFailure] = BackendFailure,
) -> BackendFailure:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code") or "")
        message = str(error.get("Message") or "")
        category = _ERROR_CODE_CATEGORIES.get(code.lower(), FailureCategory.UNKNOWN)
        return failure_cls(category, message, code=code or None)

    if isinstance(exc, NoCredentialsError):
        return failure_cls(
            FailureCategory.ACCESS_DENIED,
            "No AWS credentials are configured for the inference backend.",
            code=type(exc).__name__,
        )

    return failure_cls(
        FailureCategory.UNAVAILABLE,
        "Could not reach the inference backend.",
        code=type(exc).__name__,
    )


# Request serialization


def build_converse_kwargs(model_id: str, params: ConverseParams) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "modelId": model_id,
        "messages": [_message_payload(message) for message in params.messages],
        "inferenceConfig": _inference_config_payload(params.inference_config),
    }

    if params.system:
        kwargs["system"] = [{"text": text} for text in params.system]

    if params.tool_config is not None:
        kwargs["toolConfig"] = _tool_config_payload(params.tool_config)

    return kwargs


def _message_payload(message: Message) -> dict[str, Any]:
    return {
        "role": message.role.value,
        "content": [_content_block_payload(block) for block in message.content],
    }


def _content_block_payload(block: ContentBlock) -> dict[str, Any]:
    if isinstance(block, TextBlock):
        return {"text": block.text}

    if isinstance(block, ToolUseBlock):
        return {
            "toolUse": {
                "toolUseId": block.tool_use_id,
                "name": block.name,
                "input": json_value.to_document(block.input),
            }
        }

    tool_result: dict[str, Any] = {
        "toolUseId": block.tool_use_id,
        "content": [{"text": block.text}] if block.text else [],
    }
    if block.is_error:
        tool_result["status"] = "error"
    return {"toolResult": tool_result}


def _inference_config_payload(config: InferenceConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {"maxTokens": config.max_tokens}
    if config.temperature is not None:
        payload["temperature"] = config.temperature
    if config.top_p is not None:
        payload["topP"] = config.top_p
    if config.stop_sequences:
        payload["stopSequences"] = list(config.stop_sequences)
    return payload


def _tool_config_payload(config: ToolConfig) -> dict[str, Any]:
    tools = []
    for tool in config.tools:
        spec: dict[str, Any] = {
            "name": tool.name,
            "inputSchema": {"json": json_value.to_document(tool.input_schema)},
        }
        if tool.description:
            spec["description"] = tool.description
        tools.append({"toolSpec": spec})

    payload: dict[str, Any] = {"tools": tools}
    if config.choice is ToolChoice.ANY:
        payload["toolChoice"] = {"any": {}}
    elif config.choice is ToolChoice.TOOL and config.choice_name:
        payload["toolChoice"] = {"tool": {"name": config.choice_name}}
    elif config.choice is ToolChoice.AUTO:
        payload["toolChoice"] = {"auto": {}}
    return payload


# Response parsing


def parse_converse_response(response: dict[str, Any]) -> BackendResponse:
    message = (response.get("output") or {}).get("message") or {}
    content: list[ContentBlock] = []

    for block in message.get("content") or []:
        if "text" in block:
            content.append(TextBlock(text=block["text"]))
        elif "toolUse" in block:
            tool_use = block["toolUse"]
            content.append(
                ToolUseBlock(
                    tool_use_id=tool_use["toolUseId"],
                    name=tool_use["name"],
                    input=json_value.from_document(tool_use.get("input", {})),
                )
            )

    return BackendResponse(
        content=tuple(content),
        stop_reason=response.get("stopReason"),
        usage=_parse_usage(response.get("usage")),
    )


def parse_stream_event(raw_event: dict[str, Any]) -> BackendStreamEvent:
    if "messageStart" in raw_event:
        return MessageStartEvent(role=raw_event["messageStart"].get("role", "assistant"))

    if "contentBlockStart" in raw_event:
        body = raw_event["contentBlockStart"]
        tool_use = (body.get("start") or {}).get("toolUse")
        if tool_use:
            return ContentBlockStartEvent(
                index=body["contentBlockIndex"],
                tool_use_id=tool_use["toolUseId"],
                name=tool_use["name"],
            )
        return ContentBlockStartEvent(index=body["contentBlockIndex"])

    if "contentBlockDelta" in raw_event:
        body = raw_event["contentBlockDelta"]
        delta = body.get("delta") or {}
        if "text" in delta:
            return ContentBlockDeltaEvent(index=body["contentBlockIndex"], text=delta["text"])
        if "toolUse" in delta:
            return ContentBlockDeltaEvent(
                index=body["contentBlockIndex"],
                tool_input=delta["toolUse"].get("input", ""),
            )
        return ContentBlockDeltaEvent(index=body["contentBlockIndex"])

    if "contentBlockStop" in raw_event:
        return ContentBlockStopEvent(index=raw_event["contentBlockStop"]["contentBlockIndex"])

    if "messageStop" in raw_event:
        return MessageStopEvent(stop_reason=raw_event["messageStop"].get("stopReason"))

    if "metadata" in raw_event:
        return MetadataEvent(usage=_parse_usage(raw_event["metadata"].get("usage")))

    kind = next(iter(raw_event), "unknown")
    logger.debug("Ignoring unrecognized Bedrock stream event %s", kind)
    return UnknownEvent(kind=kind)


def _parse_usage(usage: dict[str, Any] | None) -> TokenUsage:
    if not usage:
        return TokenUsage()

    input_tokens = int(usage.get("inputTokens", 0))
    output_tokens = int(usage.get("outputTokens", 0))
    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=int(usage.get("totalTokens", input_tokens + output_tokens)),
    )
