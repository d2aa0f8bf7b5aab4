from __future__ import annotations

import logging
from typing import Any

from bedrock_bridge.core import json_value
from bedrock_bridge.core.json_value import MalformedValueError
from bedrock_bridge.core.types import (
    DEFAULT_MAX_TOKENS,
    ContentBlock,
    ConverseParams,
    InferenceConfig,
    Message,
    Role,
    TextBlock,
    ToolChoice,
    ToolConfig,
    ToolResultBlock,
    ToolSpec,
    ToolUseBlock,
)

from .schemas import ChatCompletionMessage, ChatCompletionRequest, ChatTool, ChatToolCall

logger = logging.getLogger(__name__)

_SYSTEM_ROLES = {"system", "developer"}
_TOOL_ROLES = {"tool", "function"}


def translate_chat_request(request: ChatCompletionRequest) -> ConverseParams:
    system_parts: list[str] = []
    merged: list[tuple[Role, list[ContentBlock]]] = []

    for message in request.messages:
        role = message.role.lower()

        if role in _SYSTEM_ROLES:
            text = extract_text_content(message.content)
            if text:
                system_parts.append(text)
            continue

        canonical_role = _canonical_role(role)
        if canonical_role is None:
            logger.debug("Dropping message with unsupported role %r", message.role)
            continue

        blocks = _message_blocks(message, role)
        if not blocks:
            continue

        _append_merged(merged, canonical_role, blocks)

    system_text = "\n".join(system_parts)
    messages = tuple(Message(role=role, content=tuple(blocks)) for role, blocks in merged)

    return ConverseParams(
        system=(system_text,) if system_text else (),
        messages=messages,
        inference_config=_inference_config(request),
        tool_config=translate_tool_config(request.tools, request.tool_choice),
    )


def extract_text_content(content: str | list[dict[str, Any]] | None) -> str:
    if content is None:
        return ""

    if isinstance(content, str):
        return content

    return "".join(
        part["text"]
        for part in content
        if isinstance(part, dict)
        and part.get("type") == "text"
        and isinstance(part.get("text"), str)
    )


def translate_tool_config(
    tools: list[ChatTool] | None,
    tool_choice: str | dict[str, Any] | None,
) -> ToolConfig | None:
    if not tools:
        return None

    choice, choice_name = _translate_tool_choice(tool_choice)
    if choice is ToolChoice.NONE:
        return None

    specs = tuple(
        ToolSpec(
            name=tool.function.name,
            description=tool.function.description,
            input_schema=tool.function.parameters,
        )
        for tool in tools
    )
    return ToolConfig(tools=specs, choice=choice, choice_name=choice_name)


def _canonical_role(role: str) -> Role | None:
    if role == "assistant":
        return Role.ASSISTANT
    if role == "user" or role in _TOOL_ROLES:
        return Role.USER
    return None


def _message_blocks(message: ChatCompletionMessage, role: str) -> list[ContentBlock]:
    text = extract_text_content(message.content)

    if role in _TOOL_ROLES:
        if not message.tool_call_id:
            logger.debug("Dropping %s message without tool_call_id", role)
            return []
        return [ToolResultBlock(tool_use_id=message.tool_call_id, text=text)]

    blocks: list[ContentBlock] = []
    if text:
        blocks.append(TextBlock(text=text))

    for tool_call in message.tool_calls or []:
        tool_use = _translate_tool_call(tool_call)
        if tool_use is not None:
            blocks.append(tool_use)

    return blocks


def _translate_tool_call(tool_call: ChatToolCall) -> ToolUseBlock | None:
    if not tool_call.id or not tool_call.function.name:
        logger.debug("Dropping tool call without id or name")
        return None

    arguments = tool_call.function.arguments
    try:
        tool_input = json_value.decode(arguments) if arguments else {}
    except MalformedValueError:
        logger.warning(
            "Dropping tool call %s with malformed arguments", tool_call.id
        )
        return None

    return ToolUseBlock(
        tool_use_id=tool_call.id,
        name=tool_call.function.name,
        input=tool_input,
    )


def _append_merged(
    merged: list[tuple[Role, list[ContentBlock]]],
    role: Role,
    blocks: list[ContentBlock],
) -> None:
    # Bedrock requires strict user/assistant alternation.
    if not merged or merged[-1][0] is not role:
        merged.append((role, list(blocks)))
        return

    previous = merged[-1][1]
    first, rest = blocks[0], blocks[1:]
    if isinstance(previous[-1], TextBlock) and isinstance(first, TextBlock):
        previous[-1] = TextBlock(text=previous[-1].text + "\n" + first.text)
        previous.extend(rest)
    else:
        previous.extend(blocks)


def _inference_config(request: ChatCompletionRequest) -> InferenceConfig:
    if request.max_tokens is not None:
        max_tokens = request.max_tokens
    elif request.max_completion_tokens is not None:
        max_tokens = request.max_completion_tokens
    else:
        max_tokens = DEFAULT_MAX_TOKENS

    if request.stop is None:
        stop_sequences: tuple[str, ...] = ()
    elif isinstance(request.stop, str):
        stop_sequences = (request.stop,)
    else:
        stop_sequences = tuple(request.stop)

    return InferenceConfig(
        max_tokens=max_tokens,
        temperature=request.temperature,
        top_p=request.top_p,
        stop_sequences=stop_sequences,
    )


def _translate_tool_choice(
    tool_choice: str | dict[str, Any] | None,
) -> tuple[ToolChoice | None, str | None]:
    if tool_choice is None:
        return None, None
    if tool_choice == "auto":
        return ToolChoice.AUTO, None
    if tool_choice == "none":
        return ToolChoice.NONE, None
    if tool_choice == "required":
        return ToolChoice.ANY, None

    if isinstance(tool_choice, dict):
        function = tool_choice.get("function")
        name = function.get("name") if isinstance(function, dict) else None
        if tool_choice.get("type") == "function" and isinstance(name, str) and name:
            return ToolChoice.TOOL, name

    return ToolChoice.AUTO, None
