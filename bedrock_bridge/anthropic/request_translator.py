from __future__ import annotations

import logging

from bedrock_bridge.core.types import (
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

from .schemas import (
    AnthropicTool,
    AnthropicToolChoice,
    MessageContentBlock,
    MessagesMessage,
    MessagesRequest,
    SystemTextBlock,
    TextContent,
    ToolResultContent,
    ToolUseContent,
)

logger = logging.getLogger(__name__)


def translate_messages_request(request: MessagesRequest) -> ConverseParams:
    messages = tuple(
        message
        for message in (_translate_message(item) for item in request.messages)
        if message is not None
    )

    inference_config = InferenceConfig(
        max_tokens=request.max_tokens,
        temperature=request.temperature,
        top_p=request.top_p,
        stop_sequences=tuple(request.stop_sequences or ()),
    )

    return ConverseParams(
        system=system_blocks(request.system),
        messages=messages,
        inference_config=inference_config,
        tool_config=translate_tool_config(request.tools, request.tool_choice),
    )


def system_text(system: str | list[SystemTextBlock] | None) -> str:
    if system is None:
        return ""
    if isinstance(system, str):
        return system
    return "\n".join(block.text for block in system)


def system_blocks(system: str | list[SystemTextBlock] | None) -> tuple[str, ...]:
    text = system_text(system)
    return (text,) if text else ()


def content_blocks(message: MessagesMessage) -> list[MessageContentBlock]:
    if isinstance(message.content, str):
        return [TextContent(type="text", text=message.content)]
    return list(message.content)


def translate_tool_config(
    tools: list[AnthropicTool] | None,
    tool_choice: AnthropicToolChoice | None,
) -> ToolConfig | None:
    if not tools:
        return None

    choice, choice_name = _translate_tool_choice(tool_choice)
    if choice is ToolChoice.NONE:
        return None

    specs = tuple(
        ToolSpec(
            name=tool.name,
            description=tool.description,
            input_schema=tool.input_schema,
        )
        for tool in tools
    )
    return ToolConfig(tools=specs, choice=choice, choice_name=choice_name)


def _translate_message(message: MessagesMessage) -> Message | None:
    blocks = [
        translated
        for translated in (_translate_block(block) for block in content_blocks(message))
        if translated is not None
    ]
    if not blocks:
        return None

    return Message(role=Role(message.role), content=tuple(blocks))


def _translate_block(block: MessageContentBlock) -> ContentBlock | None:
    if isinstance(block, TextContent):
        if block.text is None:
            return None
        return TextBlock(text=block.text)

    if isinstance(block, ToolUseContent):
        if not block.id or not block.name:
            logger.debug("Dropping tool_use block without id or name")
            return None
        tool_input = block.input if block.input is not None else {}
        return ToolUseBlock(tool_use_id=block.id, name=block.name, input=tool_input)

    if isinstance(block, ToolResultContent):
        if not block.tool_use_id:
            logger.debug("Dropping tool_result block without tool_use_id")
            return None
        return ToolResultBlock(
            tool_use_id=block.tool_use_id,
            text=block.content_text(),
            is_error=bool(block.is_error),
        )

    logger.debug("Dropping unsupported content block type %r", block.type)
    return None


def _translate_tool_choice(
    tool_choice: AnthropicToolChoice | None,
) -> tuple[ToolChoice | None, str | None]:
    if tool_choice is None:
        return None, None

    if tool_choice.type == "any":
        return ToolChoice.ANY, None
    if tool_choice.type == "none":
        return ToolChoice.NONE, None
    if tool_choice.type == "tool" and tool_choice.name:
        return ToolChoice.TOOL, tool_choice.name

    return ToolChoice.AUTO, None
