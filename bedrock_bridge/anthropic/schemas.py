from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

_KNOWN_BLOCK_TYPES = {"text", "tool_use", "tool_result"}


class TextContent(BaseModel):
    type: Literal["text"]
    text: str | None = None

    model_config = ConfigDict(extra="allow")


class ToolUseContent(BaseModel):
    type: Literal["tool_use"]
    id: str | None = None
    name: str | None = None
    input: Any = None

    model_config = ConfigDict(extra="allow")


class ToolResultContent(BaseModel):
    type: Literal["tool_result"]
    tool_use_id: str | None = None
    content: str | list[dict[str, Any]] | None = None
    is_error: bool | None = None

    model_config = ConfigDict(extra="allow")

    def content_text(self) -> str:
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(
            part["text"]
            for part in self.content
            if part.get("type") == "text" and isinstance(part.get("text"), str)
        )


class OtherContent(BaseModel):
    """Any block type the gateway does not translate (images, documents, ...)."""

    type: str

    model_config = ConfigDict(extra="allow")


def _content_tag(value: Any) -> str:
    if isinstance(value, dict):
        block_type = value.get("type")
    else:
        block_type = getattr(value, "type", None)
    return block_type if block_type in _KNOWN_BLOCK_TYPES else "other"


MessageContentBlock = Annotated[
    Union[
        Annotated[TextContent, Tag("text")],
        Annotated[ToolUseContent, Tag("tool_use")],
        Annotated[ToolResultContent, Tag("tool_result")],
        Annotated[OtherContent, Tag("other")],
    ],
    Discriminator(_content_tag),
]


class SystemTextBlock(BaseModel):
    type: str = "text"
    text: str

    model_config = ConfigDict(extra="allow")


class MessagesMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str | list[MessageContentBlock]

    model_config = ConfigDict(extra="allow")


class AnthropicTool(BaseModel):
    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")


class AnthropicToolChoice(BaseModel):
    type: str
    name: str | None = None

    model_config = ConfigDict(extra="allow")


class MessagesRequest(BaseModel):
    model: str
    messages: list[MessagesMessage]
    max_tokens: int
    system: str | list[SystemTextBlock] | None = None
    tools: list[AnthropicTool] | None = None
    tool_choice: AnthropicToolChoice | None = None
    stream: bool = False
    metadata: dict[str, Any] | None = None
    stop_sequences: list[str] | None = None
    temperature: float | None = None
    top_k: int | None = None
    top_p: float | None = None

    model_config = ConfigDict(extra="allow")


class CountTokensRequest(BaseModel):
    model: str
    messages: list[MessagesMessage]
    system: str | list[SystemTextBlock] | None = None
    tools: list[AnthropicTool] | None = None

    model_config = ConfigDict(extra="allow")


class CountTokensResponse(BaseModel):
    input_tokens: int
