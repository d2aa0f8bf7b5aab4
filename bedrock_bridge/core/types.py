from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .json_value import JSONValue

DEFAULT_MAX_TOKENS = 4096


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class TextBlock:
    text: str


@dataclass(frozen=True, slots=True)
class ToolUseBlock:
    tool_use_id: str
    name: str
    input: JSONValue


@dataclass(frozen=True, slots=True)
class ToolResultBlock:
    tool_use_id: str
    text: str
    is_error: bool = False


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(frozen=True, slots=True)
class Message:
    role: Role
    content: tuple[ContentBlock, ...]


@dataclass(frozen=True, slots=True)
class InferenceConfig:
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float | None = None
    top_p: float | None = None
    stop_sequences: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ToolSpec:
    name: str
    input_schema: JSONValue
    description: str | None = None


class ToolChoice(str, Enum):
    AUTO = "auto"
    ANY = "any"
    TOOL = "tool"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class ToolConfig:
    tools: tuple[ToolSpec, ...]
    # None leaves the choice to the model; not every Bedrock model accepts one.
    choice: ToolChoice | None = None
    # Only set when choice is ToolChoice.TOOL.
    choice_name: str | None = None


@dataclass(frozen=True, slots=True)
class ConverseParams:
    """Dialect-neutral arguments for one Bedrock Converse call."""

    system: tuple[str, ...]
    messages: tuple[Message, ...]
    inference_config: InferenceConfig
    tool_config: ToolConfig | None = None


@dataclass(frozen=True, slots=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True, slots=True)
class BackendResponse:
    content: tuple[ContentBlock, ...]
    stop_reason: str | None
    usage: TokenUsage = field(default_factory=TokenUsage)


# Backend stream events, in the order Bedrock emits them for a turn.


@dataclass(frozen=True, slots=True)
class MessageStartEvent:
    role: str = Role.ASSISTANT.value


@dataclass(frozen=True, slots=True)
class ContentBlockStartEvent:
    index: int
    tool_use_id: str | None = None
    name: str | None = None

    @property
    def is_tool_use(self) -> bool:
        return self.tool_use_id is not None


@dataclass(frozen=True, slots=True)
class ContentBlockDeltaEvent:
    index: int
    text: str | None = None
    tool_input: str | None = None


@dataclass(frozen=True, slots=True)
class ContentBlockStopEvent:
    index: int


@dataclass(frozen=True, slots=True)
class MessageStopEvent:
    stop_reason: str | None


@dataclass(frozen=True, slots=True)
class MetadataEvent:
    usage: TokenUsage


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    kind: str


BackendStreamEvent = Union[
    MessageStartEvent,
    ContentBlockStartEvent,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageStopEvent,
    MetadataEvent,
    UnknownEvent,
]
