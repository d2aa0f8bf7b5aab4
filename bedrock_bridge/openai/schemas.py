from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatCompletionStreamOptions(BaseModel):
    include_usage: bool = False

    model_config = ConfigDict(extra="allow")


class ChatToolCallFunction(BaseModel):
    name: str | None = None
    arguments: str | None = None

    model_config = ConfigDict(extra="allow")


class ChatToolCall(BaseModel):
    id: str | None = None
    type: str = "function"
    function: ChatToolCallFunction

    model_config = ConfigDict(extra="allow")


class ChatCompletionMessage(BaseModel):
    role: str
    content: str | list[dict[str, Any]] | None = None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ChatToolCall] | None = None

    model_config = ConfigDict(extra="allow")


class ChatFunctionDefinition(BaseModel):
    name: str
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    model_config = ConfigDict(extra="allow")


class ChatTool(BaseModel):
    type: str = "function"
    function: ChatFunctionDefinition

    model_config = ConfigDict(extra="allow")


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatCompletionMessage]
    stream: bool = False
    stream_options: ChatCompletionStreamOptions | None = None
    tools: list[ChatTool] | None = None
    tool_choice: str | dict[str, Any] | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    max_completion_tokens: int | None = None
    stop: str | list[str] | None = None

    # Accepted but not forwarded to Bedrock (ignored with warning)
    response_format: dict[str, Any] | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    logprobs: bool | None = None
    n: int | None = None
    seed: int | None = None
    user: str | None = None
    parallel_tool_calls: bool | None = None
    metadata: dict[str, Any] | None = None

    model_config = ConfigDict(extra="allow")
