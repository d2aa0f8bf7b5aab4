from __future__ import annotations

from bedrock_bridge.anthropic.adapter import estimate_input_tokens
from bedrock_bridge.anthropic.request_translator import translate_messages_request
from bedrock_bridge.anthropic.response_translator import translate_response as to_anthropic
from bedrock_bridge.anthropic.schemas import MessagesRequest
from bedrock_bridge.core.types import (
    BackendResponse,
    Role,
    TextBlock,
    TokenUsage,
    ToolChoice,
    ToolResultBlock,
    ToolUseBlock,
)
from bedrock_bridge.openai.request_translator import extract_text_content, translate_chat_request
from bedrock_bridge.openai.response_translator import translate_response as to_openai
from bedrock_bridge.openai.schemas import ChatCompletionRequest


def _chat_request(messages, **extra) -> ChatCompletionRequest:
    return ChatCompletionRequest(model="gpt-4", messages=messages, **extra)


def test_consecutive_same_role_messages_are_merged():
    params = translate_chat_request(
        _chat_request(
            [
                {"role": "user", "content": "First"},
                {"role": "user", "content": "Second"},
                {"role": "assistant", "content": "Reply"},
            ]
        )
    )

    assert [message.role for message in params.messages] == [Role.USER, Role.ASSISTANT]
    assert params.messages[0].content == (TextBlock(text="First\nSecond"),)


def test_parallel_tool_results_merge_into_one_user_turn():
    params = translate_chat_request(
        _chat_request(
            [
                {"role": "user", "content": "Go"},
                {
                    "role": "assistant",
                    "tool_calls": [
                        {"id": "a", "function": {"name": "one", "arguments": "{}"}},
                        {"id": "b", "function": {"name": "two", "arguments": ""}},
                    ],
                },
                {"role": "tool", "tool_call_id": "a", "content": "1"},
                {"role": "tool", "tool_call_id": "b", "content": [{"type": "text", "text": "2"}]},
            ]
        )
    )

    assert len(params.messages) == 3
    assert params.messages[1].content == (
        ToolUseBlock(tool_use_id="a", name="one", input={}),
        ToolUseBlock(tool_use_id="b", name="two", input={}),
    )
    assert params.messages[2].content == (
        ToolResultBlock(tool_use_id="a", text="1"),
        ToolResultBlock(tool_use_id="b", text="2"),
    )


def test_malformed_tool_arguments_drop_the_call():
    params = translate_chat_request(
        _chat_request(
            [
                {"role": "user", "content": "Go"},
                {
                    "role": "assistant",
                    "content": "Trying",
                    "tool_calls": [
                        {"id": "a", "function": {"name": "one", "arguments": "{broken"}},
                    ],
                },
            ]
        )
    )

    assert params.messages[1].content == (TextBlock(text="Trying"),)


def test_tool_message_without_id_and_unknown_roles_are_dropped():
    params = translate_chat_request(
        _chat_request(
            [
                {"role": "user", "content": "Hi"},
                {"role": "tool", "content": "orphan"},
                {"role": "narrator", "content": "ignored"},
            ]
        )
    )

    assert len(params.messages) == 1
    assert params.messages[0].content == (TextBlock(text="Hi"),)


def test_tool_choice_none_omits_tool_config():
    tools = [{"type": "function", "function": {"name": "one"}}]

    none_params = translate_chat_request(
        _chat_request([{"role": "user", "content": "Hi"}], tools=tools, tool_choice="none")
    )
    named_params = translate_chat_request(
        _chat_request(
            [{"role": "user", "content": "Hi"}],
            tools=tools,
            tool_choice={"type": "function", "function": {"name": "one"}},
        )
    )

    assert none_params.tool_config is None
    assert named_params.tool_config.choice is ToolChoice.TOOL
    assert named_params.tool_config.choice_name == "one"
    assert named_params.tool_config.tools[0].input_schema == {
        "type": "object",
        "properties": {},
    }


def test_stop_list_and_max_tokens_precedence():
    params = translate_chat_request(
        _chat_request(
            [{"role": "user", "content": "Hi"}],
            stop=["a", "b"],
            max_tokens=10,
            max_completion_tokens=20,
        )
    )

    assert params.inference_config.stop_sequences == ("a", "b")
    assert params.inference_config.max_tokens == 10


def test_extract_text_content_skips_non_text_parts():
    content = [
        {"type": "text", "text": "Look at "},
        {"type": "image_url", "image_url": {"url": "https://example.com/x.png"}},
        {"type": "text", "text": "this"},
    ]

    assert extract_text_content(content) == "Look at this"
    assert extract_text_content(None) == ""


def test_anthropic_empty_messages_are_dropped():
    request = MessagesRequest(
        model="claude-sonnet-4-5",
        max_tokens=32,
        messages=[
            {"role": "user", "content": [{"type": "image", "source": {}}]},
            {"role": "user", "content": "Hello"},
        ],
        tool_choice={"type": "none"},
        tools=[{"name": "unused"}],
    )

    params = translate_messages_request(request)

    assert len(params.messages) == 1
    assert params.system == ()
    assert params.tool_config is None


def test_anthropic_input_token_estimate_counts_tools():
    request = MessagesRequest(
        model="claude-sonnet-4-5",
        max_tokens=32,
        messages=[{"role": "user", "content": "12345678"}],
        tools=[{"name": "abcd", "input_schema": {}}],
    )

    # 8 message chars + 4 name chars + 2 schema chars
    assert estimate_input_tokens(request.system, request.messages, request.tools) == 3


def test_openai_response_text_only():
    response = BackendResponse(
        content=(TextBlock(text="Hel"), TextBlock(text="lo")),
        stop_reason="max_tokens",
        usage=TokenUsage(input_tokens=2, output_tokens=3, total_tokens=5),
    )

    payload = to_openai(response, model="gpt-4", completion_id="chatcmpl-x", created=1)

    assert payload["choices"][0]["message"] == {"role": "assistant", "content": "Hello"}
    assert payload["choices"][0]["finish_reason"] == "length"
    assert payload["usage"]["total_tokens"] == 5


def test_anthropic_response_empty_content():
    response = BackendResponse(content=(), stop_reason=None)

    payload = to_anthropic(response, model="claude", message_id="msg_x")

    assert payload["content"] == []
    assert payload["stop_reason"] == "end_turn"
    assert payload["usage"] == {"input_tokens": 0, "output_tokens": 0}


def test_tool_choice_is_unset_unless_requested():
    openai_tools = [{"type": "function", "function": {"name": "one"}}]
    anthropic_tools = [{"name": "one"}]

    openai_default = translate_chat_request(
        _chat_request([{"role": "user", "content": "Hi"}], tools=openai_tools)
    )
    openai_auto = translate_chat_request(
        _chat_request([{"role": "user", "content": "Hi"}], tools=openai_tools, tool_choice="auto")
    )
    anthropic_default = translate_messages_request(
        MessagesRequest(
            model="claude-sonnet-4-5",
            max_tokens=32,
            messages=[{"role": "user", "content": "Hi"}],
            tools=anthropic_tools,
        )
    )
    anthropic_auto = translate_messages_request(
        MessagesRequest(
            model="claude-sonnet-4-5",
            max_tokens=32,
            messages=[{"role": "user", "content": "Hi"}],
            tools=anthropic_tools,
            tool_choice={"type": "auto"},
        )
    )

    assert openai_default.tool_config.choice is None
    assert openai_auto.tool_config.choice is ToolChoice.AUTO
    assert anthropic_default.tool_config.choice is None
    assert anthropic_auto.tool_config.choice is ToolChoice.AUTO
