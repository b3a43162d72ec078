from unittest.mock import MagicMock, patch

import pytest
from openai import OpenAIError

from x_cli.errors import LLMRequestError
from x_cli.llm import LLMClient, assistant_message, tool_result_messages
from x_cli.models import AgentResponse, TextBlock, ToolResult, ToolUseBlock


def _raw_response(content=None, tool_calls=None, finish_reason="stop"):
    call_mocks = []
    for call_id, name, arguments in tool_calls or []:
        call = MagicMock()
        call.id = call_id
        call.function.name = name
        call.function.arguments = arguments
        call_mocks.append(call)

    choice = MagicMock()
    choice.message.content = content
    choice.message.tool_calls = call_mocks or None
    choice.finish_reason = finish_reason

    response = MagicMock()
    response.choices = [choice]
    response.usage.prompt_tokens = 12
    response.usage.completion_tokens = 7
    response.usage.prompt_tokens_details.cached_tokens = 4
    return response


@pytest.fixture
def client():
    with patch("x_cli.llm.OpenAI") as openai_cls:
        llm = LLMClient(api_key="k", base_url="https://example.test/v1", model="vendor/model")
        llm.raw = openai_cls.return_value
        yield llm

# ---------------------------------------------------------------------------
# Single turn
# ---------------------------------------------------------------------------

def test_generate_returns_stripped_text_and_usage(client):
    client.raw.chat.completions.create.return_value = _raw_response(content="  ls -la \n")
    completion = client.generate("sys", "list files", max_tokens=1024)

    assert completion.text == "ls -la"
    assert completion.usage.input_tokens == 12
    assert completion.usage.output_tokens == 7
    assert completion.usage.cache_read_tokens == 4

    kwargs = client.raw.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "vendor/model"
    assert kwargs["max_tokens"] == 1024
    assert kwargs["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "list files"},
    ]

def test_api_errors_are_wrapped(client):
    client.raw.chat.completions.create.side_effect = OpenAIError("rate limited")
    with pytest.raises(LLMRequestError, match="rate limited"):
        client.generate("sys", "hi")

def test_empty_choices_rejected(client):
    response = _raw_response(content="x")
    response.choices = []
    client.raw.chat.completions.create.return_value = response
    with pytest.raises(LLMRequestError, match="no choices"):
        client.generate("sys", "hi")

# ---------------------------------------------------------------------------
# Agentic turn
# ---------------------------------------------------------------------------

def test_create_turn_normalises_tool_calls(client):
    client.raw.chat.completions.create.return_value = _raw_response(
        content="Checking.",
        tool_calls=[("call_1", "shell", '{"command": "ls"}')],
        finish_reason="tool_calls",
    )
    turn = client.create_turn("sys", [{"role": "user", "content": "go"}], tools=[{"type": "function"}])

    assert turn.stop_reason == "tool_use"
    assert turn.content[0] == TextBlock(text="Checking.")
    assert turn.content[1] == ToolUseBlock(id="call_1", name="shell", arguments='{"command": "ls"}')
    kwargs = client.raw.chat.completions.create.call_args.kwargs
    assert kwargs["max_tokens"] == 4096
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

def test_create_turn_end_turn(client):
    client.raw.chat.completions.create.return_value = _raw_response(content="done")
    turn = client.create_turn("sys", [], tools=[])
    assert turn.stop_reason == "end_turn"
    assert len(turn.content) == 1

# ---------------------------------------------------------------------------
# Message construction
# ---------------------------------------------------------------------------

def test_assistant_message_replays_tool_calls():
    response = AgentResponse(content=[
        TextBlock(text="a"),
        ToolUseBlock(id="t1", name="complete", arguments='{"output": "x"}'),
    ])
    message = assistant_message(response)
    assert message["content"] == "a"
    assert message["tool_calls"][0]["function"] == {"name": "complete", "arguments": '{"output": "x"}'}

def test_assistant_message_without_text():
    message = assistant_message(AgentResponse(content=[ToolUseBlock(id="t1", name="shell")]))
    assert message["content"] is None

def test_tool_result_messages():
    results = [ToolResult(tool_use_id="t1", content="out"), ToolResult(tool_use_id="t2", content="Error: x", is_error=True)]
    assert tool_result_messages(results) == [
        {"role": "tool", "tool_call_id": "t1", "content": "out"},
        {"role": "tool", "tool_call_id": "t2", "content": "Error: x"},
    ]
