from unittest.mock import patch

import pytest

from x_cli import tools
from x_cli.errors import ShellExecutionError
from x_cli.tools import (
    CANCELLED_RESULT,
    build_agentic_tools,
    extract_output,
    handle_shell_tool,
)


@pytest.fixture(autouse=True)
def mock_display():
    with patch.object(tools, "display") as display:
        yield display

# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

def test_tool_definitions(values):
    shell_def, complete_def = build_agentic_tools(values)
    assert shell_def["function"]["name"] == "shell"
    assert shell_def["function"]["parameters"]["required"] == ["command"]
    assert complete_def["function"]["name"] == "complete"
    assert complete_def["function"]["parameters"]["required"] == ["output"]

def test_shell_tool_describes_environment(values):
    description = build_agentic_tools(values)[0]["function"]["description"]
    assert "OS: linux" in description
    assert "Current directory: /home/dev/project" in description

# ---------------------------------------------------------------------------
# Shell handler
# ---------------------------------------------------------------------------

@patch.object(tools, "shell")
def test_auto_execute_runs_without_asking(mock_shell, mock_display):
    mock_shell.run_captured.return_value = "ok"
    assert handle_shell_tool('{"command": "ls"}', auto_execute=True) == ("ok", False)
    mock_display.ask.assert_not_called()
    mock_display.exec_command.assert_called_once_with("ls")

@pytest.mark.parametrize("answer", ["", "y", "YES"])
@patch.object(tools, "shell")
def test_confirmed_command_runs(mock_shell, mock_display, answer):
    mock_display.ask.return_value = answer
    mock_shell.run_captured.return_value = "ran"
    assert handle_shell_tool('{"command": "ls"}', auto_execute=False) == ("ran", False)

@pytest.mark.parametrize("answer", ["n", "no", "later"])
@patch.object(tools, "shell")
def test_declined_command_is_cancelled(mock_shell, mock_display, answer):
    mock_display.ask.return_value = answer
    assert handle_shell_tool('{"command": "ls"}', auto_execute=False) == (CANCELLED_RESULT, False)
    mock_shell.run_captured.assert_not_called()

@patch.object(tools, "shell")
def test_malformed_input_is_error(mock_shell):
    content, is_error = handle_shell_tool("{not json", auto_execute=True)
    assert is_error
    assert content.startswith("Error parsing tool input")
    mock_shell.run_captured.assert_not_called()

@patch.object(tools, "shell")
def test_failing_command_returns_output(mock_shell):
    mock_shell.run_captured.side_effect = ShellExecutionError("exit status 1", exit_code=1, output="nope")
    content, is_error = handle_shell_tool('{"command": "false"}', auto_execute=True)
    assert is_error
    assert "exit status 1" in content
    assert "Output: nope" in content

# ---------------------------------------------------------------------------
# Complete handler
# ---------------------------------------------------------------------------

def test_extract_output():
    assert extract_output('{"output": "result"}') == "result"

def test_extract_output_non_string_is_json():
    assert extract_output('{"output": {"a": 1}}') == '{"a": 1}'

def test_extract_output_malformed_is_empty():
    assert extract_output("oops") == ""
    assert extract_output("[]") == ""
