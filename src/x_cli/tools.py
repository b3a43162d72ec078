# tools.py
# Tool definitions and handlers for agentic steps.
# The agent loop exposes exactly two tools: shell and complete.

import json
import logging
from typing import Any

from x_cli import display, shell
from x_cli.errors import ShellExecutionError
from x_cli.template import TemplateValues

logger = logging.getLogger(__name__)

TOOL_SHELL = "shell"
TOOL_COMPLETE = "complete"

COMPLETE_ACK = "Workflow completed."
CANCELLED_RESULT = "Command execution cancelled by user."


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


def _function_tool(name: str, description: str, param: str, param_description: str) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {param: {"type": "string", "description": param_description}},
                "required": [param],
            },
        },
    }


def shell_tool(values: TemplateValues) -> dict[str, Any]:
    description = f"""\
Execute a shell command and return the output.

Environment:
- OS: {values.os}
- Architecture: {values.arch}
- Shell: {values.shell}
- Current directory: {values.directory}
- User: {values.user}

What the user sees:
- The command is shown to the user (either for confirmation or as "Executing: <cmd>")
- Command output is NOT shown to the user, only returned to you
- Your text responses ARE shown to the user (rendered as markdown)

Since command output is hidden from the user, summarize important results in your responses."""
    return _function_tool(TOOL_SHELL, description, "command", "The shell command to execute")


def complete_tool() -> dict[str, Any]:
    description = """\
Signal that the workflow is complete. Call this when you have finished the task.

The output you provide here becomes the result of this step and may be passed to subsequent steps in the pipeline. Provide the actual output/result, not a description of what you did.

Communicate progress and explanations in your text responses BEFORE calling this."""
    return _function_tool(TOOL_COMPLETE, description, "output", "The final output or result of the task")


def build_agentic_tools(values: TemplateValues) -> list[dict[str, Any]]:
    return [shell_tool(values), complete_tool()]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _parse_arguments(arguments: str) -> dict[str, Any]:
    data = json.loads(arguments or "{}")
    if not isinstance(data, dict):
        raise ValueError("tool input must be a JSON object")
    return data


def handle_shell_tool(arguments: str, auto_execute: bool) -> tuple[str, bool]:
    """
    Run a shell tool call. Returns (result_text, is_error).

    Declining the confirmation is not an error: the model is told the command
    was cancelled and the loop carries on.
    """
    try:
        command = str(_parse_arguments(arguments).get("command", ""))
    except ValueError as exc:
        return f"Error parsing tool input: {exc}", True

    if auto_execute:
        display.exec_command(command)
    else:
        display.command_for_confirm(command)
        response = display.ask("Run this command? [Y/n]: ").strip().lower()
        if response not in ("", "y", "yes"):
            return CANCELLED_RESULT, False
        display.info("")

    try:
        output = shell.run_captured(command)
    except ShellExecutionError as exc:
        logger.debug("shell tool failed: %s", exc)
        return f"Error: {exc}\nOutput: {exc.output}", True
    return output, False


def extract_output(arguments: str) -> str:
    """Pull the final result out of a complete tool call; "" if malformed."""
    try:
        value = _parse_arguments(arguments).get("output", "")
    except ValueError:
        return ""
    return value if isinstance(value, str) else json.dumps(value)
