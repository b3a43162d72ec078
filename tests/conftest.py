import pytest

from x_cli.models import AgentResponse, Completion, TextBlock, TokenUsage, ToolUseBlock
from x_cli.template import TemplateValues


class FakeClient:
    """Scripted stand-in for LLMClient. Records every call it receives."""

    def __init__(self, completions=None, turns=None):
        self.completions = list(completions or [])
        self.turns = list(turns or [])
        self.generate_calls = []
        self.turn_calls = []

    def generate(self, system, prompt, max_tokens=1024):
        self.generate_calls.append({"system": system, "prompt": prompt, "max_tokens": max_tokens})
        text = self.completions.pop(0) if self.completions else ""
        return Completion(text=text, usage=TokenUsage(input_tokens=10, output_tokens=5))

    def create_turn(self, system, messages, tools, max_tokens=4096):
        self.turn_calls.append({"system": system, "messages": list(messages), "tools": tools})
        if self.turns:
            return self.turns.pop(0)
        return AgentResponse(content=[TextBlock(text="nothing to do")], stop_reason="end_turn")


def shell_call(call_id, command):
    return ToolUseBlock(id=call_id, name="shell", arguments=f'{{"command": "{command}"}}')


def complete_call(call_id, output):
    return ToolUseBlock(id=call_id, name="complete", arguments=f'{{"output": "{output}"}}')


@pytest.fixture
def values():
    return TemplateValues(
        time="12:00:00",
        date="2024-01-02",
        datetime="2024-01-02 12:00:00",
        directory="/home/dev/project",
        os="linux",
        arch="amd64",
        shell="/bin/bash",
        user="dev",
    )


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point every config path at a temporary XDG directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setattr("x_cli.settings.sys.platform", "linux")
    for var in ("X_API_KEY", "OPENROUTER_API_KEY", "X_BASE_URL", "X_MODEL", "DRYRUN", "DEBUG"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path / "config" / "x"
