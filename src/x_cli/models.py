# models.py
# Data contracts for the x pipeline engine.
# Pure schema and validation, no business logic.

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from x_cli.errors import InvalidStepError

STEP_KINDS = ("exec", "llm", "agentic", "subcommand")


# ---------------------------------------------------------------------------
# Command configuration
# ---------------------------------------------------------------------------


class Arg(BaseModel):
    """A positional argument declared by a command."""

    name: str
    description: str = ""
    rest: bool = Field(default=False, description="Capture all remaining tokens as one string.")


class ExecStep(BaseModel):
    """Run a shell command."""

    command: str = Field(default="", description="Default command, used when no OS variant matches.")
    windows: str = ""
    darwin: str = ""
    linux: str = ""
    confirm: bool = False
    silent: bool = False
    summary: str = ""
    risk: str = ""
    safer: str = ""


class LLMStep(BaseModel):
    """Make a single model call."""

    system: str = ""
    prompt: str = ""
    silent: bool = False


class AgenticStep(BaseModel):
    """Run a bounded multi-turn tool-use loop."""

    system: str = ""
    prompt: str = ""
    max_iterations: int = Field(default=0, description="0 or less means the default bound.")
    auto_execute: bool = False


class SubcommandStep(BaseModel):
    """Call another command with interpolated arguments."""

    name: str
    args: list[str] = Field(default_factory=list)
    silent: bool = False

    @field_validator("args", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v


class Step(BaseModel):
    """
    One pipeline step. Exactly one of exec/llm/agentic/subcommand is set.

    Validation runs at load time so a malformed step fails before anything
    executes.
    """

    id: str | None = None
    exec: ExecStep | None = None
    llm: LLMStep | None = None
    agentic: AgenticStep | None = None
    subcommand: SubcommandStep | None = None

    @model_validator(mode="after")
    def _exactly_one_variant(self) -> "Step":
        populated = [kind for kind in STEP_KINDS if getattr(self, kind) is not None]
        if len(populated) != 1:
            label = self.id or "<unnamed>"
            if populated:
                raise InvalidStepError(
                    f"step {label} declares multiple types ({', '.join(populated)}); "
                    "exactly one of exec, llm, agentic or subcommand is allowed"
                )
            raise InvalidStepError(
                f"step {label} has no valid type (exec, llm, agentic, or subcommand)"
            )
        return self

    @property
    def kind(self) -> str:
        for kind in STEP_KINDS:
            if getattr(self, kind) is not None:
                return kind
        raise InvalidStepError("step has no valid type")

    @property
    def body(self) -> ExecStep | LLMStep | AgenticStep | SubcommandStep:
        return getattr(self, self.kind)


class Command(BaseModel):
    """A named, reusable pipeline loaded from configuration."""

    description: str = ""
    args: list[Arg] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    source: str = Field(default="", exclude=True, description="Config layer that defined it.")

    @field_validator("args", "steps", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v


class CommandsConfig(BaseModel):
    """Merged view of every command source."""

    default: str = "shell"
    commands: dict[str, Command] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Pipeline state
# ---------------------------------------------------------------------------


class PipelineContext(BaseModel):
    """Mutable state for a single pipeline invocation. Owned by the orchestrator."""

    args: dict[str, str] = Field(default_factory=dict)
    step_outputs: dict[str, str] = Field(default_factory=dict)
    last_output: str = ""


class StepResult(BaseModel):
    """Output of a step or pipeline. cancelled=True means the user declined to run."""

    output: str = ""
    cancelled: bool = False


# ---------------------------------------------------------------------------
# Model client contracts
# ---------------------------------------------------------------------------


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0


class Completion(BaseModel):
    """Aggregated text of a single-turn call."""

    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    arguments: str = Field(default="{}", description="Raw JSON arguments as sent by the model.")


class AgentResponse(BaseModel):
    """One agentic turn, normalised from the wire format."""

    content: list[TextBlock | ToolUseBlock] = Field(default_factory=list)
    stop_reason: str = "end_turn"
    usage: TokenUsage = Field(default_factory=TokenUsage)


class ToolResult(BaseModel):
    tool_use_id: str
    content: str
    is_error: bool = False


class AgentOutcome(BaseModel):
    """Terminal state of an agentic loop."""

    status: Literal["completed", "exhausted", "abandoned"]
    output: str = ""
    turns: int = 0
