# errors.py
# Exception taxonomy for the x pipeline engine.
#
# Every failure the engine can raise derives from XError so the CLI boundary
# can report it uniformly. Declining a confirmation is NOT an error; it is
# carried back as a cancelled StepResult.


class XError(Exception):
    """Base class for all x-cli failures."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigError(XError):
    """Raised when the app config or a commands file cannot be read or parsed."""


class InvalidStepError(XError):
    """Raised when a step declares none, or more than one, of its variants."""


class CommandNotFoundError(XError):
    """Raised when a subcommand step references an unknown command."""

    def __init__(self, name: str) -> None:
        super().__init__(f"command not found: {name}")
        self.name = name


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class MissingArgumentError(XError):
    """Raised when the user supplies fewer positional tokens than declared args."""

    def __init__(self, name: str) -> None:
        super().__init__(f"missing required argument: {name}")
        self.name = name


class InterpolationError(XError):
    """Raised when a JSON field placeholder cannot be resolved."""


class StepExecutionError(XError):
    """
    Raised by the orchestrator when a step fails.

    Always chained (raise ... from cause) to the underlying error so callers
    can inspect the root failure.
    """

    def __init__(self, index: int, kind: str, cause: Exception) -> None:
        super().__init__(f"step {index} ({kind}) failed: {cause}")
        self.index = index
        self.kind = kind
        self.cause = cause


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------


class ShellExecutionError(XError):
    """Raised on a non-zero exit, a spawn failure or an interrupted command."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        output: str = "",
        interactive: bool = False,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output
        self.interactive = interactive


class LLMRequestError(XError):
    """Raised when the model client fails (transport or API error)."""
