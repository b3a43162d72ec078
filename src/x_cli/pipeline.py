# pipeline.py
# Pipeline orchestrator.
#
# Control flow:
#   bind user args → for each step: sample template values → dispatch
#   → record output (id + last_output) → next step
#
# Steps run strictly in order. The first failure aborts the whole pipeline
# (no retry, no partial recovery); a cancelled step stops it early and the
# cancellation is handed back to the caller, which decides how to exit.

import logging
from collections.abc import Callable

from x_cli import display
from x_cli.agent import run_agentic_step
from x_cli.errors import MissingArgumentError, StepExecutionError
from x_cli.models import (
    Arg,
    Command,
    CommandsConfig,
    PipelineContext,
    Step,
    StepResult,
    TokenUsage,
)
from x_cli.settings import is_dry_run
from x_cli.steps import run_exec_step, run_llm_step, run_subcommand_step
from x_cli.template import TemplateValues, get_template_values

logger = logging.getLogger(__name__)


def bind_args(arg_defs: list[Arg], user_args: list[str]) -> dict[str, str]:
    """
    Bind positional tokens to declared args in order.

    A rest arg takes every remaining token joined by spaces (possibly none);
    any other arg takes exactly one token.
    """
    bound: dict[str, str] = {}
    index = 0
    for arg in arg_defs:
        if arg.rest:
            bound[arg.name] = " ".join(user_args[index:])
            index = len(user_args)
            continue
        if index >= len(user_args):
            raise MissingArgumentError(arg.name)
        bound[arg.name] = user_args[index]
        index += 1
    return bound


def _ignore_usage(usage: TokenUsage) -> None:
    return None


class Pipeline:
    """
    Runs commands from one CommandsConfig against one model client.

    Example:
        pipeline = Pipeline(client, config, on_usage=record_usage)
        result = pipeline.run(config.commands["shell"], ["list", "files"])
        if result.cancelled:
            ...
    """

    def __init__(
        self,
        client,
        config: CommandsConfig,
        *,
        dry_run: bool | None = None,
        on_usage: Callable[[TokenUsage], None] = _ignore_usage,
        template_provider: Callable[[], TemplateValues] = get_template_values,
    ) -> None:
        self._client = client
        self._config = config
        self._dry_run = is_dry_run() if dry_run is None else dry_run
        self._on_usage = on_usage
        self._template_provider = template_provider

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _run_step(
        self,
        step: Step,
        ctx: PipelineContext,
        *,
        is_last: bool,
        capture_output: bool,
    ) -> StepResult:
        values = self._template_provider()

        if step.exec is not None:
            return run_exec_step(
                ctx,
                step.exec,
                values,
                is_last=is_last,
                capture_output=capture_output,
                dry_run=self._dry_run,
            )
        if step.llm is not None:
            return run_llm_step(
                self._client, ctx, step.llm, values,
                dry_run=self._dry_run, on_usage=self._on_usage,
            )
        if step.agentic is not None:
            return run_agentic_step(
                self._client, ctx, step.agentic, values,
                dry_run=self._dry_run, on_usage=self._on_usage,
            )
        return run_subcommand_step(
            self._config, ctx, step.subcommand, values,
            dry_run=self._dry_run, run_nested=self._run_nested,
        )

    def _run_nested(self, command: Command, args: list[str]) -> StepResult:
        return self.run(command, args, capture_output=True)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, command: Command, user_args: list[str], capture_output: bool = False) -> StepResult:
        """
        Execute every step of command with a fresh context.

        capture_output=True is used for nested calls: the final exec step then
        captures instead of taking over the terminal.
        """
        ctx = PipelineContext()

        if self._dry_run and not capture_output:
            display.dry_run("Dry run mode - no commands will be executed")

        logger.debug("starting pipeline with %d steps", len(command.steps))
        logger.debug("user args: %r", user_args)

        ctx.args = bind_args(command.args, user_args)
        logger.debug("parsed args: %r", ctx.args)

        total = len(command.steps)
        for index, step in enumerate(command.steps):
            label = step.id or f"step-{index + 1}"
            logger.debug("=== step %d: %s (id=%s) ===", index + 1, step.kind, label)

            try:
                result = self._run_step(
                    step,
                    ctx,
                    is_last=index == total - 1,
                    capture_output=capture_output,
                )
            except Exception as exc:
                raise StepExecutionError(index + 1, step.kind, exc) from exc

            if result.cancelled:
                logger.debug("step %d cancelled by user", index + 1)
                return result

            ctx.last_output = result.output
            if step.id:
                ctx.step_outputs[step.id] = result.output
            logger.debug("step output length: %d bytes", len(result.output.encode("utf-8")))

        if self._dry_run and not capture_output:
            display.dry_run("Dry run complete")

        return StepResult(output=ctx.last_output)


def run_pipeline(
    client,
    config: CommandsConfig,
    command: Command,
    user_args: list[str],
    capture_output: bool = False,
    **kwargs,
) -> StepResult:
    """Convenience wrapper: build a Pipeline and run one command."""
    return Pipeline(client, config, **kwargs).run(command, user_args, capture_output)
