# steps.py
# Executors for exec, llm and subcommand steps.
# The agentic executor lives in agent.py; dispatch happens in pipeline.py.
#
# Every executor takes the shared context plus a template snapshot sampled
# for this step, and returns a StepResult. None of them mutate the context.

import logging
from collections.abc import Callable

from x_cli import display, shell
from x_cli.errors import CommandNotFoundError, InterpolationError
from x_cli.interpolate import interpolate_variables
from x_cli.models import (
    Command,
    CommandsConfig,
    ExecStep,
    LLMStep,
    PipelineContext,
    StepResult,
    SubcommandStep,
    TokenUsage,
)
from x_cli.settings import DEFAULT_MAX_TOKENS
from x_cli.template import OS_DARWIN, OS_LINUX, OS_WINDOWS, TemplateValues, apply_template

logger = logging.getLogger(__name__)

DRY_RUN_EXEC_OUTPUT = "[dry run - no output]"
DRY_RUN_LLM_OUTPUT = "[dry run - no LLM response]"
DRY_RUN_SUBCOMMAND_OUTPUT = "[dry run - no command execution]"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def render(text: str, ctx: PipelineContext, values: TemplateValues, dry_run: bool = False) -> str:
    """Static placeholders first, then dynamic ones."""
    return interpolate_variables(apply_template(text, values), ctx, dry_run)


def prepare_prompts(
    system: str,
    prompt: str,
    ctx: PipelineContext,
    values: TemplateValues,
    dry_run: bool = False,
) -> tuple[str, str]:
    try:
        system = render(system, ctx, values, dry_run)
    except InterpolationError as exc:
        raise InterpolationError(f"failed to interpolate system prompt: {exc}") from exc
    try:
        prompt = render(prompt, ctx, values, dry_run)
    except InterpolationError as exc:
        raise InterpolationError(f"failed to interpolate user prompt: {exc}") from exc

    logger.debug("system prompt:\n%s", system)
    logger.debug("user prompt:\n%s", prompt)
    return system, prompt


def _annotation(text: str, ctx: PipelineContext, dry_run: bool = False) -> str:
    """Summary/risk/safer are advisory; an unresolvable one is shown as empty."""
    try:
        return interpolate_variables(text, ctx, dry_run)
    except InterpolationError as exc:
        logger.debug("annotation dropped: %s", exc)
        return ""


def is_risky(risk: str) -> bool:
    """Medium and high risk (case-insensitive prefix). Anything else is low risk."""
    lowered = risk.lower()
    return lowered.startswith("medium") or lowered.startswith("high")


def confirm_run(risky: bool) -> bool:
    """
    Ask before running a command.

    Risky commands default to No and need an explicit y/yes; others default
    to Yes and are only declined by n/no.
    """
    if risky:
        response = display.ask("Run this command? [y/N]: ").strip().lower()
        return response in ("y", "yes")
    response = display.ask("Run this command? [Y/n]: ").strip().lower()
    return response not in ("n", "no")


def select_os_command(step: ExecStep, os_name: str) -> str:
    variants = {OS_WINDOWS: step.windows, OS_DARWIN: step.darwin, OS_LINUX: step.linux}
    return variants.get(os_name) or step.command


# ---------------------------------------------------------------------------
# exec
# ---------------------------------------------------------------------------


def run_exec_step(
    ctx: PipelineContext,
    step: ExecStep,
    values: TemplateValues,
    *,
    is_last: bool,
    capture_output: bool,
    dry_run: bool,
) -> StepResult:
    """
    Run a shell step.

    Mode selection:
      last step, top-level call      → interactive, returns ""
      last step, nested call         → streaming capture
      silent                         → silent capture
      otherwise                      → streaming capture
    """
    try:
        command = interpolate_variables(select_os_command(step, values.os), ctx, dry_run)
    except InterpolationError as exc:
        raise InterpolationError(f"failed to interpolate command: {exc}") from exc

    logger.debug("command: %s", command)
    logger.debug(
        "confirm=%s silent=%s is_last=%s capture_output=%s",
        step.confirm, step.silent, is_last, capture_output,
    )

    if dry_run:
        display.dry_run(f"Would execute: {command}")
        summary = _annotation(step.summary, ctx, dry_run=True)
        if summary:
            display.dry_run(f"Summary: {summary}")
        risk = _annotation(step.risk, ctx, dry_run=True)
        if risk:
            display.dry_run(f"Risk: {risk}")
        return StepResult(output=DRY_RUN_EXEC_OUTPUT)

    if step.confirm:
        summary = _annotation(step.summary, ctx)
        risk = _annotation(step.risk, ctx)
        safer = _annotation(step.safer, ctx)
        risky = is_risky(risk)

        display.confirm_info(summary, risk, safer, risky)
        display.command_for_confirm(command)
        if not confirm_run(risky):
            display.cancelled()
            return StepResult(cancelled=True)
        display.info("")

    if is_last and not step.silent:
        if not step.confirm:
            display.exec_command(command)
        if capture_output:
            return StepResult(output=shell.run_streaming(command))
        shell.run_interactive(command)
        return StepResult(output="")

    if not step.silent and not step.confirm:
        display.exec_command(command)

    if step.silent:
        return StepResult(output=shell.run_captured(command))
    return StepResult(output=shell.run_streaming(command))


# ---------------------------------------------------------------------------
# llm
# ---------------------------------------------------------------------------


def run_llm_step(
    client,
    ctx: PipelineContext,
    step: LLMStep,
    values: TemplateValues,
    *,
    dry_run: bool,
    on_usage: Callable[[TokenUsage], None],
) -> StepResult:
    system, prompt = prepare_prompts(step.system, step.prompt, ctx, values, dry_run)

    if dry_run:
        display.dry_run("Would call LLM with:")
        display.dry_run(f"  System prompt length: {len(system.encode('utf-8'))} bytes")
        display.dry_run(f"  User prompt length: {len(prompt.encode('utf-8'))} bytes")
        return StepResult(output=DRY_RUN_LLM_OUTPUT)

    completion = client.generate(system, prompt, max_tokens=DEFAULT_MAX_TOKENS)
    on_usage(completion.usage)

    if not step.silent:
        display.markdown(completion.text)
    return StepResult(output=completion.text)


# ---------------------------------------------------------------------------
# subcommand
# ---------------------------------------------------------------------------


def run_subcommand_step(
    config: CommandsConfig,
    ctx: PipelineContext,
    step: SubcommandStep,
    values: TemplateValues,
    *,
    dry_run: bool,
    run_nested: Callable[[Command, list[str]], StepResult],
) -> StepResult:
    """Call another command; nested pipelines always capture their output."""
    command = config.commands.get(step.name)
    if command is None:
        raise CommandNotFoundError(step.name)

    args: list[str] = []
    for raw in step.args:
        try:
            args.append(render(raw, ctx, values, dry_run))
        except InterpolationError as exc:
            raise InterpolationError(f"failed to interpolate arg {raw!r}: {exc}") from exc

    logger.debug("calling command %s with args %r", step.name, args)

    if dry_run:
        display.dry_run(f"Would call command: {step.name} {args}")
        return StepResult(output=DRY_RUN_SUBCOMMAND_OUTPUT)

    if not step.silent:
        display.subcommand_call(step.name, args)

    return run_nested(command, args)
