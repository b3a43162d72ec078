# agent.py
# Bounded multi-turn tool-use loop for agentic steps.
#
# The loop owns the conversation; the model only answers. Each turn:
#   send conversation → record usage → walk blocks in order
#   → text: render + remember as fallback
#   → shell: confirm (unless auto_execute) and run captured
#   → complete: take its output, loop ends after this turn
#   → if tools ran, append assistant turn + tool results and go again
#   → if nothing ran and the model ended its turn, give up with a warning
#
# Running out of turns or being abandoned is not an error: the last text the
# model produced is returned as a best-effort result.

import logging
from collections.abc import Callable

from x_cli import display
from x_cli.llm import assistant_message, tool_result_messages, user_message
from x_cli.models import (
    AgenticStep,
    AgentOutcome,
    PipelineContext,
    StepResult,
    TextBlock,
    TokenUsage,
    ToolResult,
    ToolUseBlock,
)
from x_cli.settings import AGENTIC_MAX_TOKENS, DEFAULT_MAX_ITERATIONS
from x_cli.steps import prepare_prompts
from x_cli.template import TemplateValues
from x_cli.tools import (
    COMPLETE_ACK,
    TOOL_COMPLETE,
    TOOL_SHELL,
    build_agentic_tools,
    extract_output,
    handle_shell_tool,
)

logger = logging.getLogger(__name__)

DRY_RUN_OUTPUT = "[dry run - no agentic execution]"


class AgentLoop:
    """
    Drives one agentic step to a terminal AgentOutcome.

    Example:
        loop = AgentLoop(client, system, prompt, max_iterations=5,
                         auto_execute=False, tools=tools, on_usage=record)
        outcome = loop.run()
    """

    def __init__(
        self,
        client,
        system: str,
        prompt: str,
        *,
        max_iterations: int,
        auto_execute: bool,
        tools: list[dict],
        on_usage: Callable[[TokenUsage], None],
        max_tokens: int = AGENTIC_MAX_TOKENS,
    ) -> None:
        self._client = client
        self._system = system
        self._max_iterations = max_iterations
        self._auto_execute = auto_execute
        self._tools = tools
        self._on_usage = on_usage
        self._max_tokens = max_tokens
        self.messages: list[dict] = [user_message(prompt)]
        self.last_text = ""

    def _dispatch(self, block: ToolUseBlock) -> tuple[ToolResult, str | None]:
        """Run one tool call. Returns the result and, for complete, the final output."""
        logger.debug("tool call: %s (id=%s) input=%s", block.name, block.id, block.arguments)

        if block.name == TOOL_SHELL:
            content, is_error = handle_shell_tool(block.arguments, self._auto_execute)
            return ToolResult(tool_use_id=block.id, content=content, is_error=is_error), None

        if block.name == TOOL_COMPLETE:
            output = extract_output(block.arguments)
            return ToolResult(tool_use_id=block.id, content=COMPLETE_ACK), output

        return (
            ToolResult(tool_use_id=block.id, content=f"Unknown tool: {block.name}", is_error=True),
            None,
        )

    def run(self) -> AgentOutcome:
        for turn in range(1, self._max_iterations + 1):
            logger.debug("agentic iteration %d/%d", turn, self._max_iterations)

            response = self._client.create_turn(
                self._system, self.messages, self._tools, max_tokens=self._max_tokens
            )
            self._on_usage(response.usage)

            results: list[ToolResult] = []
            final_output: str | None = None

            for block in response.content:
                if isinstance(block, TextBlock):
                    self.last_text = block.text
                    display.markdown(block.text)
                    continue
                result, output = self._dispatch(block)
                results.append(result)
                if output is not None:
                    final_output = output

            if final_output is not None:
                return AgentOutcome(status="completed", output=final_output, turns=turn)

            if results:
                self.messages.append(assistant_message(response))
                self.messages.extend(tool_result_messages(results))
                continue

            if response.stop_reason == "end_turn":
                display.warning("Agent finished without calling complete tool")
                return AgentOutcome(status="abandoned", output=self.last_text, turns=turn)

        display.warning(f"Agent reached max iterations ({self._max_iterations}) without completing")
        return AgentOutcome(status="exhausted", output=self.last_text, turns=self._max_iterations)


def run_agentic_step(
    client,
    ctx: PipelineContext,
    step: AgenticStep,
    values: TemplateValues,
    *,
    dry_run: bool,
    on_usage: Callable[[TokenUsage], None],
) -> StepResult:
    system, prompt = prepare_prompts(step.system, step.prompt, ctx, values, dry_run)

    max_iterations = step.max_iterations if step.max_iterations > 0 else DEFAULT_MAX_ITERATIONS
    logger.debug("max iterations: %d, auto execute: %s", max_iterations, step.auto_execute)

    if dry_run:
        display.dry_run("Would start agentic loop with:")
        display.dry_run(f"  System prompt length: {len(system.encode('utf-8'))} bytes")
        display.dry_run(f"  User prompt length: {len(prompt.encode('utf-8'))} bytes")
        display.dry_run(f"  Max iterations: {max_iterations}")
        display.dry_run(f"  Auto execute: {str(step.auto_execute).lower()}")
        display.dry_run(f"  Tools: {TOOL_SHELL}, {TOOL_COMPLETE}")
        return StepResult(output=DRY_RUN_OUTPUT)

    loop = AgentLoop(
        client,
        system,
        prompt,
        max_iterations=max_iterations,
        auto_execute=step.auto_execute,
        tools=build_agentic_tools(values),
        on_usage=on_usage,
    )
    outcome = loop.run()
    logger.debug("agentic outcome: %s after %d turn(s)", outcome.status, outcome.turns)
    return StepResult(output=outcome.output)
