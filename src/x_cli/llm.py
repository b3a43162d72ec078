# llm.py
# Model client. Wraps an OpenAI-compatible chat completions endpoint
# (OpenRouter by default) and normalises responses into models.py contracts.
#
# The pipeline only constructs messages and interprets responses; transport
# and authentication stay here.

import logging
from typing import Any

from openai import OpenAI, OpenAIError

from x_cli.errors import LLMRequestError
from x_cli.models import (
    AgentResponse,
    Completion,
    TextBlock,
    TokenUsage,
    ToolResult,
    ToolUseBlock,
)
from x_cli.settings import AGENTIC_MAX_TOKENS, DEFAULT_MAX_TOKENS, AppConfig

logger = logging.getLogger(__name__)

# finish_reason -> stop reason vocabulary used by the agent loop
_STOP_REASONS = {
    "stop": "end_turn",
    "tool_calls": "tool_use",
    "function_call": "tool_use",
    "length": "max_tokens",
}


# ---------------------------------------------------------------------------
# Message construction
# ---------------------------------------------------------------------------


def user_message(text: str) -> dict[str, Any]:
    return {"role": "user", "content": text}


def assistant_message(response: AgentResponse) -> dict[str, Any]:
    """Replay an assistant turn, including its tool calls, into the conversation."""
    text = "\n\n".join(b.text for b in response.content if isinstance(b, TextBlock))
    tool_calls = [
        {
            "id": b.id,
            "type": "function",
            "function": {"name": b.name, "arguments": b.arguments},
        }
        for b in response.content
        if isinstance(b, ToolUseBlock)
    ]
    message: dict[str, Any] = {"role": "assistant", "content": text or None}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return message


def tool_result_messages(results: list[ToolResult]) -> list[dict[str, Any]]:
    """One tool message per result; the wire format carries no error flag."""
    return [
        {"role": "tool", "tool_call_id": r.tool_use_id, "content": r.content}
        for r in results
    ]


def _usage(raw) -> TokenUsage:
    if raw is None:
        return TokenUsage()
    details = getattr(raw, "prompt_tokens_details", None)
    cached = getattr(details, "cached_tokens", None) or 0
    return TokenUsage(
        input_tokens=raw.prompt_tokens or 0,
        output_tokens=raw.completion_tokens or 0,
        cache_read_tokens=cached,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LLMClient:
    """
    Thin client over the OpenAI SDK.

    Example:
        client = LLMClient.from_config(load_app_config())
        completion = client.generate("You are terse.", "Say hi")
    """

    def __init__(self, api_key: str, base_url: str, model: str) -> None:
        self.model = model
        self._client = OpenAI(base_url=base_url, api_key=api_key)

    @classmethod
    def from_config(cls, config: AppConfig) -> "LLMClient":
        return cls(api_key=config.api_key, base_url=config.base_url, model=config.model)

    def _create(self, **kwargs):
        try:
            return self._client.chat.completions.create(model=self.model, **kwargs)
        except OpenAIError as exc:
            raise LLMRequestError(f"model request failed: {exc}") from exc

    def generate(self, system: str, prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> Completion:
        """Single-turn call; returns the aggregated text, stripped."""
        response = self._create(
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                user_message(prompt),
            ],
        )
        if not response.choices:
            raise LLMRequestError("model returned no choices")
        text = (response.choices[0].message.content or "").strip()
        return Completion(text=text, usage=_usage(response.usage))

    def create_turn(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_tokens: int = AGENTIC_MAX_TOKENS,
    ) -> AgentResponse:
        """One agentic turn over the full conversation."""
        response = self._create(
            max_tokens=max_tokens,
            messages=[{"role": "system", "content": system}, *messages],
            tools=tools,
        )
        if not response.choices:
            raise LLMRequestError("model returned no choices")

        choice = response.choices[0]
        content: list[TextBlock | ToolUseBlock] = []
        if choice.message.content:
            content.append(TextBlock(text=choice.message.content))
        for call in choice.message.tool_calls or []:
            content.append(
                ToolUseBlock(
                    id=call.id,
                    name=call.function.name,
                    arguments=call.function.arguments or "{}",
                )
            )

        stop_reason = _STOP_REASONS.get(choice.finish_reason or "", choice.finish_reason or "end_turn")
        logger.debug("turn finished: %s (%d blocks)", stop_reason, len(content))
        return AgentResponse(content=content, stop_reason=stop_reason, usage=_usage(response.usage))
