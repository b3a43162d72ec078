# usage.py
# Cumulative token usage, persisted as JSON next to the app config.
#
# Read-modify-written after every model call (including each agentic turn).
# No locking: single interactive instance assumed.

import logging
from pathlib import Path

import httpx
from pydantic import BaseModel, ValidationError

from x_cli import display
from x_cli.errors import ConfigError
from x_cli.models import TokenUsage
from x_cli.settings import CONFIG_FILE_PERMS, DIR_PERMS, app_config_dir

logger = logging.getLogger(__name__)

USAGE_FILE_NAME = "usage.json"
PRICING_URL = (
    "https://raw.githubusercontent.com/BerriAI/litellm/main/model_prices_and_context_window.json"
)


def usage_path() -> Path:
    return app_config_dir() / USAGE_FILE_NAME


class ModelPricing(BaseModel):
    input_cost_per_token: float = 0.0
    output_cost_per_token: float = 0.0
    cache_creation_input_token_cost: float = 0.0
    cache_read_input_token_cost: float = 0.0


class Usage(BaseModel):
    """Running totals across every process run."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    request_count: int = 0

    def add(self, usage: TokenUsage) -> None:
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.cache_creation_tokens += usage.cache_creation_tokens
        self.cache_read_tokens += usage.cache_read_tokens
        self.request_count += 1

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def save(self, path: Path | None = None) -> None:
        path = path or usage_path()
        path.parent.mkdir(mode=DIR_PERMS, parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        path.chmod(CONFIG_FILE_PERMS)

    def cost(self, pricing: ModelPricing) -> dict[str, float]:
        parts = {
            "input": self.input_tokens * pricing.input_cost_per_token,
            "output": self.output_tokens * pricing.output_cost_per_token,
            "cache_creation": self.cache_creation_tokens * pricing.cache_creation_input_token_cost,
            "cache_read": self.cache_read_tokens * pricing.cache_read_input_token_cost,
        }
        parts["total"] = sum(parts.values())
        return parts


def load_usage(path: Path | None = None) -> Usage:
    path = path or usage_path()
    if not path.exists():
        return Usage()
    try:
        return Usage.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        raise ConfigError(f"cannot read usage file {path}: {exc}") from exc


class UsageRecorder:
    """Pipeline on_usage callback; every call counts as a request, even without token counts."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    def __call__(self, usage: TokenUsage) -> None:
        try:
            totals = load_usage(self._path)
            totals.add(usage)
            totals.save(self._path)
        except (ConfigError, OSError) as exc:
            # Usage failures never abort a pipeline.
            logger.warning("could not record token usage: %s", exc)


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def pricing_keys(model: str) -> list[str]:
    """Candidate keys for a model id in the LiteLLM price table."""
    keys = [model, f"openrouter/{model}"]
    if "/" in model:
        keys.append(model.split("/", 1)[1])
    return keys


def fetch_model_pricing(model: str, timeout: float = 10.0) -> ModelPricing | None:
    try:
        response = httpx.get(PRICING_URL, timeout=timeout)
        response.raise_for_status()
        prices = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.debug("pricing fetch failed: %s", exc)
        return None

    for key in pricing_keys(model):
        if key in prices:
            try:
                entry = {k: v for k, v in prices[key].items() if v is not None}
                return ModelPricing.model_validate(entry)
            except (AttributeError, ValidationError) as exc:
                logger.debug("pricing entry %s unusable: %s", key, exc)
    return None


def show_usage(usage: Usage, model: str) -> None:
    rows = [
        ("Input tokens", f"{usage.input_tokens:,}"),
        ("Output tokens", f"{usage.output_tokens:,}"),
    ]
    if usage.cache_creation_tokens:
        rows.append(("Cache creation tokens", f"{usage.cache_creation_tokens:,}"))
    if usage.cache_read_tokens:
        rows.append(("Cache read tokens", f"{usage.cache_read_tokens:,}"))
    rows.append(("Total tokens", f"{usage.total_tokens:,}"))
    rows.append(("Requests", f"{usage.request_count:,}"))

    pricing = fetch_model_pricing(model)
    if pricing is None:
        display.usage_summary(rows, None)
        return

    cost = usage.cost(pricing)
    cost_rows = [("Input cost", f"${cost['input']:.4f}"), ("Output cost", f"${cost['output']:.4f}")]
    if usage.cache_creation_tokens:
        cost_rows.append(("Cache creation cost", f"${cost['cache_creation']:.4f}"))
    if usage.cache_read_tokens:
        cost_rows.append(("Cache read cost", f"${cost['cache_read']:.4f}"))
    cost_rows.append(("Total cost", f"${cost['total']:.4f}"))
    display.usage_summary(rows, cost_rows)
