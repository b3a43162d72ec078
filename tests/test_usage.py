import logging
from unittest.mock import MagicMock, patch

import httpx
import pytest

from x_cli import usage
from x_cli.errors import ConfigError
from x_cli.models import TokenUsage
from x_cli.usage import ModelPricing, Usage, UsageRecorder, fetch_model_pricing, load_usage, pricing_keys

# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def test_usage_add_and_cost():
    totals = Usage()
    totals.add(TokenUsage(input_tokens=100, output_tokens=50, cache_read_tokens=10))
    totals.add(TokenUsage(input_tokens=100, output_tokens=50))
    assert totals.total_tokens == 300
    assert totals.request_count == 2

    cost = totals.cost(ModelPricing(input_cost_per_token=0.01, output_cost_per_token=0.02,
                                    cache_read_input_token_cost=0.001))
    assert cost["input"] == pytest.approx(2.0)
    assert cost["output"] == pytest.approx(2.0)
    assert cost["cache_read"] == pytest.approx(0.01)
    assert cost["total"] == pytest.approx(4.01)

def test_load_usage_missing_file(tmp_path):
    assert load_usage(tmp_path / "usage.json") == Usage()

def test_load_usage_corrupt_file(tmp_path):
    path = tmp_path / "usage.json"
    path.write_text("not json")
    with pytest.raises(ConfigError):
        load_usage(path)

# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------

def test_recorder_accumulates_across_calls(tmp_path):
    path = tmp_path / "x" / "usage.json"
    record = UsageRecorder(path)
    record(TokenUsage(input_tokens=5, output_tokens=1))
    record(TokenUsage(input_tokens=5, output_tokens=1))
    totals = load_usage(path)
    assert totals.input_tokens == 10
    assert totals.request_count == 2

def test_recorder_counts_calls_without_token_counts(tmp_path):
    path = tmp_path / "usage.json"
    record = UsageRecorder(path)
    record(TokenUsage(input_tokens=4, output_tokens=2))
    record(TokenUsage())
    totals = load_usage(path)
    assert totals.request_count == 2
    assert totals.input_tokens == 4
    assert totals.total_tokens == 6

def test_recorder_never_raises(tmp_path, caplog):
    path = tmp_path / "usage.json"
    path.write_text("garbage")
    with caplog.at_level(logging.WARNING, logger="x_cli.usage"):
        UsageRecorder(path)(TokenUsage(input_tokens=1))
    assert "could not record token usage" in caplog.text

# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------

def test_pricing_keys():
    assert pricing_keys("anthropic/claude-sonnet-4.5") == [
        "anthropic/claude-sonnet-4.5",
        "openrouter/anthropic/claude-sonnet-4.5",
        "claude-sonnet-4.5",
    ]

@patch.object(usage.httpx, "get")
def test_fetch_model_pricing_matches_openrouter_key(mock_get):
    response = MagicMock()
    response.json.return_value = {
        "openrouter/vendor/model": {"input_cost_per_token": 1e-6, "output_cost_per_token": 2e-6,
                                    "cache_read_input_token_cost": None, "max_tokens": 100},
    }
    mock_get.return_value = response
    pricing = fetch_model_pricing("vendor/model")
    assert pricing.input_cost_per_token == 1e-6
    assert pricing.cache_read_input_token_cost == 0.0

@patch.object(usage.httpx, "get")
def test_fetch_model_pricing_network_failure(mock_get):
    mock_get.side_effect = httpx.ConnectError("offline")
    assert fetch_model_pricing("vendor/model") is None

@patch.object(usage.httpx, "get")
def test_fetch_model_pricing_unknown_model(mock_get):
    mock_get.return_value.json.return_value = {"other": {}}
    assert fetch_model_pricing("vendor/model") is None

@patch.object(usage, "fetch_model_pricing", return_value=None)
@patch.object(usage, "display")
def test_show_usage_without_pricing(mock_display, _fetch):
    usage.show_usage(Usage(input_tokens=1, output_tokens=2, request_count=1), "m")
    rows, cost_rows = mock_display.usage_summary.call_args.args
    assert ("Total tokens", "3") in rows
    assert cost_rows is None
