# interpolate.py
# Dynamic placeholder resolution against pipeline state.
#
# Forms, in priority order:
#   {{args.<name>}}          argument value (unknown names left verbatim)
#   {{steps.<id>.<field>}}   raw output for field "output", else JSON field
#   {{output.<field>}}       JSON field of the previous step's output
#   {{output}}               raw previous output
#
# Every placeholder is resolved in one scan of the input, so substituted
# values are never themselves re-interpolated.

import json
import math
import re
from decimal import Decimal

from x_cli.errors import InterpolationError
from x_cli.models import PipelineContext

_NAME = r"[a-zA-Z_][a-zA-Z0-9_]*"
_STEP_ID = r"[a-zA-Z_][a-zA-Z0-9_-]*"

_PLACEHOLDER_RE = re.compile(
    r"\{\{(?:"
    rf"args\.(?P<arg>{_NAME})"
    rf"|steps\.(?P<step>{_STEP_ID})\.(?P<step_field>{_NAME})"
    rf"|output\.(?P<output_field>{_NAME})"
    r"|(?P<output>output)"
    r")\}\}"
)

# Every dry-run step output starts with this.
DRY_RUN_PREFIX = "[dry run"

# Pass rank decides which error wins when several placeholders fail.
_RANK_STEPS = 0
_RANK_OUTPUT_FIELD = 1


def strip_markdown_code_block(text: str) -> str:
    """Remove a surrounding ```lang ... ``` fence if present."""
    text = text.strip()
    if not text.startswith("```"):
        return text
    first_newline = text.find("\n")
    if first_newline == -1:
        return text
    closing = text.rfind("```")
    if closing <= first_newline:
        return text
    return text[first_newline + 1 : closing].strip()


def _format_float(value: float) -> str:
    """Shortest round-trip digits; exponent form below 1e-4 or from 1e21 up."""
    if value == 0:
        return "0"
    if not math.isfinite(value):
        return str(value)
    number = Decimal(repr(value)).normalize()
    exponent = number.adjusted()
    if -4 <= exponent < 21:
        return format(number, "f")
    sign, digits, _ = number.as_tuple()
    mantissa = str(digits[0])
    if len(digits) > 1:
        mantissa += "." + "".join(str(d) for d in digits[1:])
    exp_sign = "-" if exponent < 0 else "+"
    return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(exponent):02d}"


def is_dry_run_output(text: str) -> bool:
    return text.startswith(DRY_RUN_PREFIX)


def _stringify(value) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, int):
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def extract_json_field(text: str, field: str) -> str:
    """
    Parse text as a JSON object and return one field as a string.

    Raises InterpolationError when the text is not a JSON object or the field
    is absent.
    """
    body = strip_markdown_code_block(text)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise InterpolationError(f"output is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise InterpolationError(f"output is not a JSON object (got {type(data).__name__})")
    if field not in data:
        raise InterpolationError(f"field {field!r} not found in JSON")
    return _stringify(data[field])


def interpolate_variables(text: str, ctx: PipelineContext, dry_run: bool = False) -> str:
    """
    Resolve every dynamic placeholder in text against ctx.

    With dry_run=True a JSON field read from a dry-run placeholder output
    becomes "[dry run: <path>]" instead of failing; real outputs still fail.
    """
    errors: list[tuple[int, int, InterpolationError]] = []

    def field_of(match: re.Match, output: str, field: str, rank: int) -> str:
        if dry_run and is_dry_run_output(output):
            return f"[dry run: {match.group(0)[2:-2]}]"
        try:
            return extract_json_field(output, field)
        except InterpolationError as exc:
            error = InterpolationError(f"cannot access {match.group(0)}: {exc}")
            error.__cause__ = exc
            errors.append((rank, match.start(), error))
            return match.group(0)

    def replace(match: re.Match) -> str:
        if match.group("arg"):
            return ctx.args.get(match.group("arg"), match.group(0))

        if match.group("step"):
            step_id = match.group("step")
            field = match.group("step_field")
            if step_id not in ctx.step_outputs:
                return match.group(0)
            output = ctx.step_outputs[step_id]
            if field == "output":
                return output
            return field_of(match, output, field, _RANK_STEPS)

        if match.group("output_field"):
            return field_of(match, ctx.last_output, match.group("output_field"), _RANK_OUTPUT_FIELD)

        return ctx.last_output

    result = _PLACEHOLDER_RE.sub(replace, text)
    if errors:
        errors.sort(key=lambda e: (e[0], e[1]))
        raise errors[0][2]
    return result
