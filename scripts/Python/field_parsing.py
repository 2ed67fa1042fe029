"""
Field parsing and coercion for the film CSV datasets.

Every CSV cell arrives as a raw string (the loaders read with ``dtype=str``),
so the helpers here decide what counts as a number, a list of claims or an
evaluation outcome. None of them raise on malformed input: numbers become NaN,
lists fall back to ``None``/``[]`` and outcomes render as ``"n/a"``.
"""
import html
import json
import logging
import math
import re
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?")
OUTCOME_SPLIT_PATTERN = re.compile(r"[,\s;]+")
LOOSE_NUMBER_STRIP = re.compile(r"[^0-9.\-]")
MISSING_OUTCOMES = {"NA", "OUTCOME=NA"}

Number = Union[int, float]


def is_missing_text(value: Any) -> bool:
    """True for None, blank strings and the literal ``nan`` (any case)."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    text = str(value).strip()
    return text == "" or text.lower() == "nan"


def to_num(value: Any) -> float:
    """
    Strict numeric coercion.

    Args:
        value: Raw cell value

    Returns:
        The parsed float, or NaN when the value is empty, malformed or not finite
    """
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else math.nan

    text = str(value).strip()
    # float() accepts digit separators, CSV numbers never carry them
    if not text or "_" in text:
        return math.nan
    try:
        number = float(text)
    except ValueError:
        return math.nan
    return number if math.isfinite(number) else math.nan


def parse_num(value: Any) -> float:
    """Loose coercion: drop everything but digits, dots and minus signs first."""
    if value is None or value == "":
        return math.nan
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_num(value)
    stripped = LOOSE_NUMBER_STRIP.sub("", str(value))
    if not stripped:
        return math.nan
    return to_num(stripped)


def strip_code_fence(cell: Any) -> Optional[str]:
    """
    Remove a markdown code fence wrapped around a JSON payload.

    The first line (```` ``` ```` or ```` ```json ````) is always dropped when
    the cell starts with a fence, the last line only when it is a closing fence.

    Args:
        cell: Raw cell value

    Returns:
        The unfenced text, or None if nothing is left
    """
    if cell is None or (isinstance(cell, float) and math.isnan(cell)):
        return None
    text = str(cell).strip()
    if not text:
        return None

    if text.startswith("```"):
        lines = text.split("\n")
        lines.pop(0)
        if lines and lines[-1].strip().startswith("```"):
            lines.pop()
        text = "\n".join(lines).strip()
    return text or None


def parse_json_list(cell: Any) -> Optional[list]:
    """Parse a (possibly fenced) JSON list, returning None when that fails."""
    cleaned = strip_code_fence(cell)
    if not cleaned:
        return None
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        logger.debug(f"Skipping malformed JSON payload: {cleaned[:40]!r}")
        return None
    return parsed if isinstance(parsed, list) else None


def _outcome_token(token: str) -> Optional[float]:
    if token.upper() in MISSING_OUTCOMES:
        return None
    match = NUMBER_PATTERN.search(token)
    if not match:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def parse_outcome_list(cell: Any) -> List[Any]:
    """
    Parse a ``past_outcomes``/``present_outcomes`` cell into a list.

    Accepted shapes include JSON arrays (``[1, 0, "NA"]``), bracketed or bare
    token lists separated by commas, semicolons or whitespace (``[1; 0]``,
    ``1 0 outcome=NA``). Tokens without a number become None.

    Args:
        cell: Raw cell value

    Returns:
        List of outcomes, empty when the cell is blank
    """
    if cell is None:
        return []
    text = str(cell).strip()
    if not text:
        return []

    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return parsed

    text = text.replace("[", " ").replace("]", " ")
    tokens = [tok for tok in OUTCOME_SPLIT_PATTERN.split(text) if tok]
    return [_outcome_token(tok) for tok in tokens]


def format_js_number(value: Number) -> str:
    """Render a number the way a browser prints it (``1`` rather than ``1.0``)."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def format_outcome(raw: Any) -> str:
    """
    Format one evaluation outcome for the details panel.

    Positive values are "True", zero (or below) is "False". Missing, ``NA``
    and non-numeric outcomes render as ``"n/a"``.
    """
    if raw is None or isinstance(raw, bool):
        return "n/a"

    value = raw
    if isinstance(value, str):
        text = value.strip()
        if text.upper() in MISSING_OUTCOMES:
            return "n/a"
        match = NUMBER_PATTERN.search(text)
        if not match:
            return "n/a"
        value = float(match.group(0))

    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return "n/a"

    label = "True" if value > 0 else "False"
    return f"{label} ({format_js_number(value)})"


def parse_anticipatory(value: Any) -> Optional[bool]:
    """``"1"`` is anticipatory, ``"0"`` is not, anything else is unknown."""
    if isinstance(value, bool):
        return None
    if value == 1 or value == "1":
        return True
    if value == 0 or value == "0":
        return False
    return None


def parse_anticipatory_label(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    return to_num(value) == 1


def escape_html(text: Any) -> str:
    return html.escape(str(text), quote=True)


def format_number(value: Number) -> str:
    # en-US grouping, at most three fraction digits
    formatted = f"{round(float(value), 3):,.3f}"
    return formatted.rstrip("0").rstrip(".")


def format_money(value: Any) -> str:
    number = to_num(value)
    if math.isnan(number):
        return "Unknown"
    return f"{format_number(number)} $"


def format_p_value(p: Any) -> str:
    number = to_num(p)
    if math.isnan(number):
        return "NA"
    if number < 1e-3:
        return "< 0.001"
    return f"{number:.3f}"
