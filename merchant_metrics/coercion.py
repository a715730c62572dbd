from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence, Tuple

import pandas as pd

# Checked in order, so a longer unit must precede any unit it contains.
DEFAULT_UNIT_SUFFIXES: Tuple[Tuple[str, float], ...] = (
    ("億", 1e8),
    ("百萬", 1e6),
    ("萬", 1e4),
)

_NON_NUMERIC = re.compile(r"[^\d.\-]")


def _parse_number(text: str) -> float:
    cleaned = _NON_NUMERIC.sub("", text)
    try:
        out = float(cleaned)
    except ValueError:
        return 0.0
    return out if math.isfinite(out) else 0.0


def coerce(value: object, unit_suffixes: Optional[Sequence[Tuple[str, float]]] = None) -> float:
    """Best-effort conversion of a scalar cell into a number.

    "1,200" -> 1200, "25%" -> 0.25, "12萬" -> 120000. Anything that cannot be
    parsed becomes 0; this never raises.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return 0.0
        return value
    if value is None or (pd.api.types.is_scalar(value) and not isinstance(value, str) and pd.isna(value)):
        return 0.0

    s = str(value).replace(",", "").strip()
    if not s:
        return 0.0
    if s.endswith("%"):
        return _parse_number(s[:-1]) / 100

    mult = 1.0
    for suffix, factor in unit_suffixes if unit_suffixes is not None else DEFAULT_UNIT_SUFFIXES:
        if suffix in s:
            mult = factor
            break
    return _parse_number(s) * mult


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    """Percent/share rounding where .5 goes away from zero (3.125 -> 3.13).

    Missing or non-finite values give None.
    """
    number = coerce(value) if isinstance(value, str) else value
    if number is None or pd.isna(number) or not math.isfinite(float(number)):
        return None
    exact = Decimal(repr(float(number)))
    return float(exact.quantize(Decimal(1).scaleb(-ndigits), rounding=ROUND_HALF_UP))


def format_scaled(value: object) -> str:
    """Scale a magnitude into 萬 / 百萬 units for display."""
    n = coerce(value)
    a = abs(n)
    if a >= 1_000_000:
        return f"{n / 1_000_000:.2f} 百萬"
    if a >= 10_000:
        return f"{n / 10_000:.2f} 萬"
    if float(n).is_integer():
        return f"{int(n):,}"
    return f"{n:,}"
