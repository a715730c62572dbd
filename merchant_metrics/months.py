from __future__ import annotations

import re
from datetime import date
from pathlib import PurePath
from typing import Optional

import pandas as pd

_YEAR_MONTH = re.compile(r"(20\d{2})[\-/.年]?(\d{1,2})")
_BARE_MONTH = re.compile(r"(\d{1,2})\s*月")


def _as_text(value: object) -> Optional[str]:
    if value is None:
        return None
    if pd.api.types.is_scalar(value) and not isinstance(value, str) and pd.isna(value):
        return None
    s = str(value).strip()
    return s or None


def normalize_month(value: object, today: Optional[date] = None) -> Optional[str]:
    """Parse a date/month expression into a canonical ``YYYY-MM`` token.

    Accepts "2025-07", "2025/7", "2025.07", "2025年7月", "20250715" and bare
    "7月" (assumed to be in the current year). Returns None when nothing
    matches so the caller can apply its own fallback.
    """
    s = _as_text(value)
    if s is None:
        return None

    match = _YEAR_MONTH.search(s)
    if match:
        month = int(match.group(2))
        if 1 <= month <= 12:
            return f"{match.group(1)}-{month:02d}"
        return None

    match = _BARE_MONTH.search(s)
    if match:
        month = int(match.group(1))
        if 1 <= month <= 12:
            year = (today or date.today()).year
            return f"{year}-{month:02d}"
    return None


def repad_month(value: object) -> str:
    """Re-pad an already canonical ``YYYY-M`` token to ``YYYY-MM``."""
    s = _as_text(value)
    if s is None:
        return ""
    parts = s.split("-")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return s
    return f"{parts[0]}-{parts[1].zfill(2)}"


def month_from_filename(name: object) -> Optional[str]:
    """Batch month carried by an uploaded file name, e.g. ``sales_2025-08.xlsx``."""
    s = _as_text(name)
    if s is None:
        return None
    return normalize_month(PurePath(s).stem)
