from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from merchant_metrics.filters import DEFAULT_BIN_STEP, DEFAULT_TOP_N

DEFAULT_ALLOWED_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_optional_str_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class DashboardSettings:
    data_url: Optional[str] = None
    seed_demo: bool = True
    bin_step: float = DEFAULT_BIN_STEP
    top_n: int = DEFAULT_TOP_N
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))


@lru_cache(maxsize=1)
def get_settings() -> DashboardSettings:
    """Settings from MERCHANT_METRICS_* environment variables, read once."""
    origins_raw = _get_optional_str_env("MERCHANT_METRICS_ALLOWED_ORIGINS")
    origins = [o.strip() for o in origins_raw.split(",") if o.strip()] if origins_raw else list(DEFAULT_ALLOWED_ORIGINS)
    bin_step = _get_float_env("MERCHANT_METRICS_BIN_STEP", DEFAULT_BIN_STEP)
    return DashboardSettings(
        data_url=_get_optional_str_env("MERCHANT_METRICS_DATA_URL"),
        seed_demo=_get_bool_env("MERCHANT_METRICS_SEED_DEMO", True),
        bin_step=min(1.0, max(0.001, bin_step)),
        top_n=max(1, min(200, _get_int_env("MERCHANT_METRICS_TOP_N", DEFAULT_TOP_N))),
        allowed_origins=origins,
    )
