from __future__ import annotations

import logging
import math
from typing import Dict, List, Literal, Tuple

import numpy as np
import pandas as pd

from merchant_metrics.coercion import coerce, round_half_up

SortKey = Literal["month", "agent", "merchant", "open", "revenue", "ratio"]
SortDirection = Literal["asc", "desc"]

SORT_COLUMNS: Dict[str, str] = {
    "month": "month",
    "agent": "agent",
    "merchant": "merchant",
    "open": "open_amount",
    "revenue": "revenue_amount",
    "ratio": "ratio",
}
NUMERIC_SORT_KEYS = {"open", "revenue", "ratio"}

PARETO_COLUMNS: List[str] = ["category", "value", "cumulative_share_pct"]
HISTOGRAM_COLUMNS: List[str] = ["range_label", "count", "lower_bound", "upper_bound"]
SHARE_COLUMNS: List[str] = ["category", "value", "share_pct"]
TOP_COLUMNS: List[str] = ["category", "value"]

MAX_HISTOGRAM_BINS = 200

logger = logging.getLogger(__name__)


def _empty(columns: List[str]) -> pd.DataFrame:
    return pd.DataFrame({c: pd.Series(dtype=object if c in {"category", "range_label"} else float) for c in columns})


def _sum_by(df: pd.DataFrame, dimension: str, metric: str) -> pd.DataFrame:
    return (
        df.groupby(dimension, sort=False)[metric]
        .sum()
        .reset_index()
        .sort_values(metric, ascending=False, kind="mergesort")
        .reset_index(drop=True)
        .rename(columns={dimension: "category", metric: "value"})
    )


def compute_pareto(df: pd.DataFrame) -> pd.DataFrame:
    """Merchants by summed open amount, descending, with cumulative share (%)."""
    if df.empty:
        return _empty(PARETO_COLUMNS)
    out = _sum_by(df, "merchant", "open_amount")
    # A zero total keeps raw running sums instead of dividing by zero.
    total = float(out["value"].sum()) or 1.0
    shares = out["value"].cumsum() / total * 100
    out["cumulative_share_pct"] = shares.map(lambda v: round_half_up(v, 2)).astype(float)
    return out[PARETO_COLUMNS]


def _label_decimals(step: float) -> int:
    pct = step * 100
    for d in range(7):
        if abs(round(pct, d) - pct) < 1e-9:
            return d
    return 6


def _bin_span(ratios: np.ndarray, step: float) -> Tuple[int, int]:
    # Rounded before floor/ceil so 0.3 / 0.05 counts as 6, not 5.999...
    lo_i = math.floor(round((float(ratios.min()) - step) / step, 9))
    hi_i = math.ceil(round((float(ratios.max()) + step) / step, 9))
    return lo_i, hi_i


def compute_ratio_histogram(df: pd.DataFrame, step: float = 0.05, max_bins: int = MAX_HISTOGRAM_BINS) -> pd.DataFrame:
    """Fixed-width bins over ``ratio`` spanning [floor(min-step), ceil(max+step)).

    Bins are counted in whole steps. When the range would need more than
    ``max_bins`` bins the step is widened by an integer factor.
    """
    if step <= 0:
        raise ValueError(f"Histogram step must be positive, got {step!r}")
    if df.empty:
        return _empty(HISTOGRAM_COLUMNS)

    ratios = (
        pd.to_numeric(df["ratio"], errors="coerce")
        .replace([np.inf, -np.inf], np.nan)
        .fillna(0.0)
        .to_numpy(dtype=float)
    )
    # padding one step each side can need three bins even for a single value
    max_bins = max(3, max_bins)
    lo_i, hi_i = _bin_span(ratios, step)
    while hi_i - lo_i > max_bins:
        step *= math.ceil((hi_i - lo_i) / max_bins)
        lo_i, hi_i = _bin_span(ratios, step)
        logger.debug("histogram step widened to %s", step)
    bin_count = max(1, hi_i - lo_i)

    # A ratio equal to the ceiling lands at bin_count and is clamped into the last bin.
    units = np.floor(np.round(ratios / step, 9)).astype(np.int64)
    idx = np.clip(units - lo_i, 0, bin_count - 1)
    counts = np.bincount(idx, minlength=bin_count)

    decimals = _label_decimals(step)
    records = []
    for i in range(bin_count):
        a = round((lo_i + i) * step, 10) + 0.0
        b = round((lo_i + i + 1) * step, 10) + 0.0
        records.append(
            {
                "range_label": f"{a * 100:.{decimals}f}%~{b * 100:.{decimals}f}%",
                "count": int(counts[i]),
                "lower_bound": a,
                "upper_bound": b,
            }
        )
    return pd.DataFrame(records, columns=HISTOGRAM_COLUMNS)


def compute_revenue_share(df: pd.DataFrame) -> pd.DataFrame:
    """Agents by summed revenue, descending, with share of total (%)."""
    if df.empty:
        return _empty(SHARE_COLUMNS)
    out = _sum_by(df, "agent", "revenue_amount")
    total = float(out["value"].sum())
    out["share_pct"] = (out["value"] / total * 100) if total else 0.0
    return out[SHARE_COLUMNS]


def compute_top_merchants(df: pd.DataFrame, n: int = 10, ascending: bool = True) -> pd.DataFrame:
    """Top ``n`` merchants by summed open amount.

    Returned smallest-first by default, the order horizontal bar charts draw in.
    """
    if df.empty or n <= 0:
        return _empty(TOP_COLUMNS)
    out = _sum_by(df, "merchant", "open_amount").head(n)
    if ascending:
        out = out.iloc[::-1].reset_index(drop=True)
    return out[TOP_COLUMNS]


def compute_kpis(df: pd.DataFrame) -> Dict[str, float]:
    if df.empty:
        return {"open_total": 0.0, "revenue_total": 0.0, "ratio_mean": 0.0, "row_count": 0}
    return {
        "open_total": float(df["open_amount"].sum()),
        "revenue_total": float(df["revenue_amount"].sum()),
        "ratio_mean": float(df["ratio"].mean()),
        "row_count": int(len(df)),
    }


def sort_rows(df: pd.DataFrame, key: SortKey = "revenue", direction: SortDirection = "desc") -> pd.DataFrame:
    """Detail-table ordering; numeric keys compare through ``coerce``."""
    if key not in SORT_COLUMNS:
        raise ValueError(f"Unknown sort key {key!r}; expected one of {sorted(SORT_COLUMNS)}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unknown sort direction {direction!r}")
    col = SORT_COLUMNS[key]
    sort_key = (lambda s: s.map(coerce)) if key in NUMERIC_SORT_KEYS else None
    return df.sort_values(col, ascending=direction == "asc", kind="mergesort", na_position="last", key=sort_key)
