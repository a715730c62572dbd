from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pandas as pd

from merchant_metrics.models import JoinKey

COMPARISON_COLUMNS: List[str] = [
    "agent",
    "merchant",
    "open_a",
    "open_b",
    "delta_open",
    "revenue_a",
    "revenue_b",
    "delta_revenue",
    "ratio_a",
    "ratio_b",
    "delta_ratio",
]

_SIDE_COLUMNS = {"agent": "agent", "merchant": "merchant", "open_amount": "open", "revenue_amount": "revenue", "ratio": "ratio"}


def default_comparison_months(months: List[str]) -> Tuple[Optional[str], Optional[str]]:
    """First and second available month (the first twice when only one exists)."""
    if not months:
        return None, None
    return months[0], months[1] if len(months) > 1 else months[0]


def _join_key(df: pd.DataFrame, join_key: JoinKey) -> pd.Series:
    if join_key is JoinKey.MERCHANT:
        return df["merchant"].astype(str)
    return df["agent"].astype(str) + "__" + df["merchant"].astype(str)


def _side(df: pd.DataFrame, month: str, join_key: JoinKey, suffix: str) -> pd.DataFrame:
    part = df[df["month"] == month]
    part = part.assign(_key=_join_key(part, join_key))
    # One row per key; a later row for the same key replaces an earlier one.
    part = part.drop_duplicates(subset="_key", keep="last")
    cols = {src: f"{dst}_{suffix}" for src, dst in _SIDE_COLUMNS.items()}
    return part[["_key", *cols]].rename(columns=cols)


def compare_periods(
    df: pd.DataFrame,
    month_a: Optional[str],
    month_b: Optional[str],
    join_key: JoinKey | str = JoinKey.AGENT_AND_MERCHANT,
) -> pd.DataFrame:
    """Outer-join two months on ``join_key`` and compute B - A deltas.

    A side that lacks a key contributes zeros; identity labels come from
    whichever side has the key. Sorted by ``delta_revenue`` descending.
    """
    join_key = JoinKey.parse(join_key)
    empty = pd.DataFrame(columns=COMPARISON_COLUMNS)
    if not month_a or not month_b or df.empty:
        return empty

    side_a = _side(df, month_a, join_key, "a")
    side_b = _side(df, month_b, join_key, "b")
    if side_a.empty and side_b.empty:
        return empty

    merged = side_a.merge(side_b, on="_key", how="outer", sort=False)
    out = pd.DataFrame(
        {
            "agent": merged["agent_a"].fillna(merged["agent_b"]).fillna(""),
            "merchant": merged["merchant_a"].fillna(merged["merchant_b"]).fillna(""),
        }
    )
    for metric in ["open", "revenue", "ratio"]:
        a = pd.to_numeric(merged[f"{metric}_a"], errors="coerce").fillna(0.0).astype(float)
        b = pd.to_numeric(merged[f"{metric}_b"], errors="coerce").fillna(0.0).astype(float)
        out[f"{metric}_a"] = a
        out[f"{metric}_b"] = b
        out[f"delta_{metric}"] = b - a

    out = out.sort_values("delta_revenue", ascending=False, kind="mergesort").reset_index(drop=True)
    return out[COMPARISON_COLUMNS]


def _period_totals(df: pd.DataFrame, month: Optional[str]) -> Dict[str, float]:
    part = df[df["month"] == month] if month and not df.empty else df.iloc[0:0]
    return {
        "open": float(part["open_amount"].sum()) if not part.empty else 0.0,
        "revenue": float(part["revenue_amount"].sum()) if not part.empty else 0.0,
        "ratio_mean": float(part["ratio"].mean()) if not part.empty else 0.0,
    }


def compute_period_summary(df: pd.DataFrame, month_a: Optional[str], month_b: Optional[str]) -> Dict[str, Dict[str, float]]:
    """Totals per period (open, revenue, mean ratio) and their B - A deltas."""
    a = _period_totals(df, month_a)
    b = _period_totals(df, month_b)
    return {
        metric: {"a": a[metric], "b": b[metric], "delta": b[metric] - a[metric]}
        for metric in ["open", "revenue", "ratio_mean"]
    }
