from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from merchant_metrics.models import ALL, Dataset
from merchant_metrics.months import repad_month

DEFAULT_TOP_N = 10
DEFAULT_BIN_STEP = 0.05

_TOKEN_SPLIT = re.compile(r"[,\s]+")


@dataclass(frozen=True)
class FilterCriteria:
    agent: str = ALL
    merchant: str = ALL
    exclude_agent_tokens: List[str] = field(default_factory=list)
    search_text: str = ""
    selected_months: List[str] = field(default_factory=list)
    top_n: int = DEFAULT_TOP_N
    bin_step: float = DEFAULT_BIN_STEP


def parse_exclude_tokens(text: Optional[str]) -> List[str]:
    """Split "Alpha, Beta Gamma" into ["Alpha", "Beta", "Gamma"]."""
    if not text:
        return []
    return [t for t in (s.strip() for s in _TOKEN_SPLIT.split(str(text))) if t]


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    return [str(v) for v in values if v is not None]


def normalize_filters(
    raw: dict,
    *,
    available_months: Optional[List[str]] = None,
    default_top_n: int = DEFAULT_TOP_N,
    default_bin_step: float = DEFAULT_BIN_STEP,
) -> FilterCriteria:
    available_months = sorted(available_months or [])

    agent = str(raw.get("agent") or ALL).strip() or ALL
    merchant = str(raw.get("merchant") or ALL).strip() or ALL

    exclude = raw.get("exclude_agent_tokens")
    if isinstance(exclude, str):
        tokens = parse_exclude_tokens(exclude)
    else:
        tokens = [t for item in _as_str_list(exclude) for t in parse_exclude_tokens(item)]

    search_text = str(raw.get("search_text") or "").strip()

    selected_months = [repad_month(m) for m in _as_str_list(raw.get("selected_months"))]
    selected_months = [m for m in selected_months if m]
    # The "last n months" quick pick replaces any explicit selection.
    try:
        last_n = int(raw.get("last_n_months") or 0)
    except (TypeError, ValueError):
        last_n = 0
    if last_n > 0:
        selected_months = latest_months(available_months, last_n)
    if not selected_months:
        selected_months = list(available_months)

    top_n = raw.get("top_n", default_top_n)
    try:
        top_n = int(top_n)
    except (TypeError, ValueError):
        top_n = default_top_n
    top_n = max(1, min(200, top_n))

    bin_step = raw.get("bin_step", default_bin_step)
    try:
        bin_step = float(bin_step)
    except (TypeError, ValueError):
        bin_step = default_bin_step
    if not 0 < bin_step <= 1:
        bin_step = default_bin_step

    return FilterCriteria(
        agent=agent,
        merchant=merchant,
        exclude_agent_tokens=tokens,
        search_text=search_text,
        selected_months=selected_months,
        top_n=top_n,
        bin_step=bin_step,
    )


# ---------------- Month helpers ----------------
def available_months(dataset: Dataset) -> List[str]:
    """Distinct (re-padded) months in the dataset, ascending."""
    if not len(dataset):
        return []
    months = dataset.frame["month"].map(repad_month)
    return sorted(m for m in months.unique().tolist() if m)


def month_counts(dataset: Dataset) -> Dict[str, int]:
    if not len(dataset):
        return {}
    counts = dataset.frame["month"].map(repad_month).value_counts()
    return {str(k): int(v) for k, v in sorted(counts.items())}


def latest_months(months: List[str], n: int) -> List[str]:
    """The last ``n`` months of an ascending month list."""
    if n <= 0:
        return []
    return list(months[-n:])


def agent_options(dataset: Dataset) -> List[str]:
    if not len(dataset):
        return []
    return dataset.frame["agent"].unique().tolist()


def merchant_options(dataset: Dataset, agent: str = ALL) -> List[str]:
    """Merchants under ``agent``, or every merchant when agent is ALL."""
    if not len(dataset):
        return []
    df = dataset.frame
    if agent and agent != ALL:
        df = df[df["agent"] == agent]
    return df["merchant"].unique().tolist()


# ---------------- Pipeline ----------------
def exclusion_mask(df: pd.DataFrame, tokens: List[str]) -> pd.Series:
    """True for rows to keep: agent contains none of ``tokens`` (case-sensitive)."""
    keep = pd.Series(True, index=df.index)
    agents = df["agent"].astype(str)
    for tok in tokens:
        keep &= ~agents.str.contains(tok, regex=False)
    return keep


def filter_mask(df: pd.DataFrame, criteria: FilterCriteria, known_months: Optional[List[str]] = None) -> pd.Series:
    mask = pd.Series(True, index=df.index)
    if df.empty:
        return mask

    selected = set(criteria.selected_months)
    if selected and (known_months is None or selected != set(known_months)):
        mask &= df["month"].map(repad_month).isin(selected)

    if criteria.agent and criteria.agent != ALL:
        mask &= df["agent"] == criteria.agent
    if criteria.merchant and criteria.merchant != ALL:
        mask &= df["merchant"] == criteria.merchant

    if criteria.exclude_agent_tokens:
        mask &= exclusion_mask(df, criteria.exclude_agent_tokens)

    if criteria.search_text.strip():
        q = criteria.search_text.strip().lower()
        mask &= df["agent"].astype(str).str.lower().str.contains(q, regex=False) | df["merchant"].astype(
            str
        ).str.lower().str.contains(q, regex=False)
    return mask


def apply_filters(dataset: Dataset, criteria: FilterCriteria) -> Dataset:
    """Rows matching every criterion; the input dataset is left untouched."""
    if not len(dataset):
        return dataset
    mask = filter_mask(dataset.frame, criteria, known_months=available_months(dataset))
    return dataset.take(mask.to_numpy().nonzero()[0])


def exclude_agents(dataset: Dataset, tokens: List[str]) -> Dataset:
    if not len(dataset) or not tokens:
        return dataset
    mask = exclusion_mask(dataset.frame, tokens)
    return dataset.take(mask.to_numpy().nonzero()[0])
