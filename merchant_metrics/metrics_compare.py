from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from merchant_metrics.comparison import compare_periods, compute_period_summary, default_comparison_months
from merchant_metrics.filters import FilterCriteria
from merchant_metrics.models import JoinKey
from merchant_metrics.months import repad_month


def resolve_months(ctx: Dict[str, Any], month_a: Optional[str], month_b: Optional[str]):
    default_a, default_b = default_comparison_months(ctx.get("months") or [])
    return repad_month(month_a) or default_a, repad_month(month_b) or default_b


def compute_compare(
    filters: FilterCriteria,
    ctx: Dict[str, Any],
    *,
    month_a: Optional[str] = None,
    month_b: Optional[str] = None,
    join_key: JoinKey | str = JoinKey.AGENT_AND_MERCHANT,
) -> Dict[str, Any]:
    base: pd.DataFrame = ctx.get("compare_base", pd.DataFrame())
    join_key = JoinKey.parse(join_key)
    month_a, month_b = resolve_months(ctx, month_a, month_b)

    rows = compare_periods(base, month_a, month_b, join_key)
    return {
        "filters": asdict(filters),
        "month_a": month_a,
        "month_b": month_b,
        "join_key": join_key.value,
        "summary": compute_period_summary(base, month_a, month_b) if month_a and month_b else None,
        "rows": rows.to_dict(orient="records"),
    }
