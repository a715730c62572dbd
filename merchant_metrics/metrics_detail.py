from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from merchant_metrics.aggregations import SortDirection, SortKey, sort_rows
from merchant_metrics.filters import FilterCriteria
from merchant_metrics.models import Dataset


def compute_detail(
    filters: FilterCriteria,
    ctx: Dict[str, Any],
    *,
    sort_key: SortKey = "revenue",
    direction: SortDirection = "desc",
) -> Dict[str, Any]:
    filtered: Dataset = ctx.get("filtered", Dataset())
    if not len(filtered):
        return {"filters": asdict(filters), "sort": {"key": sort_key, "direction": direction}, "rows": []}

    order = sort_rows(filtered.frame, sort_key, direction).index
    return {
        "filters": asdict(filters),
        "sort": {"key": sort_key, "direction": direction},
        "rows": filtered.take(order).to_records(),
    }
