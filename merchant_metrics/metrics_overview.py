from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from merchant_metrics.aggregations import (
    compute_kpis,
    compute_pareto,
    compute_ratio_histogram,
    compute_revenue_share,
    compute_top_merchants,
)
from merchant_metrics.charts import histogram_chart, pareto_chart, share_chart, top_merchants_chart
from merchant_metrics.coercion import format_scaled
from merchant_metrics.filters import FilterCriteria


def compute_overview(filters: FilterCriteria, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())

    kpis = compute_kpis(df)
    kpis_display = {
        "open_total": format_scaled(kpis["open_total"]),
        "revenue_total": format_scaled(kpis["revenue_total"]),
        "ratio_mean": f"{kpis['ratio_mean'] * 100:.2f}%",
    }

    pareto = compute_pareto(df)
    histogram = compute_ratio_histogram(df, filters.bin_step)
    share = compute_revenue_share(df)
    top = compute_top_merchants(df, filters.top_n)

    charts: Dict[str, Any] = {}
    if not df.empty:
        charts = {
            "pareto": pareto_chart(pareto),
            "histogram": histogram_chart(histogram),
            "revenue_share": share_chart(share),
            "top_merchants": top_merchants_chart(top),
        }

    return {
        "filters": asdict(filters),
        "dataset_version": ctx.get("dataset_version"),
        "kpis": kpis,
        "kpis_display": kpis_display,
        "pareto": pareto.to_dict(orient="records"),
        "histogram": histogram.to_dict(orient="records"),
        "revenue_share": share.to_dict(orient="records"),
        "top_merchants": top.to_dict(orient="records"),
        "charts": charts,
    }
