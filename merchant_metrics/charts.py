from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def pareto_chart(pareto: pd.DataFrame, title: str = "Merchant open amount") -> Dict[str, Any]:
    """Bars of summed open amount with the cumulative share line on a second axis."""
    base = alt.Chart(pareto).encode(x=alt.X("category:N", sort=None, title=None))
    bars = base.mark_bar().encode(
        y=alt.Y("value:Q", title="Open", axis=alt.Axis(format="~s")),
        tooltip=["category", alt.Tooltip("value:Q", format=",.0f")],
    )
    line = base.mark_line(point=True, color="#d62728").encode(
        y=alt.Y("cumulative_share_pct:Q", title="Cumulative %", scale=alt.Scale(domain=[0, 100])),
        tooltip=["category", alt.Tooltip("cumulative_share_pct:Q", format=".2f")],
    )
    chart = alt.layer(bars, line).resolve_scale(y="independent").properties(title=title, height=280)
    return to_vega_spec(chart)


def histogram_chart(histogram: pd.DataFrame) -> Dict[str, Any]:
    chart = (
        alt.Chart(histogram)
        .mark_bar()
        .encode(
            x=alt.X("range_label:N", sort=None, title="Revenue / open"),
            y=alt.Y("count:Q", title="Rows"),
            tooltip=["range_label", "count"],
        )
        .properties(height=260)
    )
    return to_vega_spec(chart)


def share_chart(share: pd.DataFrame) -> Dict[str, Any]:
    chart = (
        alt.Chart(share)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("category:N", title="Agent"),
            tooltip=["category", alt.Tooltip("value:Q", format=",.0f"), alt.Tooltip("share_pct:Q", format=".1f")],
        )
        .properties(height=260)
    )
    return to_vega_spec(chart)


def top_merchants_chart(top: pd.DataFrame) -> Dict[str, Any]:
    chart = (
        alt.Chart(top)
        .mark_bar()
        .encode(
            x=alt.X("value:Q", title="Open", axis=alt.Axis(format="~s")),
            y=alt.Y("category:N", sort="-x", title=None),
            tooltip=["category", alt.Tooltip("value:Q", format=",.0f")],
        )
        .properties(height=alt.Step(22))
    )
    return to_vega_spec(chart)
