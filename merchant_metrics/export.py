from __future__ import annotations

import io
from typing import Dict, List, Optional, Union

import pandas as pd

from merchant_metrics.comparison import COMPARISON_COLUMNS

Records = Union[pd.DataFrame, List[Dict[str, object]]]


def comparison_export_frame(rows: Records, month_a: Optional[str], month_b: Optional[str]) -> pd.DataFrame:
    """Comparison rows with per-period column labels, e.g. ``open@2025-07``."""
    df = rows.copy() if isinstance(rows, pd.DataFrame) else pd.DataFrame(rows, columns=COMPARISON_COLUMNS)
    labels = {}
    for metric in ["open", "revenue", "ratio"]:
        labels[f"{metric}_a"] = f"{metric}@{month_a or 'A'}"
        labels[f"{metric}_b"] = f"{metric}@{month_b or 'B'}"
    return df.rename(columns=labels)


def export_filename(month_a: Optional[str], month_b: Optional[str], ext: str) -> str:
    return f"compare_{month_a or 'A'}_vs_{month_b or 'B'}.{ext.lstrip('.')}"


def to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def to_tsv_text(df: pd.DataFrame) -> str:
    """Tab-separated text ready to paste into a spreadsheet."""
    cleaned = df.copy()
    for c in cleaned.columns:
        if cleaned[c].dtype == object:
            cleaned[c] = cleaned[c].map(lambda v: "" if v is None else str(v).replace("\t", " "))
    return cleaned.to_csv(sep="\t", index=False, lineterminator="\n").rstrip("\n")


def to_xlsx_bytes(df: pd.DataFrame, sheet_name: str = "Compare") -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buf.getvalue()
