from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from merchant_metrics.coercion import coerce
from merchant_metrics.models import UNSPECIFIED_MONTH, Dataset, ExtraValue, MergeMode, Row
from merchant_metrics.months import normalize_month

logger = logging.getLogger(__name__)

# Candidate source keys per canonical field, in priority order (exact match).
AGENT_KEYS: Tuple[str, ...] = ("代理商", "代理", "Agent")
MERCHANT_KEYS: Tuple[str, ...] = ("商戶", "Store", "Merchant")
OPEN_KEYS: Tuple[str, ...] = ("開分量", "開分", "Open")
REVENUE_KEYS: Tuple[str, ...] = ("營業額", "Revenue", "Sales")
RATIO_KEYS: Tuple[str, ...] = ("營業額/開分量", "營業額/開分量百分比", "Revenue/Open", "ROI")
MONTH_KEYS: Tuple[str, ...] = ("月份", "月", "Month", "日期", "Date")

EXTRA_KEYS: Dict[str, Tuple[str, ...]] = {
    "machines": ("機台數量", "機台", "Machines"),
    "remark": ("備註", "Remark", "Note"),
    "low_open_flag": ("開分量低於25%", "低於25%"),
    "hours": ("營業時間", "Hours"),
}


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    return bool(pd.api.types.is_scalar(value) and not isinstance(value, str) and pd.isna(value))


def pick(raw: Mapping[str, object], keys: Sequence[str]) -> Optional[object]:
    """First value present under any of ``keys``; empty strings count as present."""
    for key in keys:
        if key in raw and not _is_missing(raw[key]):
            return raw[key]
    return None


def _text(value: object) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def _extra_value(value: object) -> ExtraValue:
    if isinstance(value, (str, bool, int, float)):
        return value
    if hasattr(value, "item"):
        # numpy scalars
        out = value.item()
        if isinstance(out, (str, bool, int, float)):
            return out
    return str(value)


def resolve_ratio(raw: Mapping[str, object], open_amount: float, revenue_amount: float) -> float:
    src = pick(raw, RATIO_KEYS)
    if src is None or (isinstance(src, str) and not src.strip()):
        return revenue_amount / open_amount if open_amount > 0 else 0.0
    if isinstance(src, str) and "%" in src:
        return coerce(src.replace("%", "")) / 100
    return coerce(src)


def to_row(raw: Mapping[str, object], batch_month_fallback: str = "") -> Row:
    """Map one heterogeneous record onto the canonical Row.

    Total: missing or unparsable fields resolve to defaults. Rows whose agent or
    merchant end up empty are the caller's to drop (see ``is_valid_row``).
    """
    open_amount = float(coerce(pick(raw, OPEN_KEYS)))
    revenue_amount = float(coerce(pick(raw, REVENUE_KEYS)))
    ratio = float(resolve_ratio(raw, open_amount, revenue_amount))

    month = normalize_month(pick(raw, MONTH_KEYS))
    if month is None:
        month = normalize_month(batch_month_fallback)

    extra: Dict[str, ExtraValue] = {}
    for name, keys in EXTRA_KEYS.items():
        value = pick(raw, keys)
        if value is not None:
            extra[name] = _extra_value(value)

    return Row(
        month=month,
        agent=_text(pick(raw, AGENT_KEYS)),
        merchant=_text(pick(raw, MERCHANT_KEYS)),
        open_amount=open_amount,
        revenue_amount=revenue_amount,
        ratio=ratio,
        extra=extra,
    )


def is_valid_row(row: Row) -> bool:
    return bool(row.agent) and bool(row.merchant)


def ingest_records(records: Iterable[Mapping[str, object]], batch_month: str = "") -> List[Row]:
    rows: List[Row] = []
    dropped = 0
    for raw in records:
        if not isinstance(raw, Mapping):
            dropped += 1
            continue
        row = to_row(raw, batch_month)
        if is_valid_row(row):
            rows.append(row)
        else:
            dropped += 1
    logger.debug("ingested %d rows, dropped %d without agent/merchant", len(rows), dropped)
    return rows


def merge_batch(
    existing: Dataset,
    incoming: Iterable[Row],
    mode: MergeMode | str = MergeMode.APPEND,
    batch_month_fallback: str = "",
) -> Dataset:
    """Combine an ingested batch with the current dataset.

    Rows without a month get the normalized batch month, else the
    ``UNSPECIFIED_MONTH`` sentinel. No deduplication is done: appending the
    same batch twice doubles every downstream sum.
    """
    mode = MergeMode.parse(mode)
    fallback = normalize_month(batch_month_fallback) or UNSPECIFIED_MONTH
    merged = tuple(r if r.month else r.with_month(fallback) for r in incoming)

    if mode is MergeMode.APPEND:
        rows = existing.rows + merged
    else:
        rows = merged
    logger.debug(
        "merge %s: %d existing + %d incoming -> %d rows (version %d)",
        mode.value,
        len(existing),
        len(merged),
        len(rows),
        existing.version + 1,
    )
    return Dataset(rows=rows, version=existing.version + 1)
