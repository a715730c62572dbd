from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd

UNSPECIFIED_MONTH = "unspecified"
ALL = "ALL"

ExtraValue = Union[str, int, float, bool]

FRAME_COLUMNS: List[str] = [
    "month",
    "agent",
    "merchant",
    "open_amount",
    "revenue_amount",
    "ratio",
]


class MergeMode(str, Enum):
    APPEND = "append"
    REPLACE = "replace"

    @classmethod
    def parse(cls, value: "str | MergeMode") -> "MergeMode":
        if isinstance(value, MergeMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown merge mode {value!r}; expected one of {[m.value for m in cls]}") from None


class JoinKey(str, Enum):
    AGENT_AND_MERCHANT = "agent+merchant"
    MERCHANT = "merchant"

    @classmethod
    def parse(cls, value: "str | JoinKey") -> "JoinKey":
        if isinstance(value, JoinKey):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown join key {value!r}; expected one of {[k.value for k in cls]}") from None


@dataclass(frozen=True)
class Row:
    """One canonical agent/merchant/period record.

    ``month`` is None only between ingestion and merging; rows held in a
    Dataset always carry ``YYYY-MM`` or ``UNSPECIFIED_MONTH``. ``ratio`` is
    stored as ingested and may differ from revenue/open when the source
    supplied its own ratio.
    """

    month: Optional[str]
    agent: str
    merchant: str
    open_amount: float = 0.0
    revenue_amount: float = 0.0
    ratio: float = 0.0
    extra: Dict[str, ExtraValue] = field(default_factory=dict)

    def with_month(self, month: str) -> "Row":
        return replace(self, month=month)

    def to_record(self) -> Dict[str, object]:
        record: Dict[str, object] = {
            "month": self.month,
            "agent": self.agent,
            "merchant": self.merchant,
            "open_amount": self.open_amount,
            "revenue_amount": self.revenue_amount,
            "ratio": self.ratio,
        }
        record.update({k: v for k, v in self.extra.items() if k not in record})
        return record


@dataclass(frozen=True)
class Dataset:
    """Ordered, immutable collection of Rows; merges produce a new value."""

    rows: Tuple[Row, ...] = ()
    version: int = 0

    def __len__(self) -> int:
        return len(self.rows)

    @cached_property
    def frame(self) -> pd.DataFrame:
        """Canonical columns as a DataFrame, index aligned with ``rows``."""
        if not self.rows:
            return pd.DataFrame(
                {
                    "month": pd.Series(dtype=object),
                    "agent": pd.Series(dtype=object),
                    "merchant": pd.Series(dtype=object),
                    "open_amount": pd.Series(dtype=float),
                    "revenue_amount": pd.Series(dtype=float),
                    "ratio": pd.Series(dtype=float),
                }
            )
        df = pd.DataFrame(
            [[r.month, r.agent, r.merchant, r.open_amount, r.revenue_amount, r.ratio] for r in self.rows],
            columns=FRAME_COLUMNS,
        )
        for c in ["open_amount", "revenue_amount", "ratio"]:
            df[c] = df[c].astype(float)
        return df

    def take(self, positions) -> "Dataset":
        """Sub-dataset at the given positions, same version."""
        return Dataset(rows=tuple(self.rows[i] for i in positions), version=self.version)

    def to_records(self) -> List[Dict[str, object]]:
        return [r.to_record() for r in self.rows]
