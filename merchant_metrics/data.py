from __future__ import annotations

import io
import json
import logging
import re
import time
from pathlib import Path
from typing import IO, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlsplit

import pandas as pd

from merchant_metrics.filters import (
    FilterCriteria,
    apply_filters,
    available_months,
    exclude_agents,
    month_counts,
    normalize_filters,
)
from merchant_metrics.ingest import AGENT_KEYS, MERCHANT_KEYS, ingest_records, merge_batch
from merchant_metrics.models import Dataset, MergeMode, Row
from merchant_metrics.months import month_from_filename

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, IO]

CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx", ".xls"}
JSON_EXTENSIONS = {".json"}

# Demo rows so an empty deployment still has something to show.
SEED_RECORDS: List[Dict[str, object]] = [
    {"月份": "2025-07", "代理商": "金傑克", "商戶": "萬豪", "開分量": 1200000, "營業額": 300000},
    {"月份": "2025-07", "代理商": "金傑克", "商戶": "新吉星", "開分量": 900000, "營業額": 210000},
    {"月份": "2025-08", "代理商": "阿峰", "商戶": "千弈", "開分量": 500000, "營業額": 150000},
    {"月份": "2025-08", "代理商": "阿峰", "商戶": "布拉德", "開分量": 380000, "營業額": 98000},
    {"月份": "2025-08", "代理商": "國正", "商戶": "皇室", "開分量": 350000, "營業額": 70000},
]


def seed_dataset() -> Dataset:
    return merge_batch(Dataset(), ingest_records(SEED_RECORDS), MergeMode.REPLACE)


# ---------------- Readers ----------------
def find_header_row(df: pd.DataFrame, keywords: Iterable[str], search_rows: int = 10) -> Optional[int]:
    lowered = [k.lower() for k in keywords]
    for idx in range(min(search_rows, len(df))):
        row = df.iloc[idx].astype(str).str.lower().tolist()
        if any(k in " ".join(row) for k in lowered):
            return idx
    return None


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def frame_to_records(df: pd.DataFrame) -> List[Dict[str, object]]:
    """Plain dict records; blank cells become "" and fully blank rows are skipped."""
    if df.empty:
        return []
    df = drop_duplicate_columns(df.rename(columns=lambda c: str(c).strip()))
    df = df.astype(object).where(df.notna(), "")
    blank = df.apply(lambda r: all(str(v).strip() == "" for v in r), axis=1)
    return df[~blank].to_dict(orient="records")


def _extension(name: str) -> str:
    return Path(urlsplit(name).path).suffix.lower()


def _rewind(source: Source) -> Source:
    if isinstance(source, bytes):
        return io.BytesIO(source)
    if hasattr(source, "seek"):
        source.seek(0)
    return source


def read_csv_records(source: Source) -> List[Dict[str, object]]:
    df = pd.read_csv(_rewind(source), dtype=str, keep_default_na=False, skip_blank_lines=True)
    return frame_to_records(df)


def read_excel_records(source: Source) -> List[Dict[str, object]]:
    """First sheet; the header row is located among the first rows by its agent/merchant labels."""
    raw = pd.read_excel(_rewind(source), sheet_name=0, header=None, dtype=str)
    if raw.empty:
        return []
    header_row = find_header_row(raw, [*AGENT_KEYS, *MERCHANT_KEYS]) or 0
    df = raw.iloc[header_row + 1 :].copy()
    df.columns = [str(c).strip() if pd.notna(c) else f"column_{i}" for i, c in enumerate(raw.iloc[header_row])]
    return frame_to_records(df.reset_index(drop=True))


def read_json_records(source: Source) -> List[Dict[str, object]]:
    """A JSON array of objects; any other document yields no records."""
    if isinstance(source, (str, Path)):
        with open(source, encoding="utf-8") as fh:
            payload = json.load(fh)
    elif isinstance(source, bytes):
        payload = json.loads(source.decode("utf-8"))
    else:
        payload = json.load(_rewind(source))
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


def read_records(source: Source, filename: Optional[str] = None) -> List[Dict[str, object]]:
    """Raw records from a CSV, spreadsheet or JSON file, chosen by extension."""
    name = filename or (str(source) if isinstance(source, (str, Path)) else "")
    ext = _extension(name)
    if ext in CSV_EXTENSIONS:
        return read_csv_records(source)
    if ext in EXCEL_EXTENSIONS:
        return read_excel_records(source)
    if ext in JSON_EXTENSIONS:
        return read_json_records(source)
    raise ValueError(f"Unsupported file type {ext or '(none)'!r} for {name!r}")


def is_csv_source(url: str) -> bool:
    return bool(re.search(r"\.csv(\?|$)", url, re.IGNORECASE) or re.search(r"[?&](output|format)=csv\b", url, re.IGNORECASE))


def cache_busted(url: str, now: Optional[float] = None) -> str:
    stamp = int((now if now is not None else time.time()) * 1000)
    return f"{url}{'&' if '?' in url else '?'}t={stamp}"


def load_remote_records(url: str) -> List[Dict[str, object]]:
    """Records from a published CSV or JSON feed."""
    target = cache_busted(url)
    if is_csv_source(url):
        df = pd.read_csv(target, dtype=str, keep_default_na=False, skip_blank_lines=True)
    else:
        df = pd.read_json(target, orient="records", dtype=False, convert_dates=False)
    return frame_to_records(df)


def read_batch(sources: Iterable[Tuple[str, Source]], batch_month: str = "") -> Tuple[List[Dict[str, object]], str]:
    """Raw records from several named files read as one batch.

    Without an explicit batch month, the first file name carrying a month
    supplies it. Returns the records and the batch month actually used.
    """
    sources = list(sources)
    if not batch_month:
        batch_month = next((m for m in (month_from_filename(name) for name, _ in sources) if m), "")
    records: List[Dict[str, object]] = []
    for name, source in sources:
        chunk = read_records(source, filename=name)
        records.extend(chunk)
        logger.debug("read %d records from %s", len(chunk), name)
    return records, batch_month


def load_files(paths: Iterable[Union[str, Path]], batch_month: str = "") -> Tuple[List[Row], str]:
    """Rows from local files ingested as one batch; see ``read_batch``."""
    paths = [Path(p) for p in paths]
    records, batch_month = read_batch([(p.name, p) for p in paths], batch_month)
    return ingest_records(records, batch_month), batch_month


# ---------------- Context ----------------
def prepare_context(filters: dict | FilterCriteria, dataset: Dataset) -> Dict[str, object]:
    months = available_months(dataset)
    filt = filters if isinstance(filters, FilterCriteria) else normalize_filters(filters, available_months=months)

    filtered = apply_filters(dataset, filt)
    # Period comparison ignores the view filters but honours agent exclusions.
    compare_base = exclude_agents(dataset, filt.exclude_agent_tokens)

    return {
        "filters": filt,
        "dataset_version": dataset.version,
        "months": months,
        "month_counts": month_counts(dataset),
        "filtered": filtered,
        "filtered_rows": filtered.frame,
        "compare_base": compare_base.frame,
    }
