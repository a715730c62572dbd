from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Iterable, Mapping, Optional, Tuple

from merchant_metrics.config import get_settings
from merchant_metrics.data import load_remote_records, seed_dataset
from merchant_metrics.ingest import ingest_records, merge_batch
from merchant_metrics.models import Dataset, MergeMode, Row

logger = logging.getLogger(__name__)


class DatasetStore:
    """Holds the current Dataset; merges are serialized and published whole."""

    def __init__(self, initial: Optional[Dataset] = None) -> None:
        self._dataset = initial if initial is not None else Dataset()
        self._lock = threading.Lock()

    def snapshot(self) -> Dataset:
        return self._dataset

    def merge(self, rows: Iterable[Row], mode: MergeMode | str = MergeMode.APPEND, batch_month: str = "") -> Dataset:
        rows = list(rows)
        with self._lock:
            updated = merge_batch(self._dataset, rows, mode, batch_month)
            self._dataset = updated
        return updated

    def ingest(
        self,
        records: Iterable[Mapping[str, object]],
        mode: MergeMode | str = MergeMode.APPEND,
        batch_month: str = "",
    ) -> Tuple[Dataset, int, int]:
        """Ingest raw records; returns the new dataset, rows kept and rows dropped."""
        records = list(records)
        rows = ingest_records(records, batch_month)
        updated = self.merge(rows, mode, batch_month)
        return updated, len(rows), len(records) - len(rows)


def build_store() -> DatasetStore:
    settings = get_settings()
    store = DatasetStore(seed_dataset() if settings.seed_demo else Dataset())
    if settings.data_url:
        try:
            records = load_remote_records(settings.data_url)
        except Exception:
            logger.exception("loading %s failed", settings.data_url)
        else:
            if records:
                store.ingest(records, MergeMode.REPLACE)
            logger.info("loaded %d records from %s", len(records), settings.data_url)
    return store


@lru_cache(maxsize=1)
def get_store() -> DatasetStore:
    return build_store()
