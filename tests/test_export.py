from __future__ import annotations

import io

import pandas as pd
import pytest

from merchant_metrics.comparison import compare_periods
from merchant_metrics.export import comparison_export_frame, export_filename, to_csv_bytes, to_tsv_text, to_xlsx_bytes
from merchant_metrics.ingest import merge_batch
from merchant_metrics.models import Dataset, MergeMode, Row


@pytest.fixture()
def comparison() -> pd.DataFrame:
    frame = merge_batch(
        Dataset(),
        [
            Row("2025-07", "A", "M1", 100, 40, 0.4),
            Row("2025-08", "A", "M1", 150, 30, 0.2),
            Row("2025-08", "B\tC", "M2", 10, 5, 0.5),
        ],
        MergeMode.REPLACE,
    ).frame
    return compare_periods(frame, "2025-07", "2025-08")


class TestExport:
    def test_period_labels(self, comparison) -> None:
        out = comparison_export_frame(comparison, "2025-07", "2025-08")
        assert "open@2025-07" in out.columns
        assert "revenue@2025-08" in out.columns
        assert "delta_revenue" in out.columns

    def test_accepts_records(self, comparison) -> None:
        out = comparison_export_frame(comparison.to_dict(orient="records"), "2025-07", "2025-08")
        assert len(out) == 2

    def test_empty_records_keep_header(self) -> None:
        out = comparison_export_frame([], "2025-07", "2025-08")
        assert out.empty and "ratio@2025-08" in out.columns

    def test_filename(self) -> None:
        assert export_filename("2025-07", "2025-08", "csv") == "compare_2025-07_vs_2025-08.csv"
        assert export_filename(None, None, ".xlsx") == "compare_A_vs_B.xlsx"

    def test_csv(self, comparison) -> None:
        text = to_csv_bytes(comparison_export_frame(comparison, "2025-07", "2025-08")).decode("utf-8")
        assert text.splitlines()[0].startswith("agent,merchant,open@2025-07,open@2025-08,delta_open")

    def test_tsv_replaces_tabs_in_text(self, comparison) -> None:
        text = to_tsv_text(comparison)
        lines = text.split("\n")
        assert len(lines) == 3
        assert all(len(line.split("\t")) == len(comparison.columns) for line in lines)
        assert "B C" in text

    def test_xlsx_round_trip_sheet(self, comparison) -> None:
        data = to_xlsx_bytes(comparison)
        back = pd.read_excel(io.BytesIO(data), sheet_name="Compare")
        assert back["merchant"].tolist() == comparison["merchant"].tolist()
