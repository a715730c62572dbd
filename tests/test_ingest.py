from __future__ import annotations

import pytest

from merchant_metrics.ingest import ingest_records, is_valid_row, merge_batch, to_row
from merchant_metrics.models import UNSPECIFIED_MONTH, Dataset, MergeMode, Row


@pytest.fixture()
def example_records() -> list[dict]:
    return [
        {"agent": "X", "merchant": "M1", "open": "1,200,000", "revenue": "300000"},
        {"agent": "X", "merchant": "M2", "open": "900000", "revenue": "210000"},
    ]


def _english(record: dict) -> dict:
    return {"Agent": record["agent"], "Merchant": record["merchant"], "Open": record["open"], "Revenue": record["revenue"]}


class TestToRow:
    def test_example_scenario(self, example_records) -> None:
        rows = [to_row(_english(r), "2025-07") for r in example_records]

        assert rows[0].month == "2025-07"
        assert (rows[0].agent, rows[0].merchant) == ("X", "M1")
        assert rows[0].open_amount == 1_200_000
        assert rows[0].revenue_amount == 300_000
        assert rows[0].ratio == pytest.approx(0.25)
        assert rows[1].ratio == pytest.approx(210_000 / 900_000, abs=1e-9)

    def test_alias_priority(self) -> None:
        row = to_row({"代理": "B", "代理商": "A", "Store": "S", "開分": 10, "開分量": 20})
        assert row.agent == "A"
        assert row.open_amount == 20

    def test_aliases_are_exact_matches(self) -> None:
        row = to_row({"agent": "A", "merchant": "S"})
        assert row.agent == "" and row.merchant == ""

    def test_identity_is_trimmed(self) -> None:
        row = to_row({"Agent": "  A ", "商戶": " S\t"})
        assert (row.agent, row.merchant) == ("A", "S")

    def test_explicit_ratio_percent(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "Open": 100, "Revenue": 50, "ROI": "12.5%"})
        assert row.ratio == pytest.approx(0.125)

    def test_explicit_ratio_plain_number_overrides_computed(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "Open": 100, "Revenue": 50, "營業額/開分量": "0.3"})
        assert row.ratio == pytest.approx(0.3)

    def test_empty_ratio_field_falls_back_to_revenue_over_open(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "Open": 200, "Revenue": 50, "ROI": ""})
        assert row.ratio == pytest.approx(0.25)

    def test_zero_open_gives_zero_ratio(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "Open": 0, "Revenue": 50})
        assert row.ratio == 0

    def test_unparsable_amounts_default_to_zero(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "Open": "n/a", "Revenue": None})
        assert row.open_amount == 0 and row.revenue_amount == 0 and row.ratio == 0

    def test_record_month_wins_over_batch_month(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "月份": "2025/8"}, "2025-07")
        assert row.month == "2025-08"

    def test_unparsable_record_month_uses_batch_month(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "Month": "soon"}, "2025年7月")
        assert row.month == "2025-07"

    def test_no_month_at_all(self) -> None:
        assert to_row({"Agent": "A", "Store": "S"}).month is None

    def test_extras_are_preserved(self) -> None:
        row = to_row({"Agent": "A", "Store": "S", "機台數量": 12, "Remark": "new", "Hours": "10-22"})
        assert row.extra == {"machines": 12, "remark": "new", "hours": "10-22"}

    def test_total_on_empty_record(self) -> None:
        row = to_row({})
        assert not is_valid_row(row)
        assert row.extra == {}


class TestIngestRecords:
    def test_drops_rows_missing_identity(self) -> None:
        rows = ingest_records(
            [
                {"Agent": "A", "Store": "S"},
                {"Agent": "", "Store": "S"},
                {"Agent": "A"},
                {"Agent": "   ", "Store": "S"},
            ]
        )
        assert len(rows) == 1
        assert all(r.agent and r.merchant for r in rows)


class TestMergeBatch:
    def _rows(self, n: int, month=None) -> list[Row]:
        return [Row(month=month, agent="A", merchant=f"M{i}") for i in range(n)]

    def test_append_keeps_order_and_counts(self) -> None:
        existing = merge_batch(Dataset(), self._rows(2, "2025-07"), MergeMode.REPLACE)
        incoming = self._rows(3, "2025-08")

        merged = merge_batch(existing, incoming, MergeMode.APPEND)

        assert len(merged) == len(existing) + len(incoming)
        assert merged.rows[:2] == existing.rows
        assert [r.month for r in merged.rows[2:]] == ["2025-08"] * 3
        assert merged.version == existing.version + 1

    def test_replace_keeps_incoming_only(self) -> None:
        existing = merge_batch(Dataset(), self._rows(2, "2025-07"), MergeMode.REPLACE)
        merged = merge_batch(existing, self._rows(3, "2025-08"), "replace")
        assert len(merged) == 3

    def test_missing_month_backfilled_from_batch(self) -> None:
        merged = merge_batch(Dataset(), self._rows(2), MergeMode.APPEND, "2025/9")
        assert {r.month for r in merged.rows} == {"2025-09"}

    def test_missing_month_becomes_sentinel(self) -> None:
        merged = merge_batch(Dataset(), self._rows(2), MergeMode.APPEND, "")
        assert {r.month for r in merged.rows} == {UNSPECIFIED_MONTH}

    def test_inputs_are_not_mutated(self) -> None:
        existing = merge_batch(Dataset(), self._rows(1, "2025-07"), MergeMode.REPLACE)
        before = existing.rows
        merge_batch(existing, self._rows(1), MergeMode.APPEND)
        assert existing.rows == before and len(existing) == 1

    def test_no_dedup_on_repeated_append(self) -> None:
        batch = self._rows(2, "2025-07")
        once = merge_batch(Dataset(), batch, MergeMode.APPEND)
        twice = merge_batch(once, batch, MergeMode.APPEND)
        assert len(twice) == 4

    def test_unknown_mode(self) -> None:
        with pytest.raises(ValueError):
            merge_batch(Dataset(), [], "upsert")
