from __future__ import annotations

import pytest

from merchant_metrics.filters import (
    FilterCriteria,
    agent_options,
    apply_filters,
    available_months,
    exclude_agents,
    latest_months,
    merchant_options,
    month_counts,
    normalize_filters,
    parse_exclude_tokens,
)
from merchant_metrics.ingest import merge_batch
from merchant_metrics.models import Dataset, MergeMode, Row


@pytest.fixture()
def dataset() -> Dataset:
    rows = [
        Row("2025-07", "AlphaCorp", "Grand", 100, 30, 0.3),
        Row("2025-07", "Beta", "Star", 200, 40, 0.2),
        Row("2025-08", "Gamma", "Grand", 300, 90, 0.3),
        Row("2025-8", "Gamma", "Moon", 50, 5, 0.1),
        Row("2025-09", "alpha", "Royal", 80, 8, 0.1),
    ]
    return merge_batch(Dataset(), rows, MergeMode.REPLACE)


def _agents(ds: Dataset) -> list[str]:
    return [r.agent for r in ds.rows]


class TestExcludeTokens:
    def test_split_on_commas_and_whitespace(self) -> None:
        assert parse_exclude_tokens("Alpha, Beta  Gamma,,") == ["Alpha", "Beta", "Gamma"]

    def test_empty(self) -> None:
        assert parse_exclude_tokens("") == []
        assert parse_exclude_tokens(None) == []


class TestNormalizeFilters:
    def test_defaults(self) -> None:
        f = normalize_filters({}, available_months=["2025-08", "2025-07"])
        assert f.agent == "ALL" and f.merchant == "ALL"
        assert f.selected_months == ["2025-07", "2025-08"]
        assert f.exclude_agent_tokens == []
        assert f.top_n == 10 and f.bin_step == 0.05

    def test_exclude_text_and_list(self) -> None:
        assert normalize_filters({"exclude_agent_tokens": "A, B"}).exclude_agent_tokens == ["A", "B"]
        assert normalize_filters({"exclude_agent_tokens": ["A B", "C"]}).exclude_agent_tokens == ["A", "B", "C"]

    def test_months_are_repadded(self) -> None:
        f = normalize_filters({"selected_months": ["2025-8"]}, available_months=["2025-08"])
        assert f.selected_months == ["2025-08"]

    def test_clamps_parameters(self) -> None:
        f = normalize_filters({"top_n": "999", "bin_step": -1})
        assert f.top_n == 200
        assert f.bin_step == 0.05
        assert normalize_filters({"top_n": "x"}).top_n == 10

    def test_last_n_months_quick_pick(self) -> None:
        months = ["2025-07", "2025-08", "2025-09"]
        f = normalize_filters({"last_n_months": 2, "selected_months": ["2025-07"]}, available_months=months)
        assert f.selected_months == ["2025-08", "2025-09"]
        assert normalize_filters({"last_n_months": 0}, available_months=months).selected_months == months
        assert normalize_filters({"last_n_months": "x"}, available_months=months).selected_months == months


class TestApplyFilters:
    def test_exclusion_is_substring_and_or_combined(self, dataset) -> None:
        out = apply_filters(dataset, FilterCriteria(exclude_agent_tokens=["Alpha", "Beta"]))
        assert _agents(out) == ["Gamma", "Gamma", "alpha"]

    def test_exclusion_is_case_sensitive(self, dataset) -> None:
        out = apply_filters(dataset, FilterCriteria(exclude_agent_tokens=["alpha"]))
        assert "AlphaCorp" in _agents(out)
        assert "alpha" not in _agents(out)

    def test_agent_and_merchant_equality(self, dataset) -> None:
        out = apply_filters(dataset, FilterCriteria(agent="Gamma", merchant="Grand"))
        assert [(r.agent, r.merchant) for r in out.rows] == [("Gamma", "Grand")]

    def test_search_is_case_insensitive_on_agent_or_merchant(self, dataset) -> None:
        out = apply_filters(dataset, FilterCriteria(search_text="ALPHA"))
        assert _agents(out) == ["AlphaCorp", "alpha"]
        out = apply_filters(dataset, FilterCriteria(search_text="moon"))
        assert [r.merchant for r in out.rows] == ["Moon"]

    def test_month_membership_uses_repadded_months(self, dataset) -> None:
        out = apply_filters(dataset, FilterCriteria(selected_months=["2025-08"]))
        assert [r.merchant for r in out.rows] == ["Grand", "Moon"]

    def test_all_months_selected_is_noop(self, dataset) -> None:
        out = apply_filters(dataset, FilterCriteria(selected_months=available_months(dataset)))
        assert len(out) == len(dataset)

    def test_criteria_compose_by_and(self, dataset) -> None:
        f = FilterCriteria(selected_months=["2025-07", "2025-08"], exclude_agent_tokens=["Beta"], search_text="grand")
        out = apply_filters(dataset, f)
        assert _agents(out) == ["AlphaCorp", "Gamma"]

    def test_dataset_is_not_mutated(self, dataset) -> None:
        before = dataset.rows
        apply_filters(dataset, FilterCriteria(agent="Beta"))
        assert dataset.rows == before

    def test_empty_dataset(self) -> None:
        assert len(apply_filters(Dataset(), FilterCriteria(agent="X"))) == 0

    def test_exclude_agents_only(self, dataset) -> None:
        assert len(exclude_agents(dataset, ["Gamma"])) == 3
        assert exclude_agents(dataset, []) is dataset


class TestMonthsAndOptions:
    def test_available_months_sorted_and_repadded(self, dataset) -> None:
        assert available_months(dataset) == ["2025-07", "2025-08", "2025-09"]

    def test_month_counts(self, dataset) -> None:
        assert month_counts(dataset) == {"2025-07": 2, "2025-08": 2, "2025-09": 1}

    def test_latest_months(self) -> None:
        assert latest_months(["2025-07", "2025-08", "2025-09"], 2) == ["2025-08", "2025-09"]
        assert latest_months(["2025-07"], 0) == []

    def test_options(self, dataset) -> None:
        assert agent_options(dataset) == ["AlphaCorp", "Beta", "Gamma", "alpha"]
        assert merchant_options(dataset, "Gamma") == ["Grand", "Moon"]
        assert merchant_options(dataset) == ["Grand", "Star", "Moon", "Royal"]
