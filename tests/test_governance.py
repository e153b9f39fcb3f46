"""Tests for equity_signals.metrics.governance."""

from __future__ import annotations

import pytest

from equity_signals.metrics.governance import (
    CATALOG_BY_KEY,
    DERIVED_SOURCE,
    METRIC_CATALOG,
    SECTORS,
    MetricPriority,
    MetricState,
    MetricStatus,
    build_governance,
    is_dash_like,
    normalize_label,
    normalize_period_tag,
    resolve_sector,
    summarize,
)

AS_OF = "2025-01-01T00:00:00+00:00"


def _make_state(
    key: str = "pe",
    status: MetricStatus = MetricStatus.OK,
    priority: MetricPriority = MetricPriority.CORE,
) -> MetricState:
    return MetricState(
        key=key,
        status=status,
        value="1" if status.is_ready else None,
        source="fmp.ratios-ttm",
        data_period="TTM",
        as_of=AS_OF,
        priority=priority,
    )


# ---------------------------------------------------------------------------
# Catalog and label helpers
# ---------------------------------------------------------------------------

class TestCatalog:

    def test_seventeen_unique_metrics(self) -> None:
        assert len(METRIC_CATALOG) == 17
        assert len(CATALOG_BY_KEY) == 17

    def test_every_metric_has_a_source(self) -> None:
        for metric in METRIC_CATALOG:
            assert metric.primary_sources, metric.key

    def test_sector_policy_covers_every_sector(self) -> None:
        policy = CATALOG_BY_KEY["roic"].sector_policy()
        assert set(policy) == set(SECTORS)
        assert policy["Financial Services"] is MetricPriority.NOT_APPLICABLE
        assert policy["Real Estate"] is MetricPriority.OPTIONAL
        assert policy["Technology"] is MetricPriority.CORE

    def test_unknown_sector_is_optional(self) -> None:
        assert CATALOG_BY_KEY["pe"].priority(None) is MetricPriority.OPTIONAL


class TestLabelHelpers:

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Margem Líquida", "margem liquida"),
            ("Dívida / Capitais Próprios", "divida capitais proprios"),
            ("  P/L ", "p l"),
        ],
    )
    def test_normalize_label(self, label: str, expected: str) -> None:
        assert normalize_label(label) == expected

    @pytest.mark.parametrize("value", [None, "", " - ", "--", "N/A", "n/a", "—"])
    def test_dash_like(self, value: str | None) -> None:
        assert is_dash_like(value)

    @pytest.mark.parametrize("value", ["0", "12%", "abc", 0, 15, -2.5])
    def test_not_dash_like(self, value: str | float) -> None:
        assert not is_dash_like(value)

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Technology", "Technology"),
            ("technology", "Technology"),
            ("Health Care", "Healthcare"),
            ("Consumer Staples", "Consumer Defensive"),
            ("Consumer Discretionary", "Consumer Cyclical"),
            ("Materials", "Basic Materials"),
            ("Telecom", "Communication Services"),
            ("REIT - Office", "Real Estate"),
            ("Financials", "Financial Services"),
            ("Gibberish", None),
            ("", None),
            (None, None),
        ],
    )
    def test_resolve_sector(self, label: str | None, expected: str | None) -> None:
        assert resolve_sector(label) == expected

    @pytest.mark.parametrize(
        ("period", "expected"),
        [
            ("TTM", "TTM"),
            ("ttm 2024", "TTM"),
            ("Q3 2024", "Q"),
            ("Quarterly", "Q"),
            ("FY2024", "FY"),
            ("Annual", "FY"),
            ("whenever", None),
            (None, None),
        ],
    )
    def test_normalize_period_tag(self, period: str | None, expected: str | None) -> None:
        assert normalize_period_tag(period) == expected


# ---------------------------------------------------------------------------
# Metric states
# ---------------------------------------------------------------------------

class TestBuildGovernance:

    def test_direct_value(self) -> None:
        governance = build_governance("Technology", {"P/L": "15.2"}, as_of=AS_OF)
        state = governance.states["pe"]

        assert state.status is MetricStatus.OK
        assert state.value == "15.2"
        assert state.source == "fmp.ratios-ttm"
        assert state.data_period == "TTM"
        assert state.as_of == AS_OF
        assert state.required_for_sector

    def test_formula_metric_uses_derived_source(self) -> None:
        governance = build_governance("Technology", {"ROIC": "12%"}, as_of=AS_OF)
        state = governance.states["roic"]
        assert state.status is MetricStatus.OK
        assert state.source == DERIVED_SOURCE

    def test_calculated_value(self) -> None:
        governance = build_governance(
            "Technology",
            {"ROE": "18%"},
            calculated_by_label={"ROE": {"source": "local.ratios", "formula": "NI/Equity"}},
            as_of=AS_OF,
        )
        state = governance.states["roe"]
        assert state.status is MetricStatus.CALCULATED
        assert state.source == "local.ratios"
        assert state.reason == "formula:NI/Equity"

    def test_empty_calculated_detail_is_still_calculated(self) -> None:
        governance = build_governance(
            "Technology", {"ROE": "18%"}, calculated_by_label={"ROE": {}}, as_of=AS_OF
        )
        state = governance.states["roe"]
        assert state.status is MetricStatus.CALCULATED
        assert state.source == DERIVED_SOURCE
        assert state.reason is None

    def test_numeric_json_values(self) -> None:
        governance = build_governance(
            "Technology",
            {"P/L": 15, "ROE": 0, "Beta": None},
            benchmark_comparisons={"P/L": 20},
            as_of=AS_OF,
        )
        pe = governance.states["pe"]
        assert pe.status is MetricStatus.OK
        assert pe.value == "15"
        assert pe.benchmark_value == "20"
        assert governance.states["roe"].value == "0"
        assert governance.states["beta"].status is MetricStatus.NO_CURRENT_DATA

    def test_alias_and_accent_insensitive_lookup(self) -> None:
        governance = build_governance(
            "Technology",
            {"margem líquida": "9%", "Dívida/Patrimônio": "0.8"},
            as_of=AS_OF,
        )
        assert governance.states["net_margin"].value == "9%"
        assert governance.states["debt_equity"].value == "0.8"

    def test_not_applicable(self) -> None:
        governance = build_governance(
            "Financial Services", {"ROIC": "10%"}, as_of=AS_OF
        )
        state = governance.states["roic"]
        assert state.status is MetricStatus.NOT_APPLICABLE
        assert state.value is None
        assert state.reason == "metrica_nao_aplicavel_para_financial_services"

    def test_missing_core_metric(self) -> None:
        governance = build_governance("Technology", {"P/L": "-"}, as_of=AS_OF)
        state = governance.states["pe"]
        assert state.status is MetricStatus.NO_CURRENT_DATA
        assert state.reason == "core_metric_sem_dado_atual"
        assert state.source == "fmp.ratios-ttm"

    def test_missing_optional_metric(self) -> None:
        governance = build_governance(
            "Real Estate",
            {},
            benchmark_comparisons={"ROIC": "8%", "PEG": "N/A"},
            as_of=AS_OF,
        )
        assert (
            governance.states["roic"].reason
            == "optional_metric_com_benchmark_sem_valor_atual"
        )
        assert governance.states["peg"].reason == "optional_metric_sem_dado_atual"
        assert governance.states["peg"].benchmark_value is None

    def test_benchmark_metadata(self) -> None:
        governance = build_governance(
            "Technology",
            {"P/L": "15"},
            benchmark_comparisons={"P/L": "20"},
            benchmark_metadata={"P/L": {"source": "peer_median", "sampleSize": 12}},
            as_of=AS_OF,
        )
        state = governance.states["pe"]
        assert state.benchmark_value == "20"
        assert state.benchmark_source == "peer_median"
        assert state.benchmark_data_period == "TTM"
        observed = governance.ingestion.sources_observed
        assert observed["benchmark.peer_median"] == 1
        assert observed["fmp.ratios-ttm"] == 13
        assert sum(observed.values()) == 18

    def test_mixed_period_follows_current_data(self) -> None:
        tagged = build_governance(
            "Technology", {}, current_data_period="Q2 2025", as_of=AS_OF
        )
        untagged = build_governance("Technology", {}, as_of=AS_OF)

        assert tagged.states["cagr_eps"].data_period == "Q"
        assert untagged.states["cagr_eps"].data_period == "MIXED"
        assert tagged.states["pe"].data_period == "TTM"
        assert tagged.ingestion.current_data_period_raw == "Q2 2025"
        assert tagged.ingestion.current_data_period_normalized == "Q"

    def test_summary_for_financials(self) -> None:
        governance = build_governance("Financial Services", {"P/L": "10"}, as_of=AS_OF)
        summary = governance.summary

        assert summary.total == 17
        assert summary.nao_aplicavel == 2
        assert summary.ok == 1
        assert summary.sem_dado_atual == 14
        assert summary.core_total == 9
        assert summary.core_ready == 1
        assert summary.core_missing == 8
        assert summary.optional_total == 6
        assert summary.optional_missing == 6
        assert governance.ingestion.resolved_sector == "Financial Services"

    def test_unknown_sector_makes_everything_optional(self) -> None:
        governance = build_governance("Gibberish", {}, as_of=AS_OF)
        assert governance.summary.core_total == 0
        assert governance.summary.optional_total == 17
        assert governance.ingestion.resolved_sector is None


class TestSummarize:

    def test_counts(self) -> None:
        states = {
            "a": _make_state(status=MetricStatus.OK),
            "b": _make_state(status=MetricStatus.CALCULATED),
            "c": _make_state(status=MetricStatus.SOURCE_ERROR),
            "d": _make_state(
                status=MetricStatus.NO_CURRENT_DATA, priority=MetricPriority.OPTIONAL
            ),
            "e": _make_state(
                status=MetricStatus.NOT_APPLICABLE,
                priority=MetricPriority.NOT_APPLICABLE,
            ),
        }
        summary = summarize(states)

        assert summary.total == 5
        assert summary.ok == 1
        assert summary.calculated == 1
        assert summary.erro_fonte == 1
        assert summary.sem_dado_atual == 1
        assert summary.nao_aplicavel == 1
        assert summary.core_total == 3
        assert summary.core_ready == 2
        assert summary.core_missing == 1
        assert summary.optional_total == 1
        assert summary.optional_missing == 1

    def test_empty(self) -> None:
        assert summarize({}).total == 0
