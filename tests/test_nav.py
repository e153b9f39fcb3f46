"""Tests for equity_signals.analysis.nav."""

from __future__ import annotations

from typing import Any

import pytest

from equity_signals.analysis.nav import (
    DISCOUNT,
    PREMIUM,
    cap_rate_for,
    compute_nav,
    nav_confidence,
)
from equity_signals.config import NavConfig
from equity_signals.data.contracts import Confidence
from equity_signals.data.models import RawFinancialSnapshot


def _make_snapshot(
    industry: str = "REIT - Retail",
    price: float = 63.0,
    market_cap: float = 630e6,
    gross_profit: float | None = 60e6,
    balance: dict[str, Any] | None = None,
) -> RawFinancialSnapshot:
    income: dict[str, Any] = {"weightedAverageShsOutDil": 10e6}
    if gross_profit is not None:
        income["grossProfit"] = gross_profit
    return RawFinancialSnapshot(
        symbol="TEST",
        profile={"industry": industry, "marketCap": market_cap, "price": price},
        income=income,
        balance=balance if balance is not None else {
            "totalDebt": 400e6,
            "cashAndCashEquivalents": 50e6,
        },
    )


class TestCapRateFor:

    def test_mapped(self) -> None:
        assert cap_rate_for("REIT - Office", NavConfig()) == (0.07, False)

    def test_unmapped_uses_default(self) -> None:
        assert cap_rate_for("REIT - Timber", NavConfig()) == (0.0625, True)


class TestEconomicNav:

    def test_base_scenario(self) -> None:
        result = compute_nav(_make_snapshot())

        # 60M / 6% = 1B; + 50M cash - (400M - 50M) net debt
        assert result.base.cap_rate == pytest.approx(0.06)
        assert result.base.property_value == pytest.approx(1e9)
        assert result.base.economic_nav == pytest.approx(700e6)
        assert result.base.nav_per_share == pytest.approx(70.0)
        assert result.base.price_vs_nav == pytest.approx(-0.1)

    def test_scenarios_ordered_by_cap_rate(self) -> None:
        result = compute_nav(_make_snapshot())

        assert result.optimistic.cap_rate == pytest.approx(0.055)
        assert result.conservative.cap_rate == pytest.approx(0.0675)
        assert (
            result.optimistic.nav_per_share
            > result.base.nav_per_share
            > result.conservative.nav_per_share
        )

    def test_high_confidence_with_clean_inputs(self) -> None:
        result = compute_nav(_make_snapshot())
        assert result.confidence is Confidence.HIGH
        assert result.reasons == ()

    def test_reported_net_debt_and_preferred(self) -> None:
        snapshot = _make_snapshot(
            balance={
                "netDebt": 300e6,
                "totalDebt": 999e9,
                "cashAndCashEquivalents": 50e6,
                "preferredStock": 50e6,
            }
        )
        result = compute_nav(snapshot)
        assert result.base.economic_nav == pytest.approx(1e9 + 50e6 - 300e6 - 50e6)

    def test_missing_noi_leaves_scenarios_undefined(self) -> None:
        snapshot = _make_snapshot(industry="REIT - Office", gross_profit=None)
        result = compute_nav(snapshot)

        for scenario in (result.optimistic, result.base, result.conservative):
            assert scenario.property_value is None
            assert scenario.economic_nav is None
            assert scenario.nav_per_share is None
            assert scenario.price_vs_nav is None
        assert result.confidence is Confidence.LOW
        assert result.reasons == ("NOI proxy em falta ou zero",)
        assert result.implied_cap_rate is None

    def test_zero_gross_profit_guarded(self) -> None:
        snapshot = _make_snapshot(gross_profit=0.0, market_cap=2e9)
        result = compute_nav(snapshot)

        assert result.noi_proxy_raw == 0.0
        assert result.noi_proxy is None
        assert result.guards_fired == ("grossProfit",)
        assert result.base.property_value is None

    def test_default_cap_rate_is_medium(self) -> None:
        result = compute_nav(_make_snapshot(industry="REIT - Timber"))

        assert result.cap_rate_is_default
        assert result.base.cap_rate == pytest.approx(0.0625)
        assert result.confidence is Confidence.MEDIUM
        assert result.reasons == ("Cap rate default (setor nao mapeado)",)

    def test_negative_economic_nav(self) -> None:
        snapshot = _make_snapshot(
            industry="REIT - Timber",
            balance={"totalDebt": 5e9, "cashAndCashEquivalents": 0},
        )
        result = compute_nav(snapshot)

        assert result.base.economic_nav < 0
        assert result.base.price_vs_nav is None
        assert result.confidence is Confidence.LOW
        assert "NAV economico negativo" in result.reasons

    def test_implied_cap_rate(self) -> None:
        result = compute_nav(_make_snapshot())
        # EV = 630M market cap + 350M net debt
        assert result.implied_cap_rate == pytest.approx(60e6 / 980e6)

    def test_implied_cap_rate_needs_positive_ev(self) -> None:
        snapshot = _make_snapshot(
            market_cap=100e6,
            balance={"totalDebt": 0, "cashAndCashEquivalents": 500e6},
        )
        assert compute_nav(snapshot).implied_cap_rate is None


class TestBookNav:

    def test_assets_minus_liabilities(self) -> None:
        snapshot = _make_snapshot(
            price=50.0,
            balance={"totalAssets": 1e9, "totalLiabilities": 600e6},
        )
        result = compute_nav(snapshot)

        assert result.nav == pytest.approx(400e6)
        assert result.nav_per_share == pytest.approx(40.0)
        assert result.price_to_nav == pytest.approx(1.25)
        assert result.premium_percent == pytest.approx(25.0)
        assert result.premium == PREMIUM

    def test_discount(self) -> None:
        snapshot = _make_snapshot(
            price=30.0,
            balance={"totalAssets": 1e9, "totalLiabilities": 600e6},
        )
        result = compute_nav(snapshot)
        assert result.premium == DISCOUNT
        assert result.premium_percent == pytest.approx(-25.0)

    def test_equity_fallback(self) -> None:
        snapshot = _make_snapshot(balance={"totalStockholdersEquity": 300e6})
        assert compute_nav(snapshot).nav == pytest.approx(300e6)

    def test_negative_nav_has_no_multiple(self) -> None:
        snapshot = _make_snapshot(
            balance={"totalAssets": 500e6, "totalLiabilities": 600e6}
        )
        result = compute_nav(snapshot)
        assert result.nav == pytest.approx(-100e6)
        assert result.price_to_nav is None
        assert result.premium is None


class TestNavConfidence:

    def test_tiers(self) -> None:
        assert nav_confidence(1.0, False, False)[0] is Confidence.HIGH
        assert nav_confidence(1.0, True, False)[0] is Confidence.MEDIUM
        assert nav_confidence(1.0, False, True)[0] is Confidence.MEDIUM
        assert nav_confidence(1.0, True, True)[0] is Confidence.LOW
        assert nav_confidence(None, True, False)[0] is Confidence.LOW

    def test_zero_noi_counts_as_missing(self) -> None:
        confidence, reasons = nav_confidence(0.0, False, False)
        assert confidence is Confidence.LOW
        assert reasons == ["NOI proxy em falta ou zero"]

    def test_negative_noi_is_low(self) -> None:
        confidence, reasons = nav_confidence(-5.0, False, False)
        assert confidence is Confidence.LOW
        assert reasons == ["NOI proxy negativo"]

    def test_negative_gross_profit_in_mapped_sector(self) -> None:
        result = compute_nav(_make_snapshot(gross_profit=-20e6))

        assert not result.cap_rate_is_default
        assert result.base.economic_nav is None
        assert result.confidence is Confidence.LOW
        assert "NOI proxy negativo" in result.reasons
