"""Tests for equity_signals.analysis.profile."""

from __future__ import annotations

import pytest

from equity_signals.analysis.profile import GROWTH, INCOME, MIXED, detect_reit_profile
from equity_signals.data.contracts import Confidence


class TestDetectReitProfile:

    def test_low_yield_low_growth_is_confident_growth(self) -> None:
        result = detect_reit_profile(2.0, 0.01)
        assert result.profile == GROWTH
        assert result.confidence is Confidence.HIGH
        assert result.reasons == ("yield 2.0% < 3%", "CAGR 1.0% < 2%")

    def test_low_yield_with_growth_is_growth(self) -> None:
        result = detect_reit_profile(2.0, 0.05)
        assert result.profile == GROWTH
        assert result.confidence is Confidence.LOW
        assert result.reasons == ("yield 2.0% < 3%", "CAGR 5.0% >= 2%")

    def test_high_yield_with_growth_is_income(self) -> None:
        result = detect_reit_profile(5.0, 0.03)
        assert result.profile == INCOME
        assert result.confidence is Confidence.HIGH
        assert result.reasons == ("yield 5.0% >= 4%", "CAGR 3.0% >= 2%")

    def test_high_yield_without_growth_is_growth(self) -> None:
        result = detect_reit_profile(5.0, 0.0)
        assert result.profile == GROWTH
        assert result.confidence is Confidence.LOW

    def test_middle_band_is_mixed(self) -> None:
        result = detect_reit_profile(3.5, 0.03)
        assert result.profile == MIXED
        assert result.confidence is Confidence.LOW
        assert result.reasons == ("CAGR 3.0% >= 2%",)

    @pytest.mark.parametrize(("yield_pct", "expected"), [(3.0, MIXED), (4.0, INCOME)])
    def test_band_edges(self, yield_pct: float, expected: str) -> None:
        assert detect_reit_profile(yield_pct, 0.02).profile == expected
