"""Tests for equity_signals.analysis.plausibility."""

from __future__ import annotations

import pytest

from equity_signals.analysis.plausibility import (
    Provenance,
    guard,
    guard_with_provenance,
)


class TestGuard:

    @pytest.mark.parametrize("market_cap", [500_000_001, 2e9, 1e12])
    def test_zero_above_threshold_is_missing(self, market_cap: float) -> None:
        assert guard(0, market_cap) is None

    @pytest.mark.parametrize("market_cap", [0, 1e6, 500_000_000])
    def test_zero_at_or_below_threshold_passes(self, market_cap: float) -> None:
        assert guard(0, market_cap) == 0

    def test_none_is_missing(self) -> None:
        assert guard(None, 2e9) is None

    @pytest.mark.parametrize("value", [-5.0, 0.01, 1e9])
    def test_non_zero_values_pass_unchanged(self, value: float) -> None:
        assert guard(value, 2e9) == value

    def test_missing_market_cap_treated_as_zero(self) -> None:
        assert guard(0, None) == 0

    def test_custom_threshold(self) -> None:
        assert guard(0, 2e9, threshold=5e9) == 0
        assert guard(0, 6e9, threshold=5e9) is None

    @pytest.mark.parametrize("value", [None, 0, 0.0, -3.0, 42.0])
    def test_idempotent(self, value: float | None) -> None:
        once = guard(value, 2e9)
        assert guard(once, 2e9) == once


class TestGuardWithProvenance:

    def test_reported(self) -> None:
        result = guard_with_provenance(10.0, 2e9)
        assert result.value == 10.0
        assert result.provenance is Provenance.REPORTED
        assert not result.was_guarded

    def test_small_company_zero(self) -> None:
        result = guard_with_provenance(0.0, 1e8)
        assert result.value == 0.0
        assert result.provenance is Provenance.ZERO

    def test_guarded(self) -> None:
        result = guard_with_provenance(0.0, 2e9)
        assert result.value is None
        assert result.provenance is Provenance.GUARDED
        assert result.was_guarded

    def test_missing(self) -> None:
        result = guard_with_provenance(None, 2e9)
        assert result.provenance is Provenance.MISSING
        assert not result.was_guarded
