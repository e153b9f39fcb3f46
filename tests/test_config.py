"""Tests for equity_signals.config."""

from __future__ import annotations

import dataclasses

import pytest

from equity_signals.config import (
    SECTOR_CAP_RATES,
    NavConfig,
    ReitFlags,
    ValuationConfig,
)


class TestReitFlags:

    def test_all_on_by_default(self) -> None:
        assert ReitFlags().active() == [
            "enable_period_tags",
            "enable_confidence_badges",
            "enable_profile_detection",
            "enable_implied_cap_rate",
        ]

    def test_inactive_flags_omitted(self) -> None:
        flags = ReitFlags(enable_profile_detection=False, enable_period_tags=False)
        assert flags.active() == ["enable_confidence_badges", "enable_implied_cap_rate"]

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            ReitFlags().enable_period_tags = False  # type: ignore[misc]


class TestValuationConfig:

    def test_defaults(self) -> None:
        config = ValuationConfig()
        assert config.guard.threshold == 500_000_000
        assert config.ddm.risk_free_rate == 0.045
        assert config.ddm.equity_risk_premium == 0.05
        assert config.nav.default_cap_rate == 0.0625

    def test_cap_rate_table_not_shared(self) -> None:
        config = NavConfig()
        config.cap_rates["REIT - Timber"] = 0.05
        assert "REIT - Timber" not in SECTOR_CAP_RATES
        assert "REIT - Timber" not in NavConfig().cap_rates
