"""Valuation configuration dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field

# Exact zeros reported by companies above this market cap are treated as
# missing data rather than real zeros.
MATERIALITY_THRESHOLD: float = 500_000_000

# Sector capitalisation rates (NAREIT, 2025), keyed by FMP industry label.
SECTOR_CAP_RATES: dict[str, float] = {
    "REIT - Retail": 0.0600,
    "REIT - Industrial": 0.0525,
    "REIT - Office": 0.0700,
    "REIT - Residential": 0.0500,
    "REIT - Healthcare": 0.0575,
    "REIT - Hotel & Motel": 0.0750,
    "REIT - Diversified": 0.0625,
    "REIT - Specialty": 0.0600,
}


@dataclass(frozen=True)
class GuardConfig:
    """Plausibility guard parameters."""

    threshold: float = MATERIALITY_THRESHOLD


@dataclass(frozen=True)
class DdmConfig:
    """Dividend discount model parameters."""

    risk_free_rate: float = 0.045
    equity_risk_premium: float = 0.05
    default_beta: float = 0.8

    # Growth is capped this far below the required return so the Gordon
    # denominator stays positive.
    growth_margin: float = 0.005

    # Price within +/- this band of intrinsic value is labelled fair.
    fair_band: float = 0.05

    # Confidence gate
    min_yield_pct: float = 3.0
    min_cagr: float = 0.02
    min_five_year_payments: int = 8

    default_cagr: float = 0.03


@dataclass(frozen=True)
class NavConfig:
    """Economic NAV parameters."""

    cap_rates: dict[str, float] = field(
        default_factory=lambda: dict(SECTOR_CAP_RATES)
    )
    default_cap_rate: float = 0.0625
    optimistic_offset: float = -0.005
    conservative_offset: float = 0.0075


@dataclass(frozen=True)
class ReitFlags:
    """Optional output sections of the REIT payload.

    Passed explicitly so each component can be tested with any
    combination switched on or off.
    """

    enable_period_tags: bool = True
    enable_confidence_badges: bool = True
    enable_profile_detection: bool = True
    enable_implied_cap_rate: bool = True

    def active(self) -> list[str]:
        """Names of the flags currently switched on."""
        return [name for name, value in vars(self).items() if value]


@dataclass(frozen=True)
class ProviderConfig:
    """FMP snapshot provider parameters."""

    base_url: str = "https://financialmodelingprep.com/stable"
    request_timeout: float = 30.0
    max_workers: int = 7
    max_retries: int = 3
    backoff_factor: float = 1.0
    retry_status_codes: frozenset[int] = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class ValuationConfig:
    """Top-level configuration passed into every valuation component."""

    guard: GuardConfig = field(default_factory=GuardConfig)
    ddm: DdmConfig = field(default_factory=DdmConfig)
    nav: NavConfig = field(default_factory=NavConfig)
    flags: ReitFlags = field(default_factory=ReitFlags)
