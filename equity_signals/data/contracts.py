"""Valuation result contracts.

Dataclasses defining the shape of data passed from the valuation
components to the response builder.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Confidence(Enum):
    """Confidence tier attached to a computed figure."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FfoSource(Enum):
    """Where the recommended FFO figure came from."""

    KEY_METRICS = "key-metrics"
    SIMPLIFIED = "simplified"
    SIMPLIFIED_SPECIALTY = "simplified-specialty"
    NOT_APPLICABLE = "not-applicable"


class SharesSource(Enum):
    """Which upstream field supplied the share count."""

    DILUTED = "diluted"
    BASIC = "basic"
    BALANCE_SHEET = "balance-sheet"
    ESTIMATED = "estimated"
    UNAVAILABLE = "unavailable"

    @property
    def is_estimate(self) -> bool:
        return self in (SharesSource.ESTIMATED, SharesSource.UNAVAILABLE)


@dataclass(frozen=True)
class DividendSummary:
    """Output of the dividend history analyzer.

    Attributes:
        payments_per_year: Inferred payment frequency (12, 4, 2 or 1).
        current_dividend: Most recent payment, None without history.
        trailing_annual: Sum of the most recent ``payments_per_year``
            payments.
        forward_annual: Most recent payment times frequency.
        dividend_yield: Trailing yield in percent (0 when undefined).
        forward_yield: Forward yield in percent.
        cagr: Five-year dividend CAGR as a fraction.
        cagr_is_default: True when the CAGR fell back to the default.
        five_year_count: Payments inside the five-year window.
    """

    payments_per_year: int
    current_dividend: float | None
    trailing_annual: float
    forward_annual: float | None
    dividend_yield: float
    forward_yield: float | None
    cagr: float
    cagr_is_default: bool
    five_year_count: int


@dataclass(frozen=True)
class DdmResult:
    """Gordon Growth valuation with confidence gate."""

    intrinsic_value: float | None
    required_return: float
    growth_rate_used: float
    beta_used: float
    dividend_yield: float
    difference_percent: float | None
    valuation: str | None
    confidence: Confidence
    reasons: tuple[str, ...]
    note: str | None


@dataclass(frozen=True)
class SharesResolution:
    shares: float | None
    source: SharesSource


@dataclass(frozen=True)
class FfoResult:
    """FFO estimate plus leverage and cash-flow ratios.

    ``confidence`` and ``reasons`` are produced by
    ``equity_signals.analysis.ffo.ffo_confidence`` from source, guard
    flag and shares source.
    """

    ffo: float | None
    ffo_per_share: float | None
    p_ffo: float | None
    source: FfoSource
    confidence: Confidence
    reasons: tuple[str, ...]
    note: str | None
    nareit_per_share: float | None
    p_ffo_nareit: float | None
    simplified_per_share: float | None
    p_ffo_simplified: float | None
    depreciation_was_guarded: bool
    shares_source: SharesSource
    ebitda: float | None
    total_debt: float
    debt_to_ebitda: float | None
    debt_to_equity: float | None
    operating_cash_flow: float | None
    operating_cf_per_share: float | None
    operating_cf_per_share_approx: bool
    ffo_payout_ratio: float | None
    guards_fired: tuple[str, ...] = ()


@dataclass(frozen=True)
class NavScenario:
    """Economic NAV at one capitalisation rate."""

    cap_rate: float
    property_value: float | None
    economic_nav: float | None
    nav_per_share: float | None
    price_vs_nav: float | None


@dataclass(frozen=True)
class NavResult:
    """Book and economic NAV estimates."""

    nav: float | None
    nav_per_share: float | None
    price_to_nav: float | None
    premium_percent: float | None
    premium: str | None
    noi_proxy_raw: float | None
    noi_proxy: float | None
    cap_rate_is_default: bool
    optimistic: NavScenario
    base: NavScenario
    conservative: NavScenario
    implied_cap_rate: float | None
    confidence: Confidence
    reasons: tuple[str, ...]
    guards_fired: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReitProfile:
    """Growth / income / mixed classification."""

    profile: str
    confidence: Confidence
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class DecisionTrace:
    """Audit record of the guards and branches that fired.

    Attributes:
        version: Contract version of this record.
        degraded_documents: Sub-documents that could not be fetched.
        guards_fired: Fields nulled by the plausibility guard.
        trust_type: Trust classification used by the FFO estimator.
        ffo_source: FFO resolution branch.
        shares_source: Share-count resolution branch.
        depreciation_was_guarded: D&A was an implausible zero.
        ffo_confidence: FFO confidence tier.
        ddm_reasons: Reasons the DDM confidence gate fired.
        noi_proxy_raw: Gross profit as reported.
        noi_proxy: Gross profit after the guard.
        cap_rate_is_default: Industry missing from the cap-rate table.
        economic_nav_negative: Base-scenario economic NAV below zero.
        implied_cap_rate: NOI / EV diagnostic.
        nav_confidence: NAV confidence tier.
        profile_detected: REIT profile, None when detection is off.
        profile_confidence: Profile confidence, None when off.
        flags_active: Output flags switched on for this request.
    """

    version: str = "1"
    degraded_documents: tuple[str, ...] = ()
    guards_fired: tuple[str, ...] = ()
    trust_type: str | None = None
    ffo_source: str | None = None
    shares_source: str | None = None
    depreciation_was_guarded: bool = False
    ffo_confidence: str | None = None
    ddm_reasons: tuple[str, ...] = ()
    noi_proxy_raw: float | None = None
    noi_proxy: float | None = None
    cap_rate_is_default: bool = False
    economic_nav_negative: bool = False
    implied_cap_rate: float | None = None
    nav_confidence: str | None = None
    profile_detected: str | None = None
    profile_confidence: str | None = None
    flags_active: tuple[str, ...] = ()
