"""Growth / income / mixed REIT profile from dividend yield and growth."""

from __future__ import annotations

from equity_signals.data.contracts import Confidence, ReitProfile

GROWTH = "growth"
INCOME = "income"
MIXED = "mixed"

_GROWTH_MAX_YIELD = 3.0
_INCOME_MIN_YIELD = 4.0
_CAGR_THRESHOLD = 0.02


def detect_reit_profile(dividend_yield_pct: float, dividend_cagr: float) -> ReitProfile:
    """Classify a trust by its dividend profile.

    Either a low yield or low dividend growth marks a growth trust; a high
    yield together with steady growth marks an income trust.

    Args:
        dividend_yield_pct: Trailing dividend yield in percent.
        dividend_cagr: Five-year dividend CAGR as a fraction.

    Returns:
        ReitProfile. Confidence is high when at least two signals point
        the same way.
    """
    reasons: list[str] = []
    growth_signals = 0
    income_signals = 0

    low_yield = dividend_yield_pct < _GROWTH_MAX_YIELD
    high_yield = dividend_yield_pct >= _INCOME_MIN_YIELD
    growing = dividend_cagr >= _CAGR_THRESHOLD

    if low_yield:
        growth_signals += 1
        reasons.append(f"yield {dividend_yield_pct:.1f}% < 3%")
    if high_yield:
        income_signals += 1
        reasons.append(f"yield {dividend_yield_pct:.1f}% >= 4%")
    if growing:
        income_signals += 1
        reasons.append(f"CAGR {dividend_cagr * 100:.1f}% >= 2%")
    else:
        growth_signals += 1
        reasons.append(f"CAGR {dividend_cagr * 100:.1f}% < 2%")

    if low_yield or not growing:
        profile = GROWTH
    elif high_yield:
        profile = INCOME
    else:
        profile = MIXED

    confidence = (
        Confidence.HIGH if max(growth_signals, income_signals) >= 2 else Confidence.LOW
    )
    return ReitProfile(profile=profile, confidence=confidence, reasons=tuple(reasons))
