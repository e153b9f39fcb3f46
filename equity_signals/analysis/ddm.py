"""Dividend discount model: CAPM required return and Gordon Growth value."""

from __future__ import annotations

import logging

from equity_signals.config import DdmConfig
from equity_signals.data.contracts import Confidence, DdmResult, DividendSummary

logger = logging.getLogger(__name__)

OVERVALUED = "Sobrevalorizado"
UNDERVALUED = "Subvalorizado"
FAIR = "Justo"


def required_return(beta: float | None, config: DdmConfig) -> tuple[float, float]:
    """CAPM required return.

    Returns:
        (required_return, beta_used). Non-positive or missing beta is
        replaced by the configured default.
    """
    beta_used = beta if beta is not None and beta > 0 else config.default_beta
    return config.risk_free_rate + beta_used * config.equity_risk_premium, beta_used


def gordon_value(
    trailing_dividend: float, growth: float, discount_rate: float
) -> float | None:
    """Gordon Growth value D1 / (r - g), None when undefined."""
    d1 = trailing_dividend * (1 + growth)
    denominator = discount_rate - growth
    if d1 <= 0 or denominator <= 0:
        return None
    return d1 / denominator


def valuation_label(
    price: float, intrinsic_value: float | None, band: float = 0.05
) -> str | None:
    if intrinsic_value is None or intrinsic_value <= 0:
        return None
    if price > intrinsic_value * (1 + band):
        return OVERVALUED
    if price < intrinsic_value * (1 - band):
        return UNDERVALUED
    return FAIR


def ddm_confidence_reasons(
    dividends: DividendSummary, config: DdmConfig
) -> list[str]:
    """Conditions under which Gordon Growth output is unreliable.

    Low yield amplifies errors in g, low dividend growth keeps the model
    from converging, and a short history makes the CAGR itself noisy.
    """
    reasons: list[str] = []
    if dividends.dividend_yield < config.min_yield_pct:
        reasons.append(
            f"yield {dividends.dividend_yield:.1f}% < {config.min_yield_pct:g}%"
        )
    if dividends.cagr < config.min_cagr:
        reasons.append(
            f"CAGR dividendo {dividends.cagr * 100:.1f}% < {config.min_cagr * 100:g}%"
        )
    if dividends.five_year_count < config.min_five_year_payments:
        reasons.append("histórico < 5 anos completos")
    return reasons


def compute_ddm(
    dividends: DividendSummary,
    beta: float | None,
    price: float,
    config: DdmConfig | None = None,
) -> DdmResult:
    """Value a dividend payer with the Gordon Growth model.

    Growth is the five-year dividend CAGR clamped to
    ``[0, required_return - growth_margin]``.

    Args:
        dividends: Output of ``analyze_dividends``.
        beta: Reported beta (None or non-positive uses the default).
        price: Current share price.
        config: DDM configuration.

    Returns:
        DdmResult. ``intrinsic_value`` is None when the model is undefined.
    """
    config = config or DdmConfig()
    r, beta_used = required_return(beta, config)
    growth = min(max(dividends.cagr, 0.0), r - config.growth_margin)

    intrinsic = gordon_value(dividends.trailing_annual, growth, r)
    if intrinsic is None:
        logger.debug(
            "DDM undefined (trailing dividend %.4f, r=%.4f, g=%.4f)",
            dividends.trailing_annual, r, growth,
        )

    difference = (
        (price - intrinsic) / intrinsic * 100
        if intrinsic is not None and intrinsic > 0
        else None
    )

    reasons = ddm_confidence_reasons(dividends, config)
    confidence = Confidence.LOW if reasons else Confidence.HIGH
    note = None
    if reasons:
        note = (
            f"DDM de baixa confiança ({'; '.join(reasons)}). "
            "Para este perfil, prefira P/FFO reportado e NAV económico."
        )

    return DdmResult(
        intrinsic_value=intrinsic,
        required_return=r,
        growth_rate_used=growth,
        beta_used=beta_used,
        dividend_yield=dividends.dividend_yield,
        difference_percent=difference,
        valuation=valuation_label(price, intrinsic, config.fair_band),
        confidence=confidence,
        reasons=tuple(reasons),
        note=note,
    )
