"""Valuation orchestrator.

Runs every REIT valuation component over one snapshot, and builds the
quick-analysis sector and data-quality scores from metric governance.
The ``build_*_payload`` functions render results with the stable
camelCase field names consumed downstream.
"""

from __future__ import annotations

import dataclasses
import datetime
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from equity_signals.analysis.ddm import compute_ddm
from equity_signals.analysis.dividends import analyze_dividends
from equity_signals.analysis.ffo import classify_trust, compute_ffo
from equity_signals.analysis.nav import compute_nav
from equity_signals.analysis.profile import detect_reit_profile
from equity_signals.config import ValuationConfig
from equity_signals.data import load_snapshot
from equity_signals.data.contracts import (
    DdmResult,
    DecisionTrace,
    DividendSummary,
    FfoResult,
    NavResult,
    NavScenario,
    ReitProfile,
)
from equity_signals.data.fmp import SnapshotProvider
from equity_signals.data.models import RawFinancialSnapshot, format_report_period, number
from equity_signals.errors import ValuationComputationError
from equity_signals.metrics.derived import fill_from_statements
from equity_signals.metrics.governance import MetricGovernance, build_governance
from equity_signals.metrics.sector_scoring import (
    DataQualityScore,
    SectorContextScore,
    compute_data_quality_score,
    compute_sector_context_score,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ReitAnalysis:
    """All valuation outputs for one trust."""

    snapshot: RawFinancialSnapshot
    config: ValuationConfig
    dividends: DividendSummary
    ddm: DdmResult
    ffo: FfoResult
    nav: NavResult
    profile: ReitProfile | None
    trace: DecisionTrace


@dataclass(frozen=True)
class QuickScores:
    governance: MetricGovernance
    sector_context: SectorContextScore
    data_quality: DataQualityScore


def _run_component(component: str, func: Callable[..., T], *args: Any) -> T:
    """Call one valuation component, attaching its name to unexpected errors."""
    try:
        return func(*args)
    except ValuationComputationError:
        raise
    except (ArithmeticError, AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error("%s failed: %s", component, e, exc_info=True)
        raise ValuationComputationError(component, f"{type(e).__name__}: {e}") from e


def _unique(*groups: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(name for group in groups for name in group))


def analyze_snapshot(
    snapshot: RawFinancialSnapshot,
    config: ValuationConfig | None = None,
    as_of: datetime.date | None = None,
) -> ReitAnalysis:
    """Run the dividend, DDM, FFO, NAV and profile components.

    Args:
        snapshot: Raw financial snapshot.
        config: Valuation configuration.
        as_of: Valuation date for the dividend CAGR window.

    Returns:
        ReitAnalysis with a populated decision trace.

    Raises:
        ValuationComputationError: On an unexpected component failure.
    """
    config = config or ValuationConfig()
    flags = config.flags
    price = snapshot.price

    dividends = _run_component(
        "dividends", analyze_dividends, snapshot.dividends, price, as_of, config.ddm
    )
    beta = number(snapshot.profile, "beta", document="profile")
    ddm = _run_component("ddm", compute_ddm, dividends, beta, price, config.ddm)
    ffo = _run_component("ffo", compute_ffo, snapshot, dividends, config.guard)
    nav = _run_component("nav", compute_nav, snapshot, config.nav, config.guard)

    profile = None
    if flags.enable_profile_detection:
        profile = detect_reit_profile(dividends.dividend_yield, dividends.cagr)

    implied = nav.implied_cap_rate if flags.enable_implied_cap_rate else None
    trace = DecisionTrace(
        degraded_documents=snapshot.degraded,
        guards_fired=_unique(ffo.guards_fired, nav.guards_fired),
        trust_type=classify_trust(snapshot.industry).value,
        ffo_source=ffo.source.value,
        shares_source=ffo.shares_source.value,
        depreciation_was_guarded=ffo.depreciation_was_guarded,
        ffo_confidence=ffo.confidence.value,
        ddm_reasons=ddm.reasons,
        noi_proxy_raw=nav.noi_proxy_raw,
        noi_proxy=nav.noi_proxy,
        cap_rate_is_default=nav.cap_rate_is_default,
        economic_nav_negative=(nav.base.economic_nav or 0.0) < 0,
        implied_cap_rate=implied,
        nav_confidence=nav.confidence.value,
        profile_detected=profile.profile if profile else None,
        profile_confidence=profile.confidence.value if profile else None,
        flags_active=tuple(flags.active()),
    )

    logger.info(
        "%s: ffo=%s (%s), nav=%s, ddm=%s",
        snapshot.symbol,
        ffo.source.value,
        ffo.confidence.value,
        nav.confidence.value,
        ddm.confidence.value,
    )
    return ReitAnalysis(
        snapshot=snapshot,
        config=config,
        dividends=dividends,
        ddm=ddm,
        ffo=ffo,
        nav=nav,
        profile=profile,
        trace=trace,
    )


def analyze_reit(
    symbol: str,
    provider: SnapshotProvider,
    config: ValuationConfig | None = None,
    as_of: datetime.date | None = None,
) -> ReitAnalysis:
    """Fetch a snapshot for ``symbol`` and analyse it.

    Raises:
        SymbolNotFoundError: If the provider has no profile for the symbol.
        UpstreamUnavailableError: If the profile fetch failed.
        ValuationComputationError: On an unexpected component failure.
    """
    snapshot = load_snapshot(symbol, provider)
    return analyze_snapshot(snapshot, config, as_of)


# ---------------------------------------------------------------------------
# Payload rendering
# ---------------------------------------------------------------------------


def _fixed(value: float | None, digits: int) -> float | None:
    return round(value, digits) if value is not None else None


def _percent(value: float | None, digits: int = 2) -> float | None:
    """Render a fraction as a percentage."""
    return round(value * 100, digits) if value is not None else None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _camel_dict(obj: Any) -> dict[str, Any]:
    """Shallow dataclass -> camelCase dict with enums rendered by value."""
    return {_camel(k): _jsonable(v) for k, v in dataclasses.asdict(obj).items()}


def _scenario_payload(scenario: NavScenario) -> dict[str, Any]:
    return {
        "capRate": _percent(scenario.cap_rate),
        "propertyValue": _fixed(scenario.property_value, 0),
        "economicNav": _fixed(scenario.economic_nav, 0),
        "navPerShare": _fixed(scenario.nav_per_share, 2),
        "priceVsNav": _percent(scenario.price_vs_nav),
    }


def build_reit_payload(analysis: ReitAnalysis) -> dict[str, Any]:
    """Render a ReitAnalysis as the REIT toolkit response payload.

    Percent-valued fields are multiplied by 100; money fields are rounded
    to whole units, per-share figures to cents.
    """
    snapshot = analysis.snapshot
    flags = analysis.config.flags
    div, ddm, ffo, nav = analysis.dividends, analysis.ddm, analysis.ffo, analysis.nav

    payload: dict[str, Any] = {
        "symbol": snapshot.symbol,
        "companyName": snapshot.profile.get("companyName"),
        "industry": snapshot.industry or None,
        "price": snapshot.price,
        "marketCap": snapshot.market_cap,
        "reportPeriod": format_report_period(snapshot.income),
        # Dividends and DDM
        "currentDividend": _fixed(div.current_dividend, 4),
        "paymentsPerYear": div.payments_per_year,
        "annualDividend": _fixed(div.trailing_annual, 4),
        "dividendYield": _fixed(div.dividend_yield, 2),
        "forwardAnnualDividend": _fixed(div.forward_annual, 4),
        "forwardDividendYield": _fixed(div.forward_yield, 2),
        "dividendCagr": _percent(div.cagr),
        "requiredReturn": _percent(ddm.required_return),
        "growthRateUsed": _percent(ddm.growth_rate_used),
        "intrinsicValue": _fixed(ddm.intrinsic_value, 2),
        "difference": _fixed(ddm.difference_percent, 2),
        "valuation": ddm.valuation,
        "ddmConfidence": ddm.confidence.value,
        "ddmConfidenceNote": ddm.note,
        # FFO
        "ffo": _fixed(ffo.ffo, 0),
        "ffoPerShare": _fixed(ffo.ffo_per_share, 2),
        "pFFO": _fixed(ffo.p_ffo, 2),
        "ffoSource": ffo.source.value,
        "ffoNote": ffo.note,
        "ffoNareitPerShare": _fixed(ffo.nareit_per_share, 2),
        "pFFONareit": _fixed(ffo.p_ffo_nareit, 2),
        "ffoSimplifiedPerShare": _fixed(ffo.simplified_per_share, 2),
        "pFFOSimplified": _fixed(ffo.p_ffo_simplified, 2),
        "operatingCashFlow": _fixed(ffo.operating_cash_flow, 0),
        "operatingCFPerShare": _fixed(ffo.operating_cf_per_share, 2),
        "operatingCFPerShareApprox": ffo.operating_cf_per_share_approx,
        "ffoPayoutRatio": _fixed(ffo.ffo_payout_ratio, 1),
        "debtToEbitda": _fixed(ffo.debt_to_ebitda, 2),
        "debtToEquity": _fixed(ffo.debt_to_equity, 2),
        # NAV
        "nav": _fixed(nav.nav, 0),
        "navPerShare": _fixed(nav.nav_per_share, 2),
        "priceToNAV": _fixed(nav.price_to_nav, 2),
        "premiumPercent": _fixed(nav.premium_percent, 2),
        "premium": nav.premium,
        "economicNAV": {
            "sector": snapshot.industry or None,
            "noiProxy": _fixed(nav.noi_proxy, 0) if nav.noi_proxy else None,
            "scenarios": {
                "optimistic": _scenario_payload(nav.optimistic),
                "base": _scenario_payload(nav.base),
                "conservative": _scenario_payload(nav.conservative),
            },
        },
    }

    if flags.enable_period_tags:
        payload["ddmDataPeriod"] = "TTM"
        payload["ffoDataPeriod"] = format_report_period(snapshot.income) or "TTM"
        payload["navDataPeriod"] = format_report_period(snapshot.balance)

    if flags.enable_confidence_badges:
        payload["ffoConfidence"] = ffo.confidence.value
        payload["ffoConfidenceReasons"] = list(ffo.reasons)
        payload["navConfidence"] = nav.confidence.value
        payload["navConfidenceReasons"] = list(nav.reasons)

    if flags.enable_implied_cap_rate:
        payload["impliedCapRate"] = _percent(nav.implied_cap_rate)

    if analysis.profile is not None:
        payload["reitProfile"] = analysis.profile.profile
        payload["profileConfidence"] = analysis.profile.confidence.value

    trace = _camel_dict(analysis.trace)
    trace["impliedCapRate"] = _percent(analysis.trace.implied_cap_rate)
    payload["_decisionTrace"] = trace
    return payload


# ---------------------------------------------------------------------------
# Quick-analysis scores
# ---------------------------------------------------------------------------


def analyze_quick_scores(
    composite_score: float,
    sector: str,
    indicators: Mapping[str, str],
    calculated_by_label: Mapping[str, Mapping[str, str]] | None = None,
    benchmark_comparisons: Mapping[str, str] | None = None,
    benchmark_metadata: Mapping[str, Mapping[str, object]] | None = None,
    current_data_period: str | None = None,
    benchmark_as_of: str | None = None,
    as_of: str | None = None,
    statements: Mapping[str, Any] | None = None,
) -> QuickScores:
    """Build metric governance and both sector scores for one company.

    Args:
        composite_score: Company score on a 0-100 scale.
        sector: Free-text sector label.
        indicators: Display label -> current value string.
        calculated_by_label: Locally derived metrics and their formulas.
        benchmark_comparisons: Display label -> sector benchmark string.
        benchmark_metadata: Display label -> {"source", "sampleSize"}.
        current_data_period: Period tag of the indicator values.
        benchmark_as_of: Timestamp of the benchmark snapshot.
        as_of: Timestamp stamped on every metric state.
        statements: Upstream ratios and statements (camelCase keys as in
            ``fill_from_statements``) used to fill placeholder indicators.
            Caller-supplied calculated details win over derived ones.

    Returns:
        QuickScores.
    """
    if statements:
        derived = fill_from_statements(indicators, statements)
        indicators = derived.indicators
        calculated_by_label = {
            **derived.calculated_by_label,
            **(calculated_by_label or {}),
        }

    governance = build_governance(
        sector,
        indicators,
        calculated_by_label=calculated_by_label,
        benchmark_comparisons=benchmark_comparisons,
        benchmark_metadata=benchmark_metadata,
        current_data_period=current_data_period,
        benchmark_as_of=benchmark_as_of,
        as_of=as_of,
    )
    return QuickScores(
        governance=governance,
        sector_context=compute_sector_context_score(composite_score, governance, sector),
        data_quality=compute_data_quality_score(governance),
    )


def _summary_payload(governance: MetricGovernance) -> dict[str, int]:
    # Status counts keep the status names as keys.
    statuses = {"total", "ok", "calculated", "nao_aplicavel", "sem_dado_atual", "erro_fonte"}
    return {
        (name if name in statuses else _camel(name)): value
        for name, value in dataclasses.asdict(governance.summary).items()
    }


def build_quick_scores_payload(scores: QuickScores) -> dict[str, Any]:
    """Render QuickScores with camelCase field names."""
    governance = scores.governance
    states = {
        key: {
            **_camel_dict(state),
            "requiredForSector": state.required_for_sector,
        }
        for key, state in governance.states.items()
    }
    return {
        "sectorContextScore": _camel_dict(scores.sector_context),
        "dataQualityScore": _camel_dict(scores.data_quality),
        "governance": {
            "contractVersion": governance.contract_version,
            "summary": _summary_payload(governance),
            "ingestion": _camel_dict(governance.ingestion),
            "states": states,
        },
    }
