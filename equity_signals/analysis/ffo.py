"""Funds From Operations estimate with source hierarchy and confidence.

Resolution order:
    1. Mortgage trust: FFO not applicable (Distributable Earnings is the
       relevant metric).
    2. Upstream NAREIT ffoPerShare from key metrics, when positive.
    3. Specialty trust: (net income + total D&A) / shares, capped at low
       confidence because D&A includes non-real-estate equipment.
    4. Equity trust: same simplified formula.
"""

from __future__ import annotations

import logging
from enum import Enum

from equity_signals.analysis.plausibility import guard_with_provenance
from equity_signals.config import GuardConfig
from equity_signals.data.contracts import (
    Confidence,
    DividendSummary,
    FfoResult,
    FfoSource,
    SharesResolution,
    SharesSource,
)
from equity_signals.data.models import RawFinancialSnapshot, number

logger = logging.getLogger(__name__)

MORTGAGE_NOTE = (
    "REIT hipotecário: FFO não se aplica. "
    "Métrica relevante: Distributable Earnings / Core EPS."
)
SPECIALTY_NOTE = (
    "Estimativa simplificada (NI + D&A total). Pode sobrestimar FFO em "
    "data centers/torres; confirmar com FFO reportado pela empresa."
)


class TrustType(Enum):
    """Trust classification driving the FFO approach."""

    MORTGAGE = "mortgage"
    SPECIALTY = "specialty"
    EQUITY = "equity"


def classify_trust(industry: str | None) -> TrustType:
    """Classify a trust from its free-text industry label.

    Labels matching neither "mortgage" nor "specialty" (including empty
    or unrecognised ones) are treated as equity trusts.
    """
    label = (industry or "").lower()
    if "mortgage" in label:
        return TrustType.MORTGAGE
    if "specialty" in label:
        return TrustType.SPECIALTY
    if "reit" not in label:
        logger.debug("industry %r not a REIT label, treating as equity trust", industry)
    return TrustType.EQUITY


def resolve_shares(snapshot: RawFinancialSnapshot) -> SharesResolution:
    """Resolve shares outstanding from the best available source.

    Priority: diluted weighted average, basic weighted average,
    balance-sheet shares outstanding, market cap / price (estimated).
    Zero counts are skipped.
    """
    candidates = (
        (snapshot.income, "weightedAverageShsOutDil", SharesSource.DILUTED, "income"),
        (snapshot.income, "weightedAverageShsOut", SharesSource.BASIC, "income"),
        (
            snapshot.balance,
            "commonStockSharesOutstanding",
            SharesSource.BALANCE_SHEET,
            "balance",
        ),
    )
    for record, key, source, document in candidates:
        shares = number(record, key, document=document)
        if shares:
            return SharesResolution(shares, source)

    market_cap = snapshot.market_cap
    price = snapshot.price
    if market_cap > 0 and price > 0:
        return SharesResolution(float(round(market_cap / price)), SharesSource.ESTIMATED)
    return SharesResolution(None, SharesSource.UNAVAILABLE)


def ffo_confidence(
    source: FfoSource,
    depreciation_guarded: bool,
    shares_source: SharesSource,
) -> tuple[Confidence, list[str]]:
    """Derive FFO confidence from how the figure was obtained.

    High only for the NAREIT figure with clean inputs; any guard or
    estimate flag can only lower it.

    Returns:
        (confidence, reasons).
    """
    if source is FfoSource.NOT_APPLICABLE:
        return Confidence.LOW, ["mREIT: FFO nao se aplica"]

    reasons: list[str] = []
    if source is FfoSource.KEY_METRICS:
        reasons.append("ffoPerShare NAREIT (key-metrics)")
    elif source is FfoSource.SIMPLIFIED_SPECIALTY:
        reasons.append("Estimativa simplificada com D&A de specialty")
    else:
        reasons.append("Estimativa simplificada (NI + D&A)")
    if depreciation_guarded:
        reasons.append("D&A guardado por plausibilidade (era 0)")
    if shares_source is SharesSource.ESTIMATED:
        reasons.append("Shares estimadas via marketCap/price")
    elif shares_source is SharesSource.UNAVAILABLE:
        reasons.append("Shares indisponiveis")

    if (
        source is FfoSource.KEY_METRICS
        and not depreciation_guarded
        and not shares_source.is_estimate
    ):
        confidence = Confidence.HIGH
    elif (
        source is FfoSource.SIMPLIFIED_SPECIALTY
        or depreciation_guarded
        or shares_source.is_estimate
    ):
        confidence = Confidence.LOW
    else:
        confidence = Confidence.MEDIUM
    return confidence, reasons


def total_debt(snapshot: RawFinancialSnapshot) -> float:
    """Reported total debt, else short-term plus long-term debt."""
    reported = number(snapshot.balance, "totalDebt", document="balance")
    if reported is not None:
        return reported
    short = number(snapshot.balance, "shortTermDebt", document="balance") or 0.0
    long = number(snapshot.balance, "longTermDebt", document="balance") or 0.0
    return short + long


def _price_multiple(price: float, per_share: float | None) -> float | None:
    if per_share is None or per_share <= 0 or price <= 0:
        return None
    return price / per_share


def compute_ffo(
    snapshot: RawFinancialSnapshot,
    dividends: DividendSummary,
    guard_config: GuardConfig | None = None,
) -> FfoResult:
    """Estimate FFO and the leverage ratios reported alongside it.

    Args:
        snapshot: Raw financial snapshot.
        dividends: Dividend summary (for the FFO payout ratio).
        guard_config: Plausibility guard configuration.

    Returns:
        FfoResult with source, confidence and derived ratios.
    """
    guard_config = guard_config or GuardConfig()
    threshold = guard_config.threshold
    market_cap = snapshot.market_cap
    price = snapshot.price
    income, cashflow, balance = snapshot.income, snapshot.cashflow, snapshot.balance
    guards_fired: list[str] = []

    trust = classify_trust(snapshot.industry)
    shares = resolve_shares(snapshot)
    share_count = shares.shares if shares.shares else None

    depreciation_raw = number(
        cashflow, "depreciationAndAmortization", document="cashflow"
    )
    if depreciation_raw is None:
        depreciation_raw = number(
            income, "depreciationAndAmortization", document="income"
        )
    depreciation_guarded = guard_with_provenance(
        depreciation_raw, market_cap, threshold
    )
    if depreciation_guarded.was_guarded:
        guards_fired.append("depreciationAndAmortization")
    # A company with no D&A is possible; zero is the computational fallback.
    depreciation = depreciation_guarded.value or 0.0

    net_income = number(income, "netIncome", document="income")
    simplified_total = net_income + depreciation if net_income is not None else None
    simplified_per_share = (
        simplified_total / share_count
        if trust is not TrustType.MORTGAGE
        and simplified_total is not None
        and share_count
        else None
    )

    nareit = number(snapshot.key_metrics, "ffoPerShare", document="key_metrics")
    nareit_per_share = nareit if nareit is not None and nareit > 0 else None

    ffo: float | None = None
    ffo_per_share: float | None = None
    note: str | None = None
    if trust is TrustType.MORTGAGE:
        source = FfoSource.NOT_APPLICABLE
        note = MORTGAGE_NOTE
    elif nareit_per_share is not None:
        source = FfoSource.KEY_METRICS
        ffo_per_share = nareit_per_share
        ffo = nareit_per_share * share_count if share_count else None
    elif trust is TrustType.SPECIALTY:
        source = FfoSource.SIMPLIFIED_SPECIALTY
        ffo = simplified_total
        ffo_per_share = simplified_per_share
        note = SPECIALTY_NOTE
    else:
        source = FfoSource.SIMPLIFIED
        ffo = simplified_total
        ffo_per_share = simplified_per_share

    def guarded(value: float | None, field_name: str) -> float | None:
        result = guard_with_provenance(value, market_cap, threshold)
        if result.was_guarded:
            guards_fired.append(field_name)
        return result.value

    # EBITDA: reported (guarded), else operating income + D&A
    ebitda = guarded(number(income, "ebitda", document="income"), "ebitda")
    if ebitda is None:
        operating_income = number(income, "operatingIncome", document="income")
        ebitda = operating_income + depreciation if operating_income is not None else None

    debt = total_debt(snapshot)
    equity = guarded(
        number(balance, "totalStockholdersEquity", document="balance"),
        "totalStockholdersEquity",
    )
    debt_to_ebitda = debt / ebitda if ebitda is not None and ebitda > 0 else None
    debt_to_equity = debt / equity if equity is not None and equity > 0 else None

    operating_cash_flow = guarded(
        number(cashflow, "operatingCashFlow", document="cashflow"),
        "operatingCashFlow",
    )
    operating_cf_per_share = (
        operating_cash_flow / share_count
        if operating_cash_flow is not None and share_count
        else None
    )
    cf_approx = (
        shares.source is SharesSource.ESTIMATED and operating_cf_per_share is not None
    )

    payout = (
        dividends.trailing_annual / ffo_per_share * 100
        if ffo_per_share is not None and ffo_per_share > 0 and dividends.trailing_annual > 0
        else None
    )

    confidence, reasons = ffo_confidence(
        source, depreciation_guarded.was_guarded, shares.source
    )
    logger.debug(
        "%s: FFO source=%s shares=%s confidence=%s",
        snapshot.symbol, source.value, shares.source.value, confidence.value,
    )

    return FfoResult(
        ffo=ffo,
        ffo_per_share=ffo_per_share,
        p_ffo=_price_multiple(price, ffo_per_share),
        source=source,
        confidence=confidence,
        reasons=tuple(reasons),
        note=note,
        nareit_per_share=nareit_per_share,
        p_ffo_nareit=_price_multiple(price, nareit_per_share),
        simplified_per_share=simplified_per_share,
        p_ffo_simplified=_price_multiple(price, simplified_per_share),
        depreciation_was_guarded=depreciation_guarded.was_guarded,
        shares_source=shares.source,
        ebitda=ebitda,
        total_debt=debt,
        debt_to_ebitda=debt_to_ebitda,
        debt_to_equity=debt_to_equity,
        operating_cash_flow=operating_cash_flow,
        operating_cf_per_share=operating_cf_per_share,
        operating_cf_per_share_approx=cf_approx,
        ffo_payout_ratio=payout,
        guards_fired=tuple(guards_fired),
    )
