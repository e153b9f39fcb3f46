"""Fill missing quick-analysis indicators from upstream ratios and statements.

Indicators such as ROE or ROIC are often blank in the display payload
even though FMP endpoints or the raw statements carry enough to compute
them. Each derivation only fills a label whose current value is a
placeholder, and records its source and formula so governance marks the
metric ``calculated`` rather than ``ok``.

Endpoint values are tried before statement-based formulas for every
label.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from equity_signals.metrics.governance import find_label_key, is_dash_like

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

DEBT_EQUITY_ALIASES = (
    "Dívida / Capitais Próprios",
    "Divida/Patrimonio",
    "Dívida/Patrimônio",
    "Debt/Equity",
)

# Fallback when neither the statements nor the ratio endpoints give a
# usable effective tax rate.
DEFAULT_TAX_RATE = 0.21
MAX_TAX_RATE = 0.45

# Debt/equity above this is assumed to be reported in percent.
_DEBT_EQUITY_PERCENT_CUTOFF = 50.0

# statements document key -> fill_derived_indicators keyword
STATEMENT_KEYS = {
    "ratios": "ratios",
    "metrics": "metrics",
    "historicalRatios": "historical_ratios",
    "keyMetricsHistorical": "key_metrics_historical",
    "income": "income",
    "balance": "balance",
    "balancePrior": "balance_prior",
    "cashflow": "cashflow",
    "growth": "growth",
}


@dataclass(frozen=True)
class DerivedIndicators:
    """Indicators after filling, plus provenance of each filled label.

    Attributes:
        indicators: Display label -> value string, original values kept.
        calculated_by_label: Display label -> {"source", "formula"} for
            every label this module filled.
    """

    indicators: dict[str, str]
    calculated_by_label: dict[str, dict[str, str]] = field(default_factory=dict)


def to_number(value: Any) -> float | None:
    """Read an upstream numeric field.

    Numbers pass through when finite. Strings have whitespace and
    non-numeric characters removed, a decimal comma becomes a point, and
    a percent sign divides by 100. Anything else is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None

    trimmed = value.strip()
    if not trimmed:
        return None
    is_percent = "%" in trimmed
    normalized = re.sub(r"\s", "", trimmed.replace("%", "", 1)).replace(",", ".", 1)
    normalized = re.sub(r"[^0-9.+-]", "", normalized)
    try:
        parsed = float(normalized)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed / 100 if is_percent else parsed


def parse_formatted(value: Any) -> float | None:
    """Parse a display value such as ``"12.5%"`` (as a fraction) or ``"18.2"``."""
    if is_dash_like(value):
        return None
    cleaned = re.sub(r"\s", "", str(value))
    is_percent = "%" in cleaned
    try:
        numeric = float(cleaned.replace("%", "", 1).replace(",", ".", 1))
    except ValueError:
        return None
    if not math.isfinite(numeric):
        return None
    return numeric / 100 if is_percent else numeric


def _pick(sources: Sequence[Record | None], keys: Sequence[str]) -> float | None:
    """First numeric value for any of ``keys``, searching sources in order."""
    for source in sources:
        if not source:
            continue
        for key in keys:
            value = to_number(source.get(key))
            if value is not None:
                return value
    return None


def _divide(numerator: float | None, denominator: float | None) -> float | None:
    if numerator is None or denominator is None or denominator == 0:
        return None
    return numerator / denominator


def _latest(records: Sequence[Record] | None) -> Record | None:
    if not records:
        return None
    first = records[0]
    return first if isinstance(first, Mapping) else None


def _equity(balance: Record | None) -> float | None:
    return _pick(
        [balance],
        [
            "totalStockholdersEquity",
            "totalShareholdersEquity",
            "stockholdersEquity",
            "totalEquity",
            "totalEquityGrossMinorityInterest",
            "shareholdersEquity",
        ],
    )


def _debt(balance: Record | None) -> float | None:
    """Total debt, else short-term plus long-term debt."""
    total = _pick([balance], ["totalDebt"])
    if total is not None:
        return total
    short = _pick([balance], ["shortTermDebt", "shortTermDebtTotal", "currentDebt"])
    long = _pick([balance], ["longTermDebt", "longTermDebtTotal", "longTermDebtNoncurrent"])
    if short is None and long is None:
        return None
    return (short or 0.0) + (long or 0.0)


def normalize_debt_equity(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    if value > _DEBT_EQUITY_PERCENT_CUTOFF:
        return value / 100
    return value


def roe_from_statements(
    income: Record | None, balance: Record | None, balance_prior: Record | None
) -> float | None:
    """Net income over average equity (current equity alone without a prior year)."""
    net_income = _pick([income], ["netIncome"])
    equity = _equity(balance)
    if net_income is None or equity is None or equity <= 0:
        return None
    prior = _equity(balance_prior)
    denominator = (equity + prior) / 2 if prior is not None and prior > 0 else equity
    return _divide(net_income, denominator)


def debt_equity_from_balance(balance: Record | None) -> float | None:
    debt = _debt(balance)
    equity = _equity(balance)
    if debt is None or equity is None or equity <= 0:
        return None
    return normalize_debt_equity(_divide(debt, equity))


def effective_tax_rate(
    income: Record | None, rate_sources: Sequence[Record | None]
) -> float:
    """Tax expense over pre-tax income, else a reported rate, else 21%.

    Clamped to [0, 45%].
    """
    rate = None
    tax_expense = _pick([income], ["incomeTaxExpense"])
    pre_tax = _pick([income], ["incomeBeforeTax", "incomeBeforeTaxIncome"])
    if tax_expense is not None and pre_tax:
        rate = abs(tax_expense / pre_tax)
    if rate is None:
        rate = _pick(
            rate_sources,
            ["effectiveTaxRateTTM", "effectiveTaxRate", "taxRate", "incomeTaxRate"],
        )
    if rate is None:
        rate = DEFAULT_TAX_RATE
    return min(max(rate, 0.0), MAX_TAX_RATE)


def roic_from_statements(
    income: Record | None,
    balance: Record | None,
    rate_sources: Sequence[Record | None],
) -> float | None:
    """NOPAT over invested capital (debt + equity, net of cash when positive)."""
    operating_income = _pick([income], ["operatingIncome", "ebit"])
    if operating_income is None:
        pre_tax = _pick([income], ["incomeBeforeTax", "incomeBeforeTaxIncome"])
        interest = _pick([income], ["interestExpense"])
        if pre_tax is not None and interest is not None:
            operating_income = pre_tax + abs(interest)
    if operating_income is None:
        return None

    debt = _debt(balance)
    equity = _equity(balance)
    if debt is None and equity is None:
        return None
    cash = _pick(
        [balance],
        [
            "cashAndCashEquivalents",
            "cashAndShortTermInvestments",
            "cashAndCashEquivalentsAtCarryingValue",
            "cash",
        ],
    ) or 0.0

    gross = (debt or 0.0) + (equity or 0.0)
    if gross <= 0:
        return None
    invested = gross - cash
    if invested <= 0:
        invested = gross

    nopat = operating_income * (1 - effective_tax_rate(income, rate_sources))
    return _divide(nopat, invested)


def ebitda_margin_from_income(income: Record | None) -> float | None:
    return _divide(
        _pick([income], ["ebitda"]), _pick([income], ["revenue", "totalRevenue"])
    )


def payout_from_statements(
    income: Record | None, cashflow: Record | None
) -> float | None:
    dividends_paid = _pick([cashflow], ["dividendsPaid", "commonDividendsPaid"])
    net_income = _pick([income], ["netIncome"])
    if dividends_paid is None or not net_income:
        return None
    return abs(dividends_paid) / abs(net_income)


def fill_derived_indicators(
    indicators: Mapping[str, Any],
    *,
    ratios: Record | None = None,
    metrics: Record | None = None,
    historical_ratios: Sequence[Record] | None = None,
    key_metrics_historical: Sequence[Record] | None = None,
    income: Record | None = None,
    balance: Record | None = None,
    balance_prior: Record | None = None,
    cashflow: Record | None = None,
    growth: Record | None = None,
) -> DerivedIndicators:
    """Fill placeholder indicators with values derived from upstream data.

    Args:
        indicators: Display label -> current value (left unmodified).
        ratios: TTM ratios record.
        metrics: TTM key-metrics record.
        historical_ratios: Annual ratios, newest first.
        key_metrics_historical: Annual key metrics, newest first.
        income: Latest income statement.
        balance: Latest balance sheet.
        balance_prior: Prior-year balance sheet (for average equity).
        cashflow: Latest cash-flow statement.
        growth: Financial-growth record (EPS growth).

    Returns:
        DerivedIndicators with a copy of the indicators and the
        provenance of every filled label.
    """
    filled: dict[str, str] = {
        key: str(value) for key, value in indicators.items() if value is not None
    }
    calculated: dict[str, dict[str, str]] = {}

    latest_ratios = _latest(historical_ratios)
    latest_key_metrics = _latest(key_metrics_historical)
    endpoints = [ratios, metrics, latest_ratios, latest_key_metrics]

    def label_key(label: str, aliases: tuple[str, ...] = ()) -> str:
        return find_label_key((label, *aliases), filled) or label

    def fill(
        label: str,
        value: float | None,
        as_percent: bool,
        source: str,
        formula: str,
        aliases: tuple[str, ...] = (),
    ) -> None:
        key = label_key(label, aliases)
        if not is_dash_like(filled.get(key)):
            return
        if value is None or not math.isfinite(value):
            return
        filled[key] = f"{value * 100:.2f}%" if as_percent else f"{value:.2f}"
        calculated[key] = {"source": source, "formula": formula}
        logger.debug("derived %s = %s from %s", key, filled[key], source)

    fill(
        "ROE",
        _pick(
            endpoints,
            [
                "returnOnEquityTTM",
                "returnOnEquity",
                "roeTTM",
                "roe",
                "returnOnAverageEquityTTM",
                "returnOnAverageEquity",
            ],
        ),
        True,
        "calculated.from_fmp_endpoints",
        "returnOnEquityTTM/roeTTM",
    )
    fill(
        "ROE",
        roe_from_statements(income, balance, balance_prior),
        True,
        "calculated.from_income_balance",
        "ROE = netIncome / avgShareholderEquity",
    )

    fill(
        "ROIC",
        _pick(
            endpoints,
            [
                "returnOnCapitalEmployedTTM",
                "returnOnInvestedCapitalTTM",
                "roicTTM",
                "returnOnCapitalEmployed",
                "returnOnInvestedCapital",
            ],
        ),
        True,
        "calculated.from_fmp_endpoints",
        "returnOnCapitalEmployedTTM/roicTTM",
    )
    fill(
        "ROIC",
        roic_from_statements(income, balance, endpoints),
        True,
        "calculated.from_income_balance",
        "ROIC = NOPAT / investedCapital",
    )

    fill(
        "Margem EBITDA",
        _pick(endpoints, ["ebitdaratioTTM", "ebitdaMarginTTM", "ebitdaratio", "ebitdaMargin"]),
        True,
        "calculated.from_fmp_endpoints",
        "ebitdaratioTTM",
        aliases=("Margem Ebitda",),
    )
    fill(
        "Margem EBITDA",
        ebitda_margin_from_income(income),
        True,
        "calculated.from_income_statement",
        "EBITDA margin = EBITDA / revenue",
        aliases=("Margem Ebitda",),
    )

    fill(
        "Divida / Capitais Proprios",
        normalize_debt_equity(
            _pick(
                endpoints,
                ["debtEquityRatioTTM", "debtEquityRatio", "debtToEquityTTM", "debtToEquity"],
            )
        ),
        False,
        "calculated.from_fmp_endpoints",
        "debtEquityRatioTTM",
        aliases=DEBT_EQUITY_ALIASES,
    )
    fill(
        "Divida / Capitais Proprios",
        debt_equity_from_balance(balance),
        False,
        "calculated.from_balance_sheet",
        "Debt/Equity = totalDebt / totalShareholderEquity",
        aliases=DEBT_EQUITY_ALIASES,
    )

    fill(
        "Payout Ratio",
        _pick(endpoints, ["payoutRatioTTM", "payoutRatio", "payoutRatioAnnual"]),
        True,
        "calculated.from_fmp_endpoints",
        "payoutRatioTTM",
    )
    fill(
        "Payout Ratio",
        payout_from_statements(income, cashflow),
        True,
        "calculated.from_cashflow_income",
        "Payout = abs(dividendsPaid) / abs(netIncome)",
    )

    fill(
        "PEG",
        _pick(
            endpoints,
            [
                "pegRatioTTM",
                "pegRatio",
                "priceEarningsToGrowthRatioTTM",
                "priceEarningsToGrowthRatio",
            ],
        ),
        False,
        "calculated.from_fmp_endpoints",
        "pegRatioTTM",
    )

    # PEG from P/L and EPS growth when no endpoint carries it
    if is_dash_like(filled.get(label_key("PEG"))):
        pe = parse_formatted(filled.get(label_key("P/L")))
        if pe is None:
            pe = _pick(endpoints, ["peRatioTTM", "peRatio"])
        eps_growth = parse_formatted(filled.get(label_key("CAGR EPS")))
        if eps_growth is None:
            eps_growth = _pick(
                [growth, latest_ratios, latest_key_metrics],
                ["epsGrowth", "epsgrowth", "growthEPS", "epsGrowthTTM", "earningsGrowth"],
            )
        if pe is not None and eps_growth is not None:
            growth_percent = abs(eps_growth * 100)
            if growth_percent > 0.0001:
                fill(
                    "PEG",
                    pe / growth_percent,
                    False,
                    "calculated.from_pe_growth",
                    "PEG = (P/L) / abs(growth_percent)",
                )

    return DerivedIndicators(indicators=filled, calculated_by_label=calculated)


def fill_from_statements(
    indicators: Mapping[str, Any], statements: Mapping[str, Any]
) -> DerivedIndicators:
    """Run ``fill_derived_indicators`` over a camelCase statements document.

    Unknown keys in ``statements`` are ignored.
    """
    kwargs = {
        STATEMENT_KEYS[name]: document
        for name, document in statements.items()
        if name in STATEMENT_KEYS
    }
    return fill_derived_indicators(indicators, **kwargs)
