"""Net asset value: book NAV and cap-rate based economic NAV scenarios."""

from __future__ import annotations

import logging

from equity_signals.analysis.ffo import resolve_shares, total_debt
from equity_signals.analysis.plausibility import guard_with_provenance
from equity_signals.config import GuardConfig, NavConfig
from equity_signals.data.contracts import Confidence, NavResult, NavScenario
from equity_signals.data.models import RawFinancialSnapshot, number

logger = logging.getLogger(__name__)

PREMIUM = "Premium"
DISCOUNT = "Discount"


def cap_rate_for(industry: str, config: NavConfig) -> tuple[float, bool]:
    """Look up the sector cap rate.

    Returns:
        (cap_rate, is_default). Unmapped industries get the default rate.
    """
    if industry in config.cap_rates:
        return config.cap_rates[industry], False
    return config.default_cap_rate, True


def nav_scenario(
    cap_rate: float,
    noi_proxy: float | None,
    cash: float,
    net_debt: float,
    preferred: float,
    shares: float | None,
    price: float,
) -> NavScenario:
    """Economic NAV at one cap rate.

    Property value is only defined for a positive NOI proxy; everything
    downstream of it is None otherwise.
    """
    property_value = (
        noi_proxy / cap_rate if noi_proxy is not None and noi_proxy > 0 else None
    )
    economic_nav = (
        property_value + cash - net_debt - preferred
        if property_value is not None
        else None
    )
    nav_per_share = economic_nav / shares if economic_nav is not None and shares else None
    price_vs_nav = (
        (price - nav_per_share) / nav_per_share
        if nav_per_share is not None and nav_per_share > 0
        else None
    )
    return NavScenario(
        cap_rate=cap_rate,
        property_value=property_value,
        economic_nav=economic_nav,
        nav_per_share=nav_per_share,
        price_vs_nav=price_vs_nav,
    )


def nav_confidence(
    noi_proxy: float | None, cap_rate_is_default: bool, economic_nav_negative: bool
) -> tuple[Confidence, list[str]]:
    """Grade economic NAV by how many weak inputs went into it.

    Returns:
        (confidence, reasons). No reasons is high, one is medium, two or
        more is low. A missing, zero or negative NOI proxy leaves every
        scenario undefined, so it alone is enough for low.
    """
    noi_usable = noi_proxy is not None and noi_proxy > 0
    reasons: list[str] = []
    if not noi_proxy:
        reasons.append("NOI proxy em falta ou zero")
    elif not noi_usable:
        reasons.append("NOI proxy negativo")
    if cap_rate_is_default:
        reasons.append("Cap rate default (setor nao mapeado)")
    if economic_nav_negative:
        reasons.append("NAV economico negativo")

    if not reasons:
        return Confidence.HIGH, reasons
    if len(reasons) == 1 and noi_usable:
        return Confidence.MEDIUM, reasons
    return Confidence.LOW, reasons


def compute_nav(
    snapshot: RawFinancialSnapshot,
    config: NavConfig | None = None,
    guard_config: GuardConfig | None = None,
) -> NavResult:
    """Estimate book NAV and three economic NAV scenarios.

    Book NAV is total assets minus total liabilities, falling back to
    reported equity. Economic NAV capitalises the NOI proxy (gross
    profit) at the sector cap rate, then adds cash and subtracts net debt
    and preferred stock.

    Args:
        snapshot: Raw financial snapshot.
        config: Cap-rate table and scenario offsets.
        guard_config: Plausibility guard configuration.

    Returns:
        NavResult with optimistic, base and conservative scenarios.
    """
    config = config or NavConfig()
    guard_config = guard_config or GuardConfig()
    balance = snapshot.balance
    price = snapshot.price
    market_cap = snapshot.market_cap
    shares = resolve_shares(snapshot).shares

    total_assets = number(balance, "totalAssets", document="balance")
    total_liabilities = number(balance, "totalLiabilities", document="balance")
    if total_assets is not None and total_liabilities is not None:
        nav = total_assets - total_liabilities
    else:
        nav = number(balance, "totalStockholdersEquity", document="balance")

    nav_per_share = nav / shares if nav is not None and shares else None
    price_to_nav = (
        price / nav_per_share
        if nav_per_share is not None and nav_per_share > 0
        else None
    )
    premium_percent = (price_to_nav - 1) * 100 if price_to_nav is not None else None
    premium = None
    if price_to_nav is not None:
        premium = PREMIUM if price_to_nav > 1 else DISCOUNT

    noi_raw = number(snapshot.income, "grossProfit", document="income")
    noi_guarded = guard_with_provenance(noi_raw, market_cap, guard_config.threshold)
    noi_proxy = noi_guarded.value
    guards_fired = ("grossProfit",) if noi_guarded.was_guarded else ()

    base_rate, cap_rate_is_default = cap_rate_for(snapshot.industry, config)
    if cap_rate_is_default:
        logger.debug(
            "%s: no cap rate for industry %r, using default %.4f",
            snapshot.symbol, snapshot.industry, base_rate,
        )

    cash = number(balance, "cashAndCashEquivalents", document="balance") or 0.0
    net_debt = number(balance, "netDebt", document="balance")
    if net_debt is None:
        net_debt = total_debt(snapshot) - cash
    preferred = number(balance, "preferredStock", document="balance") or 0.0

    def scenario(cap_rate: float) -> NavScenario:
        return nav_scenario(cap_rate, noi_proxy, cash, net_debt, preferred, shares, price)

    base = scenario(base_rate)
    optimistic = scenario(base_rate + config.optimistic_offset)
    conservative = scenario(base_rate + config.conservative_offset)

    enterprise_value = market_cap + net_debt
    implied_cap_rate = (
        noi_proxy / enterprise_value
        if noi_proxy is not None and noi_proxy > 0 and enterprise_value > 0
        else None
    )

    economic_nav_negative = (base.economic_nav or 0.0) < 0
    confidence, reasons = nav_confidence(
        noi_proxy, cap_rate_is_default, economic_nav_negative
    )

    return NavResult(
        nav=nav,
        nav_per_share=nav_per_share,
        price_to_nav=price_to_nav,
        premium_percent=premium_percent,
        premium=premium,
        noi_proxy_raw=noi_raw,
        noi_proxy=noi_proxy,
        cap_rate_is_default=cap_rate_is_default,
        optimistic=optimistic,
        base=base,
        conservative=conservative,
        implied_cap_rate=implied_cap_rate,
        confidence=confidence,
        reasons=tuple(reasons),
        guards_fired=guards_fired,
    )
