"""Data models for the raw financial snapshot."""

from __future__ import annotations

import datetime
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from equity_signals.errors import MalformedPayloadError


@dataclass(frozen=True)
class DividendPaymentRecord:
    """One dividend payment.

    Attributes:
        date: Payment (ex-dividend) date.
        amount: Split-adjusted dividend per share.
    """

    date: datetime.date
    amount: float


@dataclass(frozen=True)
class RawFinancialSnapshot:
    """Point-in-time bag of upstream fields for one company.

    Every sub-document is a read-only mapping using FMP camelCase keys.
    A sub-document whose fetch failed is empty and its name appears in
    ``degraded``.

    Attributes:
        symbol: Ticker symbol.
        profile: Company profile (companyName, industry, sector, beta,
            marketCap, price).
        quote: Current quote (price).
        income: Latest annual income statement.
        balance: Latest annual balance sheet.
        cashflow: Latest annual cash-flow statement.
        key_metrics: Latest annual key metrics (ffoPerShare).
        dividends: Dividend payment history, in upstream order.
        degraded: Names of sub-documents that could not be fetched.
    """

    symbol: str
    profile: Mapping[str, Any] = field(default_factory=dict)
    quote: Mapping[str, Any] = field(default_factory=dict)
    income: Mapping[str, Any] = field(default_factory=dict)
    balance: Mapping[str, Any] = field(default_factory=dict)
    cashflow: Mapping[str, Any] = field(default_factory=dict)
    key_metrics: Mapping[str, Any] = field(default_factory=dict)
    dividends: tuple[DividendPaymentRecord, ...] = ()
    degraded: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in ("profile", "quote", "income", "balance", "cashflow", "key_metrics"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value or {})))

    @property
    def price(self) -> float:
        """Quote price, then profile price, else 0."""
        return (
            number(self.quote, "price", document="quote")
            or number(self.profile, "price", document="profile")
            or 0.0
        )

    @property
    def market_cap(self) -> float:
        """Profile market cap, else 0."""
        return number(self.profile, "marketCap", document="profile") or 0.0

    @property
    def industry(self) -> str:
        return str(self.profile.get("industry") or "")


def number(
    record: Mapping[str, Any], *keys: str, document: str = "snapshot"
) -> float | None:
    """Read the first present numeric field from an upstream record.

    None and NaN count as absent; a reported 0 is returned as 0.0.

    Args:
        record: Upstream sub-document.
        keys: Candidate field names, in priority order.
        document: Sub-document name, used in error detail.

    Returns:
        Float value of the first present key, or None.

    Raises:
        MalformedPayloadError: If a present value is not numeric.
    """
    for key in keys:
        raw = record.get(key)
        if raw is None:
            continue
        if isinstance(raw, bool):
            raise MalformedPayloadError(document, key, raw)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise MalformedPayloadError(document, key, raw) from None
        if math.isnan(value):
            continue
        return value
    return None


def format_report_period(record: Mapping[str, Any]) -> str | None:
    """Format a statement's reporting period as "FY2024" or "Q3 2024".

    Args:
        record: Statement with ``date`` and ``period`` fields.

    Returns:
        Period tag, or None if the statement has no date.
    """
    raw_date = record.get("date")
    if not raw_date:
        return None
    try:
        year = datetime.date.fromisoformat(str(raw_date)[:10]).year
    except ValueError:
        return None
    period = record.get("period")
    if not period or period in ("FY", "annual"):
        return f"FY{year}"
    return f"{period} {year}"
