"""Dividend history analysis: frequency, trailing/forward dividend, 5y CAGR."""

from __future__ import annotations

import datetime
import logging
import math
from collections.abc import Iterable

import pandas as pd

from equity_signals.config import DdmConfig
from equity_signals.data.contracts import DividendSummary
from equity_signals.data.models import DividendPaymentRecord

logger = logging.getLogger(__name__)

# Gaps measured between the most recent 7 payments (6 gaps).
_FREQUENCY_WINDOW = 7

# (max mean gap in days, payments per year)
_FREQUENCY_BANDS = ((35.0, 12), (100.0, 4), (200.0, 2))

_CAGR_YEARS = 5
_MIN_CAGR_POINTS = 4


def _to_frame(records: Iterable[DividendPaymentRecord]) -> pd.DataFrame:
    """Build a history DataFrame sorted newest first.

    Ties on date are broken by amount so the result does not depend on
    the upstream ordering.
    """
    rows = [(pd.Timestamp(r.date), float(r.amount)) for r in records]
    history = pd.DataFrame(rows, columns=["date", "amount"])
    history["date"] = pd.to_datetime(history["date"])
    history["amount"] = history["amount"].astype(float)
    return history.sort_values(
        ["date", "amount"], ascending=False, ignore_index=True
    )


def infer_payments_per_year(history: pd.DataFrame) -> int:
    """Infer payment frequency from the mean gap between recent payments.

    Args:
        history: Payment history sorted newest first.

    Returns:
        12, 4, 2 or 1. Defaults to 4 with fewer than 3 payments.
    """
    if len(history) < 3:
        return 4

    recent = history["date"].head(_FREQUENCY_WINDOW)
    gaps = (recent - recent.shift(-1)).dropna().dt.days.abs()
    mean_gap = float(gaps.mean())

    for max_gap, payments in _FREQUENCY_BANDS:
        if mean_gap <= max_gap:
            return payments
    return 1


def five_year_cagr(
    history: pd.DataFrame,
    as_of: datetime.date,
    default: float,
) -> tuple[float, bool, int]:
    """Estimate dividend CAGR over the trailing five years.

    Splits the payments inside the window into equal-length first and
    last slices, annualises each slice's total and compounds the ratio
    over five years.

    Args:
        history: Payment history (any order).
        as_of: End of the five-year window.
        default: CAGR used when the estimate is undefined.

    Returns:
        (cagr, is_default, payments_in_window).
    """
    cutoff = pd.Timestamp(as_of) - pd.DateOffset(years=_CAGR_YEARS)
    window = history[history["date"] >= cutoff].sort_values(
        ["date", "amount"], ignore_index=True
    )
    count = len(window)
    if count < _MIN_CAGR_POINTS:
        return default, True, count

    slice_len = math.ceil(count / _CAGR_YEARS)
    first = window["amount"].head(slice_len).sum() * (12 / slice_len)
    last = window["amount"].tail(slice_len).sum() * (12 / slice_len)

    if first <= 0 or last <= 0:
        logger.debug(
            "non-positive dividend slice (first=%.4f, last=%.4f), "
            "keeping default CAGR",
            first, last,
        )
        return default, True, count

    return float((last / first) ** (1 / _CAGR_YEARS) - 1), False, count


def analyze_dividends(
    records: Iterable[DividendPaymentRecord],
    price: float,
    as_of: datetime.date | None = None,
    config: DdmConfig | None = None,
) -> DividendSummary:
    """Summarise a dividend payment history.

    Args:
        records: Dividend payments in any order.
        price: Current share price.
        as_of: Valuation date for the CAGR window (defaults to today).
        config: DDM configuration (provides the default CAGR).

    Returns:
        DividendSummary with frequency, trailing and forward figures.
    """
    config = config or DdmConfig()
    as_of = as_of or datetime.date.today()
    history = _to_frame(records)

    payments_per_year = infer_payments_per_year(history)
    trailing = float(history["amount"].head(payments_per_year).sum())

    if history.empty:
        current = None
        forward = None
    else:
        current = float(history["amount"].iloc[0])
        forward = current * payments_per_year

    forward_yield = (
        forward / price * 100 if forward is not None and price > 0 else None
    )
    dividend_yield = trailing / price * 100 if price > 0 and trailing > 0 else 0.0

    cagr, cagr_is_default, five_year_count = five_year_cagr(
        history, as_of, config.default_cagr
    )

    return DividendSummary(
        payments_per_year=payments_per_year,
        current_dividend=current,
        trailing_annual=trailing,
        forward_annual=forward,
        dividend_yield=dividend_yield,
        forward_yield=forward_yield,
        cagr=cagr,
        cagr_is_default=cagr_is_default,
        five_year_count=five_year_count,
    )
