"""Plausibility guard: disambiguate upstream zeros from missing data.

FMP reports 0 instead of null for many fields a filer did not report.
For a company above the materiality threshold an exact zero in CFO,
D&A, EBITDA, equity or the NOI proxy is implausible, so it is treated
as missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from equity_signals.config import MATERIALITY_THRESHOLD


class Provenance(Enum):
    """How a guarded value was obtained."""

    REPORTED = "reported"
    ZERO = "zero"
    GUARDED = "guarded-to-missing"
    MISSING = "missing"


@dataclass(frozen=True)
class GuardedValue:
    """A numeric field paired with its provenance."""

    value: float | None
    provenance: Provenance

    @property
    def was_guarded(self) -> bool:
        return self.provenance is Provenance.GUARDED


def guard_with_provenance(
    value: float | None,
    market_cap: float | None,
    threshold: float = MATERIALITY_THRESHOLD,
) -> GuardedValue:
    """Apply the guard and report which branch fired.

    Args:
        value: Raw upstream value (None when absent).
        market_cap: Company market capitalisation.
        threshold: Market cap above which an exact zero is implausible.

    Returns:
        GuardedValue with the passed-through value or None.
    """
    if value is None:
        return GuardedValue(None, Provenance.MISSING)
    if value == 0:
        if (market_cap or 0.0) > threshold:
            return GuardedValue(None, Provenance.GUARDED)
        return GuardedValue(value, Provenance.ZERO)
    return GuardedValue(value, Provenance.REPORTED)


def guard(
    value: float | None,
    market_cap: float | None,
    threshold: float = MATERIALITY_THRESHOLD,
) -> float | None:
    """Return ``value``, or None when it is missing or an implausible zero."""
    return guard_with_provenance(value, market_cap, threshold).value
