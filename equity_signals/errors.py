"""Exceptions raised by the valuation pipeline.

Missing inputs and undefined formulas are not errors: components return
None for those. Only the cases below propagate to callers.
"""

from __future__ import annotations


class EquitySignalsError(Exception):
    """Base class for all package errors."""


class SymbolNotFoundError(EquitySignalsError):
    """The upstream provider has no profile record for the symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"{symbol}: no profile record")
        self.symbol = symbol


class UpstreamUnavailableError(EquitySignalsError):
    """A mandatory sub-document (the profile) could not be fetched."""


class ValuationComputationError(EquitySignalsError):
    """Unexpected failure inside a valuation component.

    Attributes:
        component: Name of the component that failed.
        detail: Diagnostic detail (offending field, raw value, cause).
    """

    def __init__(self, component: str, detail: str) -> None:
        super().__init__(f"{component}: {detail}")
        self.component = component
        self.detail = detail


class MalformedPayloadError(ValuationComputationError):
    """An upstream field holds a value that cannot be read as a number."""

    def __init__(self, document: str, key: str, value: object) -> None:
        super().__init__(document, f"field {key!r} is not numeric: {value!r}")
        self.key = key
        self.value = value
