"""Data loading orchestration."""

from __future__ import annotations

import logging

from equity_signals.data.fmp import SnapshotProvider, auto_select_provider
from equity_signals.data.models import DividendPaymentRecord, RawFinancialSnapshot
from equity_signals.errors import SymbolNotFoundError

logger = logging.getLogger(__name__)

__all__ = [
    "DividendPaymentRecord",
    "RawFinancialSnapshot",
    "SnapshotProvider",
    "auto_select_provider",
    "load_snapshot",
]


def load_snapshot(symbol: str, provider: SnapshotProvider) -> RawFinancialSnapshot:
    """Load a snapshot and make sure the symbol exists upstream.

    Args:
        symbol: Ticker symbol.
        provider: Snapshot provider.

    Returns:
        Populated RawFinancialSnapshot.

    Raises:
        SymbolNotFoundError: If the provider has no profile for the symbol.
        UpstreamUnavailableError: If the profile fetch failed.
    """
    snapshot = provider.fetch_snapshot(symbol)
    if not snapshot.profile:
        raise SymbolNotFoundError(symbol)
    if snapshot.degraded:
        logger.info(
            "%s: loaded with degraded sub-documents: %s",
            symbol, ", ".join(snapshot.degraded),
        )
    return snapshot
