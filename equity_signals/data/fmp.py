"""FMP snapshot provider.

Fetches the sub-documents of a ``RawFinancialSnapshot`` from the FMP
/stable API concurrently. Each request retries with exponential backoff
on 429/5xx. Only the profile is mandatory; any other sub-document that
cannot be fetched is left empty and recorded in ``snapshot.degraded``.
"""

from __future__ import annotations

import datetime
import logging
import os
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Protocol

import requests

from equity_signals.config import ProviderConfig
from equity_signals.data.models import (
    DividendPaymentRecord,
    RawFinancialSnapshot,
    number,
)
from equity_signals.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

PROFILE = "profile"

_ANNUAL = {"period": "annual", "limit": 1}

# snapshot field -> (FMP endpoint, extra query params)
_ENDPOINTS: dict[str, tuple[str, dict[str, Any]]] = {
    PROFILE: ("profile", {}),
    "quote": ("quote", {}),
    "income": ("income-statement", _ANNUAL),
    "balance": ("balance-sheet-statement", _ANNUAL),
    "cashflow": ("cash-flow-statement", _ANNUAL),
    "key_metrics": ("key-metrics", _ANNUAL),
    "dividends": ("dividends", {}),
}


class SnapshotProvider(Protocol):
    """Interface for loading a raw financial snapshot."""

    def fetch_snapshot(self, symbol: str) -> RawFinancialSnapshot:
        """Fetch every sub-document for one symbol.

        Args:
            symbol: Ticker symbol (e.g. "O").

        Returns:
            Snapshot; sub-documents that failed are empty and listed in
            ``degraded``.

        Raises:
            UpstreamUnavailableError: If the profile cannot be fetched.
        """
        ...


def first_record(payload: Any) -> dict[str, Any]:
    """Normalise an FMP payload to a single record.

    FMP returns either a list of records or a bare object; anything else
    (None, an empty list, an error string) becomes an empty record.
    """
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    return dict(payload) if isinstance(payload, Mapping) else {}


def parse_dividends(payload: Any) -> tuple[DividendPaymentRecord, ...]:
    """Parse a dividend history payload.

    Accepts either a list of payments or ``{"historical": [...]}``.
    The amount is ``adjDividend``, then ``dividend``, then 0. Entries
    without a readable date are skipped.
    """
    if isinstance(payload, Mapping):
        payload = payload.get("historical")
    if not isinstance(payload, list):
        return ()

    records: list[DividendPaymentRecord] = []
    for item in payload:
        if not isinstance(item, Mapping):
            continue
        try:
            paid = datetime.date.fromisoformat(str(item.get("date"))[:10])
        except ValueError:
            logger.debug("skipping dividend with unreadable date: %r", item.get("date"))
            continue
        amount = number(item, "adjDividend", "dividend", document="dividends") or 0.0
        records.append(DividendPaymentRecord(date=paid, amount=amount))
    return tuple(records)


class FMPSnapshotProvider:
    """Load snapshots from the FMP /stable endpoints.

    Args:
        api_key: FMP API key (from FMP_API_KEY environment variable).
        config: Base URL, timeout, worker count and retry settings.
    """

    def __init__(self, api_key: str, config: ProviderConfig | None = None) -> None:
        self._api_key = api_key
        self._config = config or ProviderConfig()

    def fetch_snapshot(self, symbol: str) -> RawFinancialSnapshot:
        """Fetch all sub-documents for ``symbol`` concurrently.

        Args:
            symbol: Ticker symbol.

        Returns:
            RawFinancialSnapshot. The profile may be empty if FMP has no
            record for the symbol.

        Raises:
            UpstreamUnavailableError: If the profile request fails.
        """
        payloads: dict[str, Any] = {}
        degraded: list[str] = []

        with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
            futures = {
                executor.submit(
                    self._get, endpoint, {"symbol": symbol, **params}
                ): name
                for name, (endpoint, params) in _ENDPOINTS.items()
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    payloads[name] = future.result()
                except UpstreamUnavailableError as e:
                    if name == PROFILE:
                        raise
                    logger.warning(
                        "%s: %s unavailable, continuing without it: %s",
                        symbol, name, e,
                    )
                    degraded.append(name)

        return RawFinancialSnapshot(
            symbol=symbol,
            profile=first_record(payloads.get(PROFILE)),
            quote=first_record(payloads.get("quote")),
            income=first_record(payloads.get("income")),
            balance=first_record(payloads.get("balance")),
            cashflow=first_record(payloads.get("cashflow")),
            key_metrics=first_record(payloads.get("key_metrics")),
            dividends=parse_dividends(payloads.get("dividends")),
            degraded=tuple(sorted(degraded)),
        )

    def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        """GET one endpoint with retry logic.

        Args:
            endpoint: Path below the base URL (e.g. "profile").
            params: Query parameters (without the API key).

        Returns:
            Decoded JSON payload.

        Raises:
            UpstreamUnavailableError: After all attempts fail.
        """
        config = self._config
        url = f"{config.base_url}/{endpoint}"
        query = {**params, "apikey": self._api_key}
        last_error = "no attempts made"

        for attempt in range(config.max_retries):
            sleep_time = config.backoff_factor * (2**attempt)
            try:
                response = requests.get(url, params=query, timeout=config.request_timeout)

                if response.status_code in config.retry_status_codes:
                    last_error = f"HTTP {response.status_code}"
                    if attempt < config.max_retries - 1:
                        logger.warning(
                            "FMP %s returned %d, retrying in %.1fs "
                            "(attempt %d/%d)",
                            endpoint,
                            response.status_code,
                            sleep_time,
                            attempt + 1,
                            config.max_retries,
                        )
                        time.sleep(sleep_time)
                    continue

                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                last_error = str(e)
                if attempt < config.max_retries - 1:
                    logger.warning(
                        "FMP %s request failed: %s. Retrying in %.1fs "
                        "(attempt %d/%d)",
                        endpoint,
                        e,
                        sleep_time,
                        attempt + 1,
                        config.max_retries,
                    )
                    time.sleep(sleep_time)

        logger.error(
            "FMP %s failed after %d attempts: %s",
            endpoint, config.max_retries, last_error,
        )
        raise UpstreamUnavailableError(
            f"FMP {endpoint} failed after {config.max_retries} attempts: {last_error}"
        )


def auto_select_provider(config: ProviderConfig | None = None) -> FMPSnapshotProvider:
    """Build the FMP provider from the FMP_API_KEY environment variable.

    Raises:
        UpstreamUnavailableError: If FMP_API_KEY is not set.
    """
    api_key = os.environ.get("FMP_API_KEY")
    if not api_key:
        raise UpstreamUnavailableError("FMP_API_KEY is not set")
    logger.info("Using FMPSnapshotProvider (FMP_API_KEY found)")
    return FMPSnapshotProvider(api_key=api_key, config=config)
