"""Tests for equity_signals.data.fmp and snapshot loading."""

from __future__ import annotations

import datetime
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from equity_signals.config import ProviderConfig
from equity_signals.data import load_snapshot
from equity_signals.data.fmp import (
    FMPSnapshotProvider,
    auto_select_provider,
    first_record,
    parse_dividends,
)
from equity_signals.data.models import DividendPaymentRecord, RawFinancialSnapshot
from equity_signals.errors import SymbolNotFoundError, UpstreamUnavailableError

_PAYLOADS: dict[str, Any] = {
    "profile": [{"symbol": "O", "companyName": "Realty Income", "marketCap": 5e10}],
    "quote": [{"symbol": "O", "price": 57.5}],
    "income-statement": [{"date": "2024-12-31", "netIncome": 8.6e8}],
    "balance-sheet-statement": [{"totalDebt": 2.6e10}],
    "cash-flow-statement": [{"operatingCashFlow": 3.6e9}],
    "key-metrics": [{"ffoPerShare": 4.2}],
    "dividends": [
        {"date": "2024-12-02", "adjDividend": 0.2635, "dividend": 0.2635},
        {"date": "2024-11-01", "dividend": 0.2635},
    ],
}


def _response(payload: Any, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _routed_get(
    failing: dict[str, Any] | None = None,
) -> Any:
    """Build a requests.get stand-in that answers by endpoint name.

    ``failing`` maps an endpoint to a status code or an exception to
    return or raise on every call.
    """
    failing = failing or {}

    def mock_get(url: str, *args: Any, **kwargs: Any) -> MagicMock:
        endpoint = url.rsplit("/", 1)[1]
        failure = failing.get(endpoint)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return _response(None, failure)
        return _response(_PAYLOADS[endpoint])

    return mock_get


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

class TestFirstRecord:

    def test_list(self) -> None:
        assert first_record([{"a": 1}, {"a": 2}]) == {"a": 1}

    def test_bare_object(self) -> None:
        assert first_record({"a": 1}) == {"a": 1}

    @pytest.mark.parametrize("payload", [None, [], "Error Message", 42])
    def test_empty(self, payload: Any) -> None:
        assert first_record(payload) == {}


class TestParseDividends:

    def test_list_payload(self) -> None:
        records = parse_dividends(_PAYLOADS["dividends"])
        assert records == (
            DividendPaymentRecord(datetime.date(2024, 12, 2), 0.2635),
            DividendPaymentRecord(datetime.date(2024, 11, 1), 0.2635),
        )

    def test_historical_payload(self) -> None:
        records = parse_dividends({"historical": [{"date": "2024-01-15", "dividend": 1.0}]})
        assert records == (DividendPaymentRecord(datetime.date(2024, 1, 15), 1.0),)

    def test_adjusted_amount_preferred(self) -> None:
        records = parse_dividends([{"date": "2024-01-15", "adjDividend": 0.5, "dividend": 1.0}])
        assert records[0].amount == 0.5

    def test_missing_amount_is_zero(self) -> None:
        records = parse_dividends([{"date": "2024-01-15"}])
        assert records[0].amount == 0.0

    def test_bad_dates_skipped(self) -> None:
        records = parse_dividends(
            [{"date": "soon", "dividend": 1.0}, {"dividend": 1.0}, "junk"]
        )
        assert records == ()

    @pytest.mark.parametrize("payload", [None, {}, "error"])
    def test_empty(self, payload: Any) -> None:
        assert parse_dividends(payload) == ()


# ---------------------------------------------------------------------------
# FMPSnapshotProvider
# ---------------------------------------------------------------------------

class TestFMPSnapshotProvider:

    def test_fetches_every_sub_document(self) -> None:
        provider = FMPSnapshotProvider(api_key="test-key")

        with patch("equity_signals.data.fmp.requests.get", side_effect=_routed_get()):
            snapshot = provider.fetch_snapshot("O")

        assert snapshot.symbol == "O"
        assert snapshot.profile["companyName"] == "Realty Income"
        assert snapshot.price == 57.5
        assert snapshot.income["netIncome"] == 8.6e8
        assert snapshot.balance["totalDebt"] == 2.6e10
        assert snapshot.cashflow["operatingCashFlow"] == 3.6e9
        assert snapshot.key_metrics["ffoPerShare"] == 4.2
        assert len(snapshot.dividends) == 2
        assert snapshot.degraded == ()

    def test_request_parameters(self) -> None:
        provider = FMPSnapshotProvider(
            api_key="test-key", config=ProviderConfig(base_url="https://example.test")
        )
        mock_get = MagicMock(side_effect=_routed_get())

        with patch("equity_signals.data.fmp.requests.get", mock_get):
            provider.fetch_snapshot("O")

        calls = {c.args[0]: c.kwargs["params"] for c in mock_get.call_args_list}
        assert calls["https://example.test/profile"] == {
            "symbol": "O",
            "apikey": "test-key",
        }
        assert calls["https://example.test/income-statement"] == {
            "symbol": "O",
            "period": "annual",
            "limit": 1,
            "apikey": "test-key",
        }

    def test_retries_on_server_error(self) -> None:
        provider = FMPSnapshotProvider(api_key="test-key")
        ok_response = _response([{"ffoPerShare": 4.2}])
        error_response = _response(None, 503)

        with patch(
            "equity_signals.data.fmp.requests.get",
            side_effect=[error_response, ok_response],
        ), patch("equity_signals.data.fmp.time.sleep") as mock_sleep:
            result = provider._get("key-metrics", {"symbol": "O"})

        assert result == [{"ffoPerShare": 4.2}]
        mock_sleep.assert_called_once_with(1.0)

    def test_raises_after_max_retries(self) -> None:
        provider = FMPSnapshotProvider(api_key="test-key")

        with patch(
            "equity_signals.data.fmp.requests.get",
            return_value=_response(None, 429),
        ) as mock_get, patch("equity_signals.data.fmp.time.sleep") as mock_sleep:
            with pytest.raises(UpstreamUnavailableError, match="HTTP 429"):
                provider._get("quote", {"symbol": "O"})

        assert mock_get.call_count == 3
        # No sleep after the final attempt
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    def test_retries_on_connection_error(self) -> None:
        provider = FMPSnapshotProvider(api_key="test-key")

        with patch(
            "equity_signals.data.fmp.requests.get",
            side_effect=[requests.ConnectionError("reset"), _response([])],
        ), patch("equity_signals.data.fmp.time.sleep"):
            assert provider._get("quote", {"symbol": "O"}) == []

    def test_failed_sub_document_is_degraded(self) -> None:
        provider = FMPSnapshotProvider(api_key="test-key")
        mock_get = _routed_get(
            {"key-metrics": requests.Timeout("slow"), "dividends": 500}
        )

        with patch(
            "equity_signals.data.fmp.requests.get", side_effect=mock_get
        ), patch("equity_signals.data.fmp.time.sleep"):
            snapshot = provider.fetch_snapshot("O")

        assert snapshot.degraded == ("dividends", "key_metrics")
        assert dict(snapshot.key_metrics) == {}
        assert snapshot.dividends == ()
        assert snapshot.profile["companyName"] == "Realty Income"

    def test_profile_failure_raises(self) -> None:
        provider = FMPSnapshotProvider(api_key="test-key")

        with patch(
            "equity_signals.data.fmp.requests.get",
            side_effect=_routed_get({"profile": 502}),
        ), patch("equity_signals.data.fmp.time.sleep"):
            with pytest.raises(UpstreamUnavailableError):
                provider.fetch_snapshot("O")


# ---------------------------------------------------------------------------
# load_snapshot / auto_select_provider
# ---------------------------------------------------------------------------

class TestLoadSnapshot:

    def test_empty_profile_is_not_found(self) -> None:
        provider = MagicMock()
        provider.fetch_snapshot.return_value = RawFinancialSnapshot(symbol="ZZZZ")

        with pytest.raises(SymbolNotFoundError) as exc_info:
            load_snapshot("ZZZZ", provider)
        assert exc_info.value.symbol == "ZZZZ"

    def test_returns_snapshot(self) -> None:
        snapshot = RawFinancialSnapshot(
            symbol="O", profile={"companyName": "Realty Income"}, degraded=("quote",)
        )
        provider = MagicMock()
        provider.fetch_snapshot.return_value = snapshot

        assert load_snapshot("O", provider) is snapshot
        provider.fetch_snapshot.assert_called_once_with("O")


class TestAutoSelectProvider:

    def test_selects_fmp_when_key_present(self) -> None:
        with patch.dict("os.environ", {"FMP_API_KEY": "test-key"}):
            provider = auto_select_provider()
        assert isinstance(provider, FMPSnapshotProvider)

    def test_raises_when_no_key(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(UpstreamUnavailableError, match="FMP_API_KEY"):
                auto_select_provider()
