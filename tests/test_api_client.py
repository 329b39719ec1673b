"""
Tests for the data API client and the shared fetch helper.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from copybot.api_client import (
    Activity, PositionSnapshot, PolymarketDataClient, fetch_data,
    find_position, normalize_timestamp,
)
from tests.conftest import SOURCE, make_position


class _Response:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.error:
            raise self.error

    async def json(self, content_type=None):
        return self.payload


class TestFetchData:
    """Retry and degrade behaviour of fetch_data."""

    @pytest.mark.asyncio
    async def test_returns_payload(self):
        session = MagicMock()
        session.get.return_value = _Response([{"type": "TRADE"}])

        data = await fetch_data(session, "https://example.test/activities", delay=0)

        assert data == [{"type": "TRADE"}]
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_timeouts_then_succeeds(self):
        session = MagicMock()
        session.get.side_effect = [
            asyncio.TimeoutError(),
            aiohttp.ServerDisconnectedError(),
            _Response([1, 2]),
        ]

        data = await fetch_data(session, "https://example.test/x", retries=3, delay=0)

        assert data == [1, 2]
        assert session.get.call_count == 3

    @pytest.mark.asyncio
    async def test_exhaustion_returns_empty(self):
        session = MagicMock()
        session.get.side_effect = asyncio.TimeoutError()

        data = await fetch_data(session, "https://example.test/x", retries=3, delay=0)

        assert data == []
        assert session.get.call_count == 3

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self):
        session = MagicMock()
        error = aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=500)
        session.get.return_value = _Response(error=error)

        data = await fetch_data(session, "https://example.test/x", retries=3, delay=0)

        assert data == []
        assert session.get.call_count == 1


class TestParsing:
    """API payload parsing."""

    def test_activity_from_dict(self):
        activity = Activity.from_dict({
            "type": "TRADE",
            "transactionHash": "0xabc",
            "conditionId": "cond-1",
            "asset": 12345,
            "side": "BUY",
            "size": "100",
            "usdcSize": "60.5",
            "price": "0.605",
            "timestamp": 1700000000,
            "title": "Will it rain?",
        })

        assert activity.transaction_hash == "0xabc"
        assert activity.asset == "12345"
        assert activity.size == 100.0
        assert activity.usdc_size == 60.5
        assert activity.price == 0.605
        assert activity.timestamp == 1700000000

    def test_missing_fields_default(self):
        activity = Activity.from_dict({"type": "REDEEM"})
        assert activity.side == ""
        assert activity.size == 0.0
        assert activity.timestamp == 0

    def test_millisecond_timestamps_are_normalized(self):
        assert normalize_timestamp(1700000000123) == 1700000000
        assert normalize_timestamp(1700000000) == 1700000000
        assert normalize_timestamp(None) == 0

    def test_find_position_by_condition(self):
        positions = [make_position(5, condition_id="other"), make_position(20)]
        assert find_position(positions, "cond-1").size == 20
        assert find_position(positions, "missing") is None


class TestDataClient:
    """PolymarketDataClient endpoints."""

    @pytest.fixture
    def client(self, settings):
        client = PolymarketDataClient(settings)
        client._get_session = AsyncMock(return_value=MagicMock())
        return client

    @pytest.mark.asyncio
    async def test_get_activities(self, client, monkeypatch):
        fetch = AsyncMock(return_value=[{"type": "TRADE", "transactionHash": "0x1"}, "junk"])
        monkeypatch.setattr("copybot.api_client.fetch_data", fetch)

        activities = await client.get_activities(SOURCE)

        assert [a.transaction_hash for a in activities] == ["0x1"]
        assert fetch.call_args.kwargs["params"] == {"user": SOURCE}
        assert fetch.call_args.args[1].endswith("/activities")

    @pytest.mark.asyncio
    async def test_non_list_payload_is_empty(self, client, monkeypatch):
        monkeypatch.setattr("copybot.api_client.fetch_data", AsyncMock(return_value={"error": "x"}))

        assert await client.get_activities(SOURCE) == []
        assert await client.get_positions(SOURCE) == []

    @pytest.mark.asyncio
    async def test_get_positions(self, client, monkeypatch):
        monkeypatch.setattr(
            "copybot.api_client.fetch_data",
            AsyncMock(return_value=[{"conditionId": "cond-1", "asset": "token-yes", "size": 12.5}]),
        )

        positions = await client.get_positions(SOURCE)

        assert positions == [PositionSnapshot(condition_id="cond-1", asset="token-yes", size=12.5)]
