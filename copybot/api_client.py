"""
Polymarket Data API Client Module

Reads a wallet's trade activity and open positions from the public data API.
All reads go through ``fetch_data``, which retries transient network failures
with a capped backoff and degrades to an empty result instead of raising.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Dict, List, Any

import aiohttp
from loguru import logger
from ratelimit import limits, sleep_and_retry

from .config import get_settings, Settings, APIEndpoints


REQUEST_TIMEOUT = 10
DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}

# Errors worth another attempt; anything else fails the fetch immediately
TRANSIENT_ERRORS = (asyncio.TimeoutError, aiohttp.ClientConnectionError)


@dataclass
class Activity:
    """One entry of a wallet's activity feed"""
    type: str
    transaction_hash: str
    condition_id: str
    asset: str
    side: str
    size: float
    usdc_size: float
    price: float
    timestamp: int
    title: str = ""
    slug: str = ""
    outcome: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "Activity":
        """Create Activity from API response"""
        return cls(
            type=data.get("type", ""),
            transaction_hash=data.get("transactionHash", ""),
            condition_id=data.get("conditionId", ""),
            asset=str(data.get("asset", "")),
            side=data.get("side") or "",
            size=float(data.get("size") or 0),
            usdc_size=float(data.get("usdcSize") or 0),
            price=float(data.get("price") or 0),
            timestamp=normalize_timestamp(data.get("timestamp")),
            title=data.get("title") or "",
            slug=data.get("slug") or "",
            outcome=data.get("outcome") or "",
        )


@dataclass
class PositionSnapshot:
    """A wallet's holding in one market outcome"""
    condition_id: str
    asset: str
    size: float
    avg_price: float = 0.0
    cur_price: float = 0.0
    title: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "PositionSnapshot":
        return cls(
            condition_id=data.get("conditionId", ""),
            asset=str(data.get("asset", "")),
            size=float(data.get("size") or 0),
            avg_price=float(data.get("avgPrice") or 0),
            cur_price=float(data.get("curPrice") or 0),
            title=data.get("title") or "",
        )


def normalize_timestamp(value: Any) -> int:
    """Unix seconds; millisecond values are scaled down"""
    if not value:
        return 0
    ts = int(float(value))
    if ts > 10**12:
        ts //= 1000
    return ts


def find_position(
    positions: List[PositionSnapshot],
    condition_id: str
) -> Optional[PositionSnapshot]:
    """First position held in the given market, if any"""
    for position in positions:
        if position.condition_id == condition_id:
            return position
    return None


@sleep_and_retry
@limits(calls=10, period=1)  # Rate limit: 10 calls per second
async def _get_json(
    session: aiohttp.ClientSession,
    url: str,
    params: Optional[Dict] = None
) -> Any:
    """Single GET returning the decoded JSON body"""
    async with session.get(url, params=params) as response:
        response.raise_for_status()
        return await response.json(content_type=None)


async def fetch_data(
    session: aiohttp.ClientSession,
    url: str,
    params: Optional[Dict] = None,
    retries: int = 3,
    delay: float = 2.0,
    backoff: float = 1.5
) -> Any:
    """
    GET a JSON document with bounded retry

    Timeouts and connection failures are retried up to ``retries`` attempts,
    sleeping ``delay`` seconds between attempts and growing the delay by
    ``backoff``. Any other error, or running out of attempts, returns an
    empty list so callers treat "fetch failed" exactly like "no data".
    """
    for attempt in range(1, retries + 1):
        try:
            return await _get_json(session, url, params)
        except TRANSIENT_ERRORS as e:
            if attempt == retries:
                logger.warning(f"Giving up on {url} after {attempt} attempts: {e!r}")
                return []
            logger.debug(f"Transient error on {url} (attempt {attempt}/{retries}): {e!r}")
            await asyncio.sleep(delay)
            delay *= backoff
        except (aiohttp.ClientError, ValueError) as e:
            logger.warning(f"Request to {url} failed: {e!r}")
            return []
    return []


class PolymarketDataClient:
    """
    Client for the Polymarket data API

    Serves activity and position reads for any wallet address
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.data_api_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
                headers=DEFAULT_HEADERS
            )
        return self._session

    async def close(self):
        """Close the HTTP session"""
        if self._session and not self._session.closed:
            await self._session.close()

    async def get_activities(self, address: str) -> List[Activity]:
        """
        Get recent activity for a wallet

        Args:
            address: Wallet address

        Returns:
            List of Activity objects, newest first as served by the API
        """
        session = await self._get_session()
        data = await fetch_data(
            session,
            f"{self.base_url}{APIEndpoints.ACTIVITIES}",
            params={"user": address}
        )
        if not isinstance(data, list):
            return []
        return [Activity.from_dict(a) for a in data if isinstance(a, dict)]

    async def get_positions(self, address: str) -> List[PositionSnapshot]:
        """Get open positions for a wallet"""
        session = await self._get_session()
        data = await fetch_data(
            session,
            f"{self.base_url}{APIEndpoints.POSITIONS}",
            params={"user": address}
        )
        if not isinstance(data, list):
            return []
        return [PositionSnapshot.from_dict(p) for p in data if isinstance(p, dict)]
