"""
Trade Monitor Module

Producer side of the replication engine: polls the source account's
activity feed and records new, fresh trades in the ledger as pending work.
"""

import asyncio
import time
from typing import Optional, List

from loguru import logger

from .api_client import PolymarketDataClient
from .config import Settings, TradingConstants
from .ledger import TradeLedger
from .models import UserActivity


class TradeMonitor:
    """
    Polls the source account and appends unseen trades to the ledger
    """

    def __init__(
        self,
        settings: Settings,
        ledger: TradeLedger,
        data_client: PolymarketDataClient
    ):
        self.settings = settings
        self.ledger = ledger
        self.data_client = data_client
        self._stop_event = asyncio.Event()

    async def initialize(self):
        """Report what the ledger already knows about the source account"""
        known = await self.ledger.count()
        logger.info(f"Ledger holds {known} trades for {self.settings.user_address}")

    def cutoff(self, now: Optional[float] = None) -> int:
        """Oldest timestamp (unix seconds) still worth copying"""
        now = time.time() if now is None else now
        return int(now - self.settings.too_old_timestamp * 60 * 60)

    async def poll_once(self, now: Optional[float] = None) -> List[UserActivity]:
        """
        Run one discovery cycle

        Args:
            now: Current unix time, defaults to the wall clock

        Returns:
            Records inserted during this cycle
        """
        activities = await self.data_client.get_activities(self.settings.user_address)
        trades = [a for a in activities if a.type == TradingConstants.ACTIVITY_TRADE]
        if not trades:
            return []

        seen = await self.ledger.existing_hashes()
        cutoff = self.cutoff(now)

        inserted = []
        for trade in trades:
            if not trade.transaction_hash or trade.transaction_hash in seen:
                continue
            if trade.timestamp < cutoff:
                continue

            record = await self.ledger.insert(trade)
            seen.add(trade.transaction_hash)
            if record is not None:
                inserted.append(record)
                logger.info(
                    f"New trade {trade.transaction_hash}: {trade.side} "
                    f"{trade.size}@{trade.price} ({trade.title or trade.condition_id})"
                )

        return inserted

    async def run(self):
        """Poll until stopped"""
        logger.info(
            f"Monitoring {self.settings.user_address} every {self.settings.fetch_interval}s"
        )

        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except Exception as e:
                logger.exception(f"Error fetching trades: {e}")

            await self._wait(self.settings.fetch_interval)

        logger.info("Trade monitor stopped")

    async def _wait(self, seconds: float):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def stop(self):
        """Stop monitoring"""
        self._stop_event.set()
