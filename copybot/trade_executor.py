"""
Trade Execution Module

Consumer side of the replication engine: reads pending trades from the
ledger, classifies and sizes each one against fresh positions and
balances, and hands it to the order replicator.
"""

import asyncio
from typing import Optional, List, Any

from loguru import logger
from rich.console import Console

from .api_client import PolymarketDataClient, find_position
from .config import Settings
from .copy_strategy import PositionSizer, classify_intent
from .ledger import TradeLedger
from .models import UserActivity
from .order_replicator import OrderReplicator, ReplicationResult


class TradeExecutor:
    """
    Processes pending ledger records one at a time

    Only one executor may run against a ledger.
    """

    def __init__(
        self,
        settings: Settings,
        ledger: TradeLedger,
        data_client: PolymarketDataClient,
        balances: Any,
        replicator: OrderReplicator,
        console: Optional[Console] = None
    ):
        self.settings = settings
        self.ledger = ledger
        self.data_client = data_client
        self.balances = balances
        self.replicator = replicator
        self.sizer = PositionSizer()
        self._console = console
        self._status = None
        self._stop_event = asyncio.Event()

    async def read_pending(self) -> List[UserActivity]:
        """Snapshot of trades eligible for processing"""
        return await self.ledger.pending(self.settings.retry_limit)

    async def process_trade(self, trade: UserActivity) -> ReplicationResult:
        """Classify, size and replicate a single trade"""
        my_positions = await self.data_client.get_positions(self.settings.proxy_wallet)
        user_positions = await self.data_client.get_positions(self.settings.user_address)

        my_position = find_position(my_positions, trade.condition_id)
        user_position = find_position(user_positions, trade.condition_id)

        my_balance = await self.balances.get_usdc_balance(self.settings.proxy_wallet)
        user_balance = await self.balances.get_usdc_balance(self.settings.user_address)

        intent = classify_intent(trade.side, my_position, user_position)
        plan = self.sizer.plan(
            trade, intent, my_position, user_position, my_balance, user_balance
        )
        return await self.replicator.execute(trade, plan)

    async def run_cycle(self) -> int:
        """
        Process every currently pending trade

        Returns:
            Number of trades processed
        """
        batch = await self.read_pending()
        if not batch:
            self._show_waiting()
            return 0

        self._hide_waiting()
        logger.info(f"{len(batch)} trades to copy")

        for trade in batch:
            logger.info(f"Copying trade {trade.transaction_hash}")
            try:
                result = await self.process_trade(trade)
                logger.info(f"Done {trade.transaction_hash}: {result.to_dict()}")
            except Exception as e:
                logger.exception(f"Trade {trade.transaction_hash} failed: {e}")
                await self.ledger.mark_done(
                    trade.id, bot_executed_time=self.settings.retry_limit
                )

        return len(batch)

    async def run(self):
        """Execute pending trades until stopped"""
        logger.info(f"Executor started, copying into {self.settings.proxy_wallet}")

        while not self._stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                logger.exception(f"Executor cycle failed: {e}")

            await self._wait(self.settings.executor_delay)

        self._hide_waiting()
        logger.info("Trade executor stopped")

    async def _wait(self, seconds: float):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _show_waiting(self):
        if self._console is None:
            logger.debug("Waiting for trades")
            return
        if self._status is None:
            self._status = self._console.status("Waiting for trades...")
            self._status.start()

    def _hide_waiting(self):
        if self._status is not None:
            self._status.stop()
            self._status = None

    def stop(self):
        """Stop executing"""
        self._stop_event.set()
