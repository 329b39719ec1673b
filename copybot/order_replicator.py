"""
Order Replicator

Works a replication plan into the market slice by slice. Every iteration
reads a fresh order book, takes what the best level offers and submits a
fill-or-kill order for it. Rejections are retried against a new book; a
fill resets the retry counter so only consecutive rejections exhaust the
budget. The ledger record is always left terminal.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any

from loguru import logger

from .config import TradingConstants
from .copy_strategy import ReplicationPlan, Intent
from .ledger import TradeLedger
from .models import UserActivity


class ReplicationStatus(Enum):
    """How a replication attempt ended"""
    FILLED = "FILLED"
    PARTIAL = "PARTIAL"
    SKIPPED = "SKIPPED"
    NO_LIQUIDITY = "NO_LIQUIDITY"
    PRICE_MOVED = "PRICE_MOVED"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"


@dataclass
class ReplicationResult:
    """Result of replicating one source trade"""
    status: ReplicationStatus
    target: float = 0.0
    filled: float = 0.0
    orders_submitted: int = 0
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.status == ReplicationStatus.FILLED

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "target": self.target,
            "filled": self.filled,
            "orders": self.orders_submitted,
            "attempts": self.attempts,
        }


class OrderReplicator:
    """
    Drives the slice/retry loop for one trade at a time
    """

    def __init__(
        self,
        exchange: Any,
        ledger: TradeLedger,
        retry_limit: int,
        price_tolerance: float = 0.05,
        fill_delay: float = TradingConstants.FILL_SETTLE_DELAY,
        retry_delay: float = TradingConstants.REJECT_RETRY_DELAY
    ):
        self.exchange = exchange
        self.ledger = ledger
        self.retry_limit = retry_limit
        self.price_tolerance = price_tolerance
        self.fill_delay = fill_delay
        self.retry_delay = retry_delay

    def price_moved(self, plan: ReplicationPlan, best_price: float) -> bool:
        """True when the book has moved against the source fill beyond tolerance"""
        if plan.intent == Intent.LIQUIDATE_ALL or not plan.reference_price:
            return False
        if plan.is_buy:
            return best_price - self.price_tolerance > plan.reference_price
        return best_price + self.price_tolerance < plan.reference_price

    async def execute(self, trade: UserActivity, plan: ReplicationPlan) -> ReplicationResult:
        """
        Replicate a trade according to ``plan``

        Args:
            trade: Ledger record being processed
            plan: Side, token and target size (USDC for buys, shares for sells)

        Returns:
            ReplicationResult describing how far the trade got
        """
        tx = trade.transaction_hash

        if plan.target <= 0:
            logger.info(f"Nothing to replicate for {tx} ({plan.intent.value}: {plan.reason})")
            await self.ledger.mark_done(trade.id)
            return ReplicationResult(status=ReplicationStatus.SKIPPED)

        logger.info(
            f"Replicating {tx}: {plan.intent.value} {plan.side} {plan.target:.4f} "
            f"of {plan.token_id[:12]}... ({plan.reason})"
        )

        remaining = plan.target
        attempts = 0
        filled = 0.0
        orders = 0
        status = None

        while remaining > 0 and attempts < self.retry_limit:
            book = await self.exchange.get_order_book(plan.token_id)
            level = book.best_ask() if plan.is_buy else book.best_bid()

            if level is None:
                logger.warning(f"No {'asks' if plan.is_buy else 'bids'} for {tx}, giving up")
                status = ReplicationStatus.NO_LIQUIDITY
                break

            if self.price_moved(plan, level.price):
                logger.warning(
                    f"Price moved for {tx}: best {level.price:.4f} vs source {plan.reference_price:.4f}"
                )
                status = ReplicationStatus.PRICE_MOVED
                break

            available = level.size * level.price if plan.is_buy else level.size
            amount = min(remaining, available)
            if amount <= 0:
                break

            response = await self.exchange.submit_market_order(
                side=plan.side,
                token_id=plan.token_id,
                amount=amount,
                price=level.price
            )
            orders += 1

            if response.success:
                attempts = 0
                remaining -= amount
                if remaining < TradingConstants.DUST:
                    remaining = 0.0
                filled += amount
                logger.success(
                    f"Filled {amount:.4f} @ {level.price:.4f} for {tx}, {remaining:.4f} left"
                )
                await asyncio.sleep(self.fill_delay)
            else:
                attempts += 1
                logger.warning(
                    f"Order rejected for {tx} ({attempts}/{self.retry_limit}): "
                    f"{response.error_message or 'no reason given'}"
                )
                await asyncio.sleep(self.retry_delay)

        if attempts >= self.retry_limit:
            await self.ledger.mark_done(trade.id, bot_executed_time=attempts)
            status = ReplicationStatus.RETRIES_EXHAUSTED
            logger.error(f"Retry budget exhausted for {tx} after {orders} orders")
        else:
            await self.ledger.mark_done(trade.id)
            if status is None:
                status = ReplicationStatus.FILLED if remaining <= 0 else ReplicationStatus.PARTIAL

        return ReplicationResult(
            status=status,
            target=plan.target,
            filled=filled,
            orders_submitted=orders,
            attempts=attempts
        )
