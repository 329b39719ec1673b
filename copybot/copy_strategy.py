"""
Copy Trading Strategy

Turns a recorded source trade plus fresh position and balance snapshots
into a replication plan:
- Intent classification (open, unwind, liquidate)
- Proportional position sizing
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from .api_client import PositionSnapshot
from .config import TradingConstants
from .models import UserActivity


class Intent(Enum):
    """Replication action derived from a source trade"""
    OPEN = "buy"
    UNWIND = "sell"
    LIQUIDATE_ALL = "merge"
    UNKNOWN = "unknown"


@dataclass
class ReplicationPlan:
    """What the order replicator should do for one trade"""
    intent: Intent
    side: str
    token_id: str
    target: float
    reference_price: Optional[float] = None  # None disables the tolerance guard
    reason: str = ""

    @property
    def is_buy(self) -> bool:
        return self.side == TradingConstants.BUY


def classify_intent(
    side: str,
    my_position: Optional[PositionSnapshot],
    user_position: Optional[PositionSnapshot]
) -> Intent:
    """
    Classify a source trade

    BUY opens, SELL unwinds proportionally. Any other signal liquidates the
    bot's holding when the source has left the market (or when it is an
    explicit MERGE); other sides are reported as UNKNOWN and never traded.
    """
    if side == TradingConstants.BUY:
        return Intent.OPEN
    if side == TradingConstants.SELL:
        return Intent.UNWIND
    if my_position and not user_position:
        return Intent.LIQUIDATE_ALL
    if side == TradingConstants.MERGE:
        return Intent.LIQUIDATE_ALL
    return Intent.UNKNOWN


class PositionSizer:
    """
    Calculates how much of a source trade the bot replicates
    """

    @staticmethod
    def open_target(usdc_size: float, my_balance: float, user_balance: float) -> float:
        """
        USDC to spend copying a buy

        The bot spends its share of the source's post-trade capital,
        never more than its own balance.
        """
        denominator = user_balance + usdc_size
        if denominator <= 0 or my_balance <= 0:
            return 0.0
        ratio = my_balance / denominator
        return min(usdc_size * ratio, my_balance)

    @staticmethod
    def unwind_target(
        trade_size: float,
        my_position: Optional[PositionSnapshot],
        user_position: Optional[PositionSnapshot]
    ) -> float:
        """Shares to sell mirroring the fraction of its position the source sold"""
        if not my_position:
            return 0.0
        if not user_position:
            return my_position.size
        denominator = user_position.size + trade_size
        if denominator <= 0:
            return my_position.size
        return my_position.size * (trade_size / denominator)

    @staticmethod
    def liquidate_target(my_position: Optional[PositionSnapshot]) -> float:
        return my_position.size if my_position else 0.0

    def plan(
        self,
        trade: UserActivity,
        intent: Intent,
        my_position: Optional[PositionSnapshot],
        user_position: Optional[PositionSnapshot],
        my_balance: float,
        user_balance: float
    ) -> ReplicationPlan:
        """Build the replication plan for a classified trade"""
        if intent == Intent.OPEN:
            return ReplicationPlan(
                intent=intent,
                side=TradingConstants.BUY,
                token_id=trade.asset,
                target=self.open_target(trade.usdc_size, my_balance, user_balance),
                reference_price=trade.price,
                reason=f"ratio of {my_balance:.2f} / ({user_balance:.2f} + {trade.usdc_size:.2f})"
            )

        if intent == Intent.UNWIND:
            return ReplicationPlan(
                intent=intent,
                side=TradingConstants.SELL,
                token_id=trade.asset,
                target=self.unwind_target(trade.size, my_position, user_position),
                reference_price=trade.price or None,
                reason="source exited" if not user_position else "proportional unwind"
            )

        if intent == Intent.LIQUIDATE_ALL:
            return ReplicationPlan(
                intent=intent,
                side=TradingConstants.SELL,
                token_id=my_position.asset if my_position else trade.asset,
                target=self.liquidate_target(my_position),
                reason="source left the market"
            )

        logger.warning(
            f"Unrecognized side {trade.side!r} on {trade.transaction_hash}, nothing to replicate"
        )
        return ReplicationPlan(
            intent=intent,
            side=trade.side,
            token_id=trade.asset,
            target=0.0,
            reason=f"unrecognized side {trade.side!r}"
        )
