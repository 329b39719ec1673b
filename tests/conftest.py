"""
Pytest configuration and shared fixtures.
"""

from typing import List, Optional, Tuple

import pytest
import pytest_asyncio

from copybot.api_client import Activity, PositionSnapshot
from copybot.config import Settings
from copybot.exchange import OrderBook, BookLevel, OrderResponse
from copybot.ledger import TradeLedger

SOURCE = "0x1111111111111111111111111111111111111111"
BOT = "0x2222222222222222222222222222222222222222"
NOW = 1_700_000_000


def make_activity(
    tx: str = "0xaaa",
    side: str = "BUY",
    size: float = 100.0,
    usdc_size: float = 60.0,
    price: float = 0.60,
    timestamp: int = NOW - 60,
    condition_id: str = "cond-1",
    asset: str = "token-yes",
    type: str = "TRADE",
) -> Activity:
    return Activity(
        type=type,
        transaction_hash=tx,
        condition_id=condition_id,
        asset=asset,
        side=side,
        size=size,
        usdc_size=usdc_size,
        price=price,
        timestamp=timestamp,
        title="Will it rain?",
    )


def make_position(size: float, condition_id: str = "cond-1", asset: str = "token-yes") -> PositionSnapshot:
    return PositionSnapshot(condition_id=condition_id, asset=asset, size=size)


def make_book(
    bids: Optional[List[Tuple[float, float]]] = None,
    asks: Optional[List[Tuple[float, float]]] = None,
    token_id: str = "token-yes",
) -> OrderBook:
    return OrderBook(
        token_id=token_id,
        bids=[BookLevel(price=p, size=s) for p, s in (bids or [])],
        asks=[BookLevel(price=p, size=s) for p, s in (asks or [])],
    )


class FakeExchange:
    """Scripted order book and order responses."""

    def __init__(self, books=None, responses=None):
        self.books = list(books or [make_book()])
        self.responses = list(responses or [])
        self.book_requests = []
        self.orders = []

    async def get_order_book(self, token_id):
        self.book_requests.append(token_id)
        if len(self.books) > 1:
            return self.books.pop(0)
        return self.books[0]

    async def submit_market_order(self, side, token_id, amount, price):
        self.orders.append({"side": side, "token_id": token_id, "amount": amount, "price": price})
        success = self.responses.pop(0) if self.responses else True
        return OrderResponse(
            success=success,
            order_id=f"order-{len(self.orders)}" if success else None,
            error_message=None if success else "order couldn't be fully filled",
        )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        user_address=SOURCE,
        proxy_wallet=BOT,
        private_key="",
        fetch_interval=60,
        executor_delay=60,
        too_old_timestamp=24,
        retry_limit=3,
        price_tolerance=0.05,
        log_file="",
    )


@pytest_asyncio.fixture
async def ledger(tmp_path):
    trade_ledger = await TradeLedger.open(SOURCE, f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    yield trade_ledger
    await trade_ledger.close()
