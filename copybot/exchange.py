"""
Exchange Access Module

Order book reads and market order submission on the Polymarket CLOB,
using py-clob-client. ``PaperExchange`` keeps the live book but only
simulates fills, for dry runs.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, List, Any

from loguru import logger
from py_clob_client.client import ClobClient
from py_clob_client.clob_types import MarketOrderArgs, OrderType
from py_clob_client.exceptions import PolyApiException
from py_clob_client.order_builder.constants import BUY, SELL

from .config import Settings, TradingConstants


@dataclass
class BookLevel:
    """One price level of the order book"""
    price: float
    size: float


@dataclass
class OrderBook:
    """Order book snapshot for a single outcome token"""
    token_id: str
    bids: List[BookLevel] = field(default_factory=list)
    asks: List[BookLevel] = field(default_factory=list)

    @classmethod
    def from_summary(cls, summary: Any, token_id: str) -> "OrderBook":
        """Create OrderBook from a py-clob-client summary or a raw dict"""
        if isinstance(summary, dict):
            raw_bids = summary.get("bids") or []
            raw_asks = summary.get("asks") or []
        else:
            raw_bids = getattr(summary, "bids", None) or []
            raw_asks = getattr(summary, "asks", None) or []
        return cls(
            token_id=token_id,
            bids=[_level(b) for b in raw_bids],
            asks=[_level(a) for a in raw_asks],
        )

    def best_bid(self) -> Optional[BookLevel]:
        """Highest-priced bid; the book's ordering is not relied on"""
        if not self.bids:
            return None
        return max(self.bids, key=lambda level: level.price)

    def best_ask(self) -> Optional[BookLevel]:
        """Lowest-priced ask"""
        if not self.asks:
            return None
        return min(self.asks, key=lambda level: level.price)

    @property
    def midpoint(self) -> Optional[float]:
        bid, ask = self.best_bid(), self.best_ask()
        if bid is None or ask is None:
            return None
        return (bid.price + ask.price) / 2

    @property
    def spread(self) -> Optional[float]:
        bid, ask = self.best_bid(), self.best_ask()
        if bid is None or ask is None:
            return None
        return ask.price - bid.price


def _level(entry: Any) -> BookLevel:
    if isinstance(entry, dict):
        return BookLevel(price=float(entry["price"]), size=float(entry["size"]))
    return BookLevel(price=float(entry.price), size=float(entry.size))


def _last_price(data: Any) -> Optional[float]:
    price = data.get("price") if isinstance(data, dict) else getattr(data, "price", None)
    return float(price) if price not in (None, "") else None


@dataclass
class OrderResponse:
    """Outcome of one order submission"""
    success: bool
    order_id: Optional[str] = None
    error_message: Optional[str] = None
    raw: Dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "OrderResponse":
        data = data or {}
        return cls(
            success=bool(data.get("success")),
            order_id=data.get("orderID"),
            error_message=data.get("errorMsg") or None,
            raw=data,
        )


class ClobExchange:
    """
    Live exchange access through an authenticated ClobClient

    py-clob-client is synchronous, so calls run in a worker thread to keep
    the monitor loop responsive while an order is in flight.
    """

    def __init__(self, client: ClobClient):
        self._client = client

    @classmethod
    def connect(cls, settings: Settings) -> "ClobExchange":
        """Build a trading client and derive its API credentials"""
        client = ClobClient(
            host=settings.clob_http_url,
            key=settings.private_key,
            chain_id=settings.chain_id,
            signature_type=settings.signature_type,
            funder=settings.proxy_wallet
        )
        creds = client.create_or_derive_api_creds()
        client.set_api_creds(creds)
        logger.info(f"CLOB client ready for {settings.proxy_wallet}")
        return cls(client)

    async def get_order_book(self, token_id: str) -> OrderBook:
        summary = await asyncio.to_thread(self._client.get_order_book, token_id)
        return OrderBook.from_summary(summary, token_id)

    async def get_last_trade_price(self, token_id: str) -> Optional[float]:
        data = await asyncio.to_thread(self._client.get_last_trade_price, token_id)
        return _last_price(data)

    async def submit_market_order(
        self,
        side: str,
        token_id: str,
        amount: float,
        price: float
    ) -> OrderResponse:
        """
        Sign and post a fill-or-kill market order

        Args:
            side: "BUY" or "SELL"
            token_id: Outcome token
            amount: USDC to spend for buys, shares to sell for sells
            price: Worst acceptable price

        Returns:
            OrderResponse; exchange rejections come back as success=False
        """
        order_args = MarketOrderArgs(
            token_id=token_id,
            amount=amount,
            side=BUY if side == TradingConstants.BUY else SELL,
            price=price
        )
        try:
            signed_order = await asyncio.to_thread(self._client.create_market_order, order_args)
            response = await asyncio.to_thread(self._client.post_order, signed_order, OrderType.FOK)
        except PolyApiException as e:
            return OrderResponse(success=False, error_message=str(getattr(e, "error_msg", None) or e))
        return OrderResponse.from_dict(response)


class PaperExchange:
    """
    Exchange that reads the live book but only simulates fills
    Useful for dry runs against a real source account
    """

    def __init__(self, book_client: Any):
        self._book_client = book_client
        self._order_history: List[Dict] = []

    @classmethod
    def connect(cls, settings: Settings) -> "PaperExchange":
        # Level 0 client: public endpoints only, no key needed
        return cls(ClobClient(host=settings.clob_http_url, chain_id=settings.chain_id))

    async def get_order_book(self, token_id: str) -> OrderBook:
        summary = await asyncio.to_thread(self._book_client.get_order_book, token_id)
        return OrderBook.from_summary(summary, token_id)

    async def get_last_trade_price(self, token_id: str) -> Optional[float]:
        data = await asyncio.to_thread(self._book_client.get_last_trade_price, token_id)
        return _last_price(data)

    async def submit_market_order(
        self,
        side: str,
        token_id: str,
        amount: float,
        price: float
    ) -> OrderResponse:
        order_id = f"SIM-{datetime.now(timezone.utc).timestamp()}"
        logger.info(f"[SIMULATION] {side} {amount:.4f} of {token_id[:12]}... @ {price:.4f}")
        self._order_history.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "side": side,
            "token_id": token_id,
            "amount": amount,
            "price": price,
            "order_id": order_id,
        })
        return OrderResponse(success=True, order_id=order_id)

    def get_order_history(self) -> List[Dict]:
        """Get history of simulated orders"""
        return self._order_history.copy()
