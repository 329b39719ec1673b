"""
copybot - Polymarket Copy Trading Service

Watches one source account and replicates its trades proportionally
into a bot-controlled proxy wallet.

Modules:
- config: Configuration management
- api_client: Activity and position reads
- models: Ledger database model
- ledger: Trade ledger (monitor/executor queue)
- trade_monitor: Producer loop
- copy_strategy: Intent classification and sizing
- exchange: Order book and order submission
- order_replicator: Slice and retry loop
- balance: Wallet balances
- trade_executor: Consumer loop
- main: CLI entry point
"""

__version__ = "0.1.0"

from .config import get_settings, Settings, ConfigurationError
from .api_client import PolymarketDataClient, Activity, PositionSnapshot, fetch_data
from .models import UserActivity
from .ledger import TradeLedger
from .trade_monitor import TradeMonitor
from .copy_strategy import Intent, PositionSizer, ReplicationPlan, classify_intent
from .exchange import ClobExchange, PaperExchange, OrderBook, BookLevel, OrderResponse
from .order_replicator import OrderReplicator, ReplicationResult, ReplicationStatus
from .balance import BalanceChecker, BalanceInfo
from .trade_executor import TradeExecutor

__all__ = [
    # Config
    "get_settings",
    "Settings",
    "ConfigurationError",
    # Data API
    "PolymarketDataClient",
    "Activity",
    "PositionSnapshot",
    "fetch_data",
    # Ledger
    "UserActivity",
    "TradeLedger",
    # Loops
    "TradeMonitor",
    "TradeExecutor",
    # Strategy
    "Intent",
    "PositionSizer",
    "ReplicationPlan",
    "classify_intent",
    # Exchange
    "ClobExchange",
    "PaperExchange",
    "OrderBook",
    "BookLevel",
    "OrderResponse",
    # Replication
    "OrderReplicator",
    "ReplicationResult",
    "ReplicationStatus",
    # Balances
    "BalanceChecker",
    "BalanceInfo",
]
