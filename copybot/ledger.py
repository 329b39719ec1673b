"""
Trade Ledger

Durable queue of discovered source trades. The monitor only inserts,
the executor only patches records it is currently processing.
Running more than one executor against the same ledger is unsupported:
state transitions are plain updates, not claims.
"""

from contextlib import asynccontextmanager
from typing import Optional, Dict, List, Set

from loguru import logger
from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from .api_client import Activity
from .config import TradingConstants
from .models import UserActivity, init_db, create_session_factory


class TradeLedger:
    """Persistent store of source trades scoped to one source account"""

    def __init__(self, owner: str, engine: AsyncEngine):
        self.owner = owner
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    async def open(cls, owner: str, database_url: Optional[str] = None) -> "TradeLedger":
        """Connect, create tables if needed and return a ledger for ``owner``"""
        engine = await init_db(database_url)
        return cls(owner, engine)

    async def close(self):
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self):
        """Get async database session as context manager"""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def existing_hashes(self) -> Set[str]:
        """Transaction hashes already recorded for the owner"""
        async with self._session() as session:
            result = await session.execute(
                select(UserActivity.transaction_hash)
                .where(UserActivity.proxy_wallet == self.owner)
            )
            return {h for h in result.scalars().all() if h}

    async def insert(self, activity: Activity) -> Optional[UserActivity]:
        """
        Record a new trade as pending work

        Returns the stored record, or None when the hash is already present.
        """
        record = UserActivity(
            proxy_wallet=self.owner,
            type=activity.type,
            transaction_hash=activity.transaction_hash,
            condition_id=activity.condition_id,
            asset=activity.asset,
            side=activity.side,
            size=activity.size,
            usdc_size=activity.usdc_size,
            price=activity.price,
            timestamp=activity.timestamp,
            title=activity.title,
            slug=activity.slug,
            outcome=activity.outcome,
            bot=False,
            bot_executed_time=0,
        )
        try:
            async with self._session() as session:
                session.add(record)
        except IntegrityError:
            logger.warning(f"Trade {activity.transaction_hash} already in ledger, skipped")
            return None
        return record

    async def pending(self, retry_limit: int) -> List[UserActivity]:
        """Trades eligible for (re)processing, oldest first"""
        async with self._session() as session:
            result = await session.execute(
                select(UserActivity)
                .where(
                    UserActivity.proxy_wallet == self.owner,
                    UserActivity.type == TradingConstants.ACTIVITY_TRADE,
                    UserActivity.bot == False,  # noqa: E712
                    or_(
                        UserActivity.bot_executed_time.is_(None),
                        UserActivity.bot_executed_time < retry_limit,
                    ),
                )
                .order_by(UserActivity.timestamp, UserActivity.id)
            )
            return list(result.scalars().all())

    async def mark_done(self, record_id: int, bot_executed_time: Optional[int] = None):
        """
        Make a record terminal

        Args:
            record_id: Ledger row id
            bot_executed_time: Retry count to store alongside the terminal flag;
                left untouched when None
        """
        values = {"bot": True}
        if bot_executed_time is not None:
            values["bot_executed_time"] = bot_executed_time

        async with self._session() as session:
            await session.execute(
                update(UserActivity)
                .where(UserActivity.id == record_id)
                .values(**values)
            )

    async def get(self, record_id: int) -> Optional[UserActivity]:
        async with self._session() as session:
            return await session.get(UserActivity, record_id)

    async def count(self) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count(UserActivity.id))
                .where(UserActivity.proxy_wallet == self.owner)
            )
            return result.scalar_one()

    async def state_counts(self, retry_limit: int) -> Dict[str, int]:
        """Record counts per processing state, for status reporting"""
        async with self._session() as session:
            result = await session.execute(
                select(UserActivity.bot, UserActivity.bot_executed_time)
                .where(UserActivity.proxy_wallet == self.owner)
            )
            counts = {"pending": 0, "done": 0, "failed": 0}
            for bot, executed_time in result.all():
                if not bot:
                    counts["pending"] += 1
                elif executed_time is not None and executed_time >= retry_limit:
                    counts["failed"] += 1
                else:
                    counts["done"] += 1
            return counts

    async def recent(self, limit: int = 20) -> List[UserActivity]:
        """Most recently observed trades"""
        async with self._session() as session:
            result = await session.execute(
                select(UserActivity)
                .where(UserActivity.proxy_wallet == self.owner)
                .order_by(UserActivity.timestamp.desc(), UserActivity.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
