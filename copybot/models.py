"""
Database Models for the copybot trade ledger

Uses SQLAlchemy for ORM with async support
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column, String, Float, Integer, Boolean, DateTime, Index
)
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import get_settings

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserActivity(Base):
    """
    A source-account trade discovered by the monitor

    The table doubles as the work queue between monitor and executor:
    ``bot`` flips to True once the trade reaches a terminal state and
    ``bot_executed_time`` records the retry count it ended with.
    """
    __tablename__ = "user_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    proxy_wallet = Column(String(42), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="TRADE")

    # Identity
    transaction_hash = Column(String(66), unique=True, nullable=False)
    condition_id = Column(String(100), nullable=False, index=True)
    asset = Column(String(100), nullable=False)

    # Trade details
    side = Column(String(10), nullable=False)
    size = Column(Float, default=0.0)
    usdc_size = Column(Float, default=0.0)
    price = Column(Float, default=0.0)
    timestamp = Column(Integer, nullable=False)

    title = Column(String(255), nullable=True)
    slug = Column(String(255), nullable=True)
    outcome = Column(String(50), nullable=True)

    # Processing state
    bot = Column(Boolean, default=False, nullable=False)
    bot_executed_time = Column(Integer, nullable=True, default=0)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_user_activities_pending", "proxy_wallet", "bot"),
    )

    def __repr__(self):
        return (
            f"<UserActivity(tx={self.transaction_hash[:10]}, {self.side} "
            f"{self.size}@{self.price}, bot={self.bot})>"
        )


# Database initialization
async def init_db(database_url: Optional[str] = None) -> AsyncEngine:
    """Initialize database and create tables"""
    url = database_url or get_settings().database_url

    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory whose objects stay readable after commit"""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
