"""
Configuration module for the copybot copy trading service
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class ConfigurationError(Exception):
    """Raised when required startup configuration is missing"""


# Contract Addresses (Polygon Mainnet)
class ContractAddresses:
    """Polygon contract addresses"""
    
    USDC = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
    CONDITIONAL_TOKENS = "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045"
    CTF_EXCHANGE = "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # Identity
    user_address: str = Field(default="", description="Source account to copy")
    proxy_wallet: str = Field(default="", description="Bot proxy wallet that receives the copies")
    private_key: str = Field(default="", description="Polygon wallet private key")
    
    # Polymarket API
    clob_http_url: str = Field(default="https://clob.polymarket.com")
    data_api_url: str = Field(default="https://data-api.polymarket.com")
    chain_id: int = Field(default=137)
    signature_type: int = Field(default=2, description="0 = EOA, 1 = email/magic, 2 = browser proxy")
    
    # Polygon RPC
    rpc_url: str = Field(default="https://polygon-rpc.com")
    usdc_contract_address: str = Field(default=ContractAddresses.USDC)
    
    # Loops
    fetch_interval: float = Field(default=5.0, description="Activity polling interval in seconds")
    executor_delay: float = Field(default=1.0, description="Delay between executor cycles in seconds")
    too_old_timestamp: float = Field(default=24.0, description="Trades older than this many hours are ignored")
    
    # Order replication
    retry_limit: int = Field(default=3, description="Max consecutive rejected slices per trade")
    price_tolerance: float = Field(default=0.05, description="Absolute price move tolerated against the source fill")
    
    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./copybot.db")
    
    # Logging
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="logs/copybot.log")
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def require_identity(self, live: bool = True):
        """Fail fast when the service cannot know whom to copy or where to trade"""
        missing = []
        if not self.user_address:
            missing.append("USER_ADDRESS")
        if not self.proxy_wallet:
            missing.append("PROXY_WALLET")
        if live and not self.private_key:
            missing.append("PRIVATE_KEY")
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")


def get_settings() -> Settings:
    """Get application settings"""
    return Settings()


# API Endpoints
class APIEndpoints:
    """Polymarket data API paths"""
    
    ACTIVITIES = "/activities"
    POSITIONS = "/positions"


# Trading Constants
class TradingConstants:
    """Trading-related constants"""
    
    # Sides as reported by the activity feed
    BUY = "BUY"
    SELL = "SELL"
    MERGE = "MERGE"
    
    # Activity kinds
    ACTIVITY_TRADE = "TRADE"
    
    # Pauses inside the slice loop (seconds)
    FILL_SETTLE_DELAY = 0.5
    REJECT_RETRY_DELAY = 2.0
    
    # Remaining size below this is treated as filled
    DUST = 1e-6
    
    USDC_DECIMALS = 6
    
    # Allowances below this many USDC are reported as low
    LOW_ALLOWANCE = 100.0
