from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    master_key: str = Field(..., alias="MASTER_KEY")

    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    cache_dir: Path = Field(default=Path(".cache"), alias="CACHE_DIR")

    bsc_rpc_url: str = Field(
        default="https://data-seed-prebsc-1-s1.binance.org:8545", alias="BSC_RPC_URL"
    )
    chain_id: int = Field(default=97, alias="CHAIN_ID")
    bscscan_api_base: str = Field(
        default="https://api-testnet.bscscan.com/api", alias="BSCSCAN_API_BASE"
    )
    bscscan_api_key: Optional[str] = Field(default=None, alias="BSCSCAN_API_KEY")
    explorer_url: str = Field(default="https://testnet.bscscan.com", alias="EXPLORER_URL")

    core_contract_address: Optional[str] = Field(default=None, alias="CORE_CONTRACT_ADDRESS")
    token_contract_address: Optional[str] = Field(default=None, alias="TOKEN_CONTRACT_ADDRESS")
    pancake_router: str = Field(
        default="0xD99D1c33F9fC3444f8101754aBC46c52416550D1", alias="PANCAKE_ROUTER"
    )
    wbnb_address: str = Field(
        default="0xae13d989daC2f0dEbFf460aC112a837C89BAa7cd", alias="WBNB_ADDRESS"
    )

    pending_ttl_seconds: int = Field(default=600, alias="PENDING_TTL_SECONDS")
    swap_slippage_bps: int = Field(default=100, alias="SWAP_SLIPPAGE_BPS")
    keeper_interval_minutes: int = Field(default=5, alias="KEEPER_INTERVAL_MINUTES")

    def validate_required(self) -> None:
        if not self.master_key:
            raise ValueError("MASTER_KEY is required")

        if self.swap_slippage_bps < 0 or self.swap_slippage_bps >= 10_000:
            raise ValueError("SWAP_SLIPPAGE_BPS must be in [0, 10000)")

    def require_bot_token(self) -> str:
        if not self.telegram_bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN is required")
        return self.telegram_bot_token


@lru_cache
def load_settings() -> Settings:
    settings = Settings()
    settings.validate_required()
    settings.cache_dir.mkdir(parents=True, exist_ok=True)
    return settings
