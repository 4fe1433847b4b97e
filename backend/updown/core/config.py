from functools import lru_cache
from typing import Any

from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    log_level: str = Field(default="INFO", description="Minimum loguru level")
    database_url: AnyUrl | str = Field(
        default="sqlite:///../data/updown.db",
        description="SQLAlchemy compatible database URL",
    )

    round_interval_seconds: int = Field(
        default=300,
        description="Length of the betting window and of the observation window",
        gt=0,
    )
    bid_buffer_seconds: int = Field(
        default=30,
        description="Bidding closes this many seconds before a round locks",
        ge=0,
    )
    min_bet_amount: int = Field(
        default=10, description="Smallest accepted stake", ge=1
    )
    fee_bps: int = Field(
        default=1500,
        description="Protocol fee in basis points taken from decided pools",
        ge=0,
        le=10_000,
    )
    treasury_address: str = Field(
        default="treasury", description="Address receiving withdrawn protocol fees"
    )
    oracle_address: str = Field(
        default="oracle", description="Identifier of the price oracle in use"
    )
    asset_id: str = Field(default="BTC-USD", description="Asset the rounds bet on")
    admins: list[str] | str = Field(
        default_factory=list,
        description="Addresses allowed to update configuration and withdraw fees",
    )

    oracle_base_url: AnyUrl | str = Field(
        default="http://localhost:8090",
        description="Base URL of the price oracle HTTP service",
    )
    oracle_price_path: str = Field(
        default="/prices/{asset_id}",
        description="Relative path template for the price lookup endpoint",
    )
    oracle_timeout_seconds: float = Field(
        default=5.0, description="HTTP timeout for oracle queries", gt=0
    )
    oracle_max_staleness_seconds: int = Field(
        default=60,
        description="Oldest acceptable quote relative to the requested timestamp",
        ge=0,
    )

    keeper_poll_seconds: float = Field(
        default=5.0,
        description="Delay between keeper sweeps when running continuously",
        gt=0,
    )

    @field_validator("admins", mode="after")
    @classmethod
    def _parse_admins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item for item in (part.strip() for part in value.split(",")) if item]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        raise ValueError("ADMINS must be provided as a list or comma-separated string")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _validate_bid_buffer(self) -> "Settings":
        if self.bid_buffer_seconds >= self.round_interval_seconds:
            raise ValueError(
                "BID_BUFFER_SECONDS must be shorter than ROUND_INTERVAL_SECONDS"
            )
        return self

    @property
    def resolved_database_url(self) -> str:
        url = str(self.database_url)
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://") :]
        return url

    def round_config_values(self) -> dict[str, Any]:
        """Values used to seed the persisted game configuration."""

        return {
            "round_interval_seconds": self.round_interval_seconds,
            "bid_buffer_seconds": self.bid_buffer_seconds,
            "min_bet_amount": self.min_bet_amount,
            "fee_bps": self.fee_bps,
            "treasury_address": self.treasury_address,
            "oracle_address": self.oracle_address,
            "asset_id": self.asset_id,
            "admins": list(self.admins),
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
