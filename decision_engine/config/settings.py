# decision_engine/config/settings.py

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DecisionEngineSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DECISION_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "discount-decision-engine"
    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # --- Advisory timeouts (seconds) ---
    advisory_timeout_seconds: float = Field(2.0, gt=0)
    training_timeout_seconds: float = Field(30.0, gt=0)
    availability_timeout_seconds: float = Field(0.5, gt=0)
    governance_timeout_seconds: float = Field(2.0, gt=0)

    # --- Response cache TTLs (seconds) ---
    recommendation_cache_ttl_seconds: int = Field(300, gt=0)
    risk_score_cache_ttl_seconds: int = Field(300, gt=0)
    explanation_cache_ttl_seconds: int = Field(900, gt=0)
    cache_key_prefix: str = "advisory"

    # --- Circuit breaker ---
    circuit_breaker_failure_threshold: int = Field(5, ge=1)
    circuit_breaker_open_seconds: float = Field(30.0, gt=0)

    # --- Auto-approval defaults (overridden per tenant by AutoApproval rules) ---
    default_max_risk_score: float = Field(60.0, ge=0, le=100)
    default_min_advisory_confidence: float = Field(0.75, ge=0, le=1)
    default_max_discount_percentage: float = Field(15.0, ge=0, le=100)

    # --- Safety limits, independent of tenant configuration ---
    max_auto_approval_order_value: float = Field(100_000.0, gt=0)
    max_auto_approval_items: int = Field(50, ge=1)

    # --- Redis (only used by RedisResponseCache) ---
    redis_url: str | None = None


@lru_cache
def get_settings() -> DecisionEngineSettings:
    return DecisionEngineSettings()
