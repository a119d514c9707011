"""
Profile Qualifier Worker Configuration
"""

from enum import Enum
from functools import lru_cache
from typing import Dict

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisDepth(str, Enum):
    LIGHT = "light"        # profile details only
    DEEP = "deep"          # details + recent posts
    EXTENDED = "extended"  # details + large post sample

    @property
    def rank(self) -> int:
        """Quality rank used for cache upgrade decisions"""
        return _DEPTH_RANK[self]


_DEPTH_RANK = {
    AnalysisDepth.LIGHT: 1,
    AnalysisDepth.DEEP: 2,
    AnalysisDepth.EXTENDED: 3,
}


class ModelTier(str, Enum):
    ECONOMY = "economy"
    BALANCED = "balanced"
    PREMIUM = "premium"


class TimeoutSettings(BaseModel):
    """Network timeouts (seconds)"""
    llm: int = 120
    llm_connect: int = 10
    scraper_default: int = 30
    secret_fetch: int = 5


class RetrySettings(BaseModel):
    """Retry policy"""
    llm_max: int = 3
    llm_base_delay: float = 1.0
    llm_max_delay: float = 8.0


class PricingSettings(BaseModel):
    """Credit pricing for a single analysis"""
    base_fees: Dict[str, float] = Field(
        default_factory=lambda: {"light": 0.5, "deep": 1.0, "extended": 2.0}
    )
    margin_target: float = 0.3
    minimum_charge: float = 0.1
    token_cap: int = 2200
    penalty_multiplier: float = 1.5

    # Cost monitor thresholds
    high_cost_alert_usd: float = 0.05
    low_margin_alert_percent: float = 20.0


class CacheSettings(BaseModel):
    """Cache TTLs and key namespace"""
    key_prefix: str = "pq"
    profile_ttl_hours: Dict[str, int] = Field(
        default_factory=lambda: {"light": 24, "deep": 48, "extended": 72}
    )
    preprocessor_ttl_hours: int = 48
    business_context_fresh_hours: int = 24


class Settings(BaseSettings):
    """Worker settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ─────────────────────────────────────────────────
    # Basics
    # ─────────────────────────────────────────────────
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ─────────────────────────────────────────────────
    # Redis (cache store)
    # ─────────────────────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379"

    # ─────────────────────────────────────────────────
    # AI providers
    # ─────────────────────────────────────────────────
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""
    GEMINI_API_KEY: str = ""

    # ─────────────────────────────────────────────────
    # Scraping (Apify)
    # ─────────────────────────────────────────────────
    APIFY_API_TOKEN: str = ""
    APIFY_BASE_URL: str = "https://api.apify.com/v2/acts"

    # ─────────────────────────────────────────────────
    # Pipeline defaults
    # ─────────────────────────────────────────────────
    DEFAULT_WORKFLOW: str = "auto"
    DEFAULT_MODEL_TIER: ModelTier = ModelTier.BALANCED
    SECRET_CACHE_TTL_SECONDS: int = 300
    BULK_BATCH_SIZE: int = 3

    # ─────────────────────────────────────────────────
    # Nested groups (env: TIMEOUT__LLM=180, PRICING__TOKEN_CAP=3000 ...)
    # ─────────────────────────────────────────────────
    timeout: TimeoutSettings = Field(default_factory=TimeoutSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


@lru_cache()
def get_settings() -> Settings:
    """Settings singleton"""
    return Settings()
