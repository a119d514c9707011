# Services Package
from .cache_store import (
    CacheEntry,
    CacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
    build_cache_store,
)
from .cost_calculator import calculate_cost, calculate_credit_cost, monitor_costs, CostAlert
from .model_selector import select_model
from .provider_adapter import ProviderAdapter, get_provider_adapter
from .scraper_service import ProfileAcquirer
from .secret_manager import SecretManager, SecretSource, SettingsSecretSource, get_secret_manager

__all__ = [
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "build_cache_store",
    "calculate_cost",
    "calculate_credit_cost",
    "monitor_costs",
    "CostAlert",
    "select_model",
    "ProviderAdapter",
    "get_provider_adapter",
    "ProfileAcquirer",
    "SecretManager",
    "SecretSource",
    "SettingsSecretSource",
    "get_secret_manager",
]
