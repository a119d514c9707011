"""
Secret Manager - cached API key lookup with environment fallback

Lookup order:
1. in-memory cache (TTL, default 5 minutes)
2. primary SecretSource (remote store), bounded by settings.timeout.secret_fetch
3. Settings / environment value
4. "" (never raises for a missing key)
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from config import Settings, get_settings

logger = logging.getLogger(__name__)


class SecretSource(ABC):
    """Remote secret store"""

    @abstractmethod
    async def get_secret(self, name: str) -> str:
        """Return the secret value, or "" when the store has no such key"""


class SettingsSecretSource(SecretSource):
    """Reads secrets straight from Settings (env / .env)"""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    async def get_secret(self, name: str) -> str:
        value = getattr(self._settings, name, "")
        return value if isinstance(value, str) else ""


class SecretManager:
    """
    Explicit secret collaborator, passed by reference to whatever needs keys

    Values are cached per name; an empty value is never cached so a key that
    appears later is picked up on the next lookup.
    """

    def __init__(
        self,
        primary: Optional[SecretSource] = None,
        settings: Optional[Settings] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self._settings = settings or get_settings()
        self._primary = primary
        self._fallback = SettingsSecretSource(self._settings)
        self._ttl = ttl_seconds if ttl_seconds is not None else self._settings.SECRET_CACHE_TTL_SECONDS
        self._cache: Dict[str, Tuple[str, float]] = {}

    async def get_secret(self, name: str) -> str:
        cached = self._cache.get(name)
        if cached and cached[1] > time.monotonic():
            return cached[0]

        value = ""
        if self._primary is not None:
            try:
                value = await asyncio.wait_for(
                    self._primary.get_secret(name),
                    timeout=self._settings.timeout.secret_fetch,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    f"[SecretManager] Primary source failed for {name}, using environment: "
                    f"{type(e).__name__}: {e}"
                )

        if not value:
            value = await self._fallback.get_secret(name)

        if not value:
            logger.warning(f"[SecretManager] Secret not found: {name}")
            return ""

        self._cache[name] = (value, time.monotonic() + self._ttl)
        return value

    def invalidate(self, name: Optional[str] = None) -> None:
        if name is None:
            self._cache.clear()
        else:
            self._cache.pop(name, None)


_secret_manager: Optional[SecretManager] = None


def get_secret_manager() -> SecretManager:
    """SecretManager singleton backed by the environment only"""
    global _secret_manager
    if _secret_manager is None:
        _secret_manager = SecretManager()
    return _secret_manager
