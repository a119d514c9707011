"""
Cache Store - key/value cache collaborator and cache entry codec

Entries carry their own absolute expiry and a quality tag so readers can
decide whether a cached profile is good enough for the requested depth.

Wire shape:
    {"payload": {...}, "expiresAtEpochMs": 1730000000000, "qualityTag": "deep"}
"""

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import redis.asyncio as aioredis

from config import AnalysisDepth, Settings, get_settings

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


# ─────────────────────────────────────────────────
# Entry codec
# ─────────────────────────────────────────────────

@dataclass
class CacheEntry:
    payload: Dict[str, Any]
    expires_at_ms: int
    quality_tag: AnalysisDepth

    def is_live(self, at_ms: Optional[int] = None) -> bool:
        return self.expires_at_ms > (at_ms if at_ms is not None else now_ms())

    @property
    def rank(self) -> int:
        return self.quality_tag.rank

    def encode(self) -> bytes:
        return json.dumps(
            {
                "payload": self.payload,
                "expiresAtEpochMs": self.expires_at_ms,
                "qualityTag": self.quality_tag.value,
            },
            ensure_ascii=False,
        ).encode("utf-8")

    @classmethod
    def decode(cls, raw: bytes) -> Optional["CacheEntry"]:
        """Returns None for anything that is not a well-formed entry"""
        try:
            data = json.loads(raw)
            return cls(
                payload=data["payload"],
                expires_at_ms=int(data["expiresAtEpochMs"]),
                quality_tag=AnalysisDepth(data["qualityTag"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[Cache] Discarding malformed cache entry: {e}")
            return None


# ─────────────────────────────────────────────────
# Key builders
# ─────────────────────────────────────────────────

def profile_cache_key(username: str, prefix: str) -> str:
    """Depth-independent key; the entry's quality tag records the depth"""
    return f"{prefix}:profile:{username.lower()}"


def follower_bucket(followers: int) -> int:
    """Followers rounded down to the nearest thousand (exact below 1000)"""
    if followers < 1000:
        return followers
    return followers // 1000 * 1000


def content_fingerprint(posts: List[Tuple[str, int]]) -> str:
    """Short hash over (post id, likes) of the top three posts"""
    material = "|".join(f"{post_id}:{likes}" for post_id, likes in posts[:3])
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:16]


def preprocessor_cache_key(
    username: str,
    followers: int,
    posts: List[Tuple[str, int]],
    prefix: str,
) -> str:
    return (
        f"{prefix}:preproc:{username.lower()}:"
        f"{follower_bucket(followers)}:{content_fingerprint(posts)}"
    )


# ─────────────────────────────────────────────────
# Stores
# ─────────────────────────────────────────────────

class CacheStore(ABC):
    """Opaque byte store; implementations may honor ttl_seconds natively"""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    async def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        ...


class InMemoryCacheStore(CacheStore):
    """Process-local store for tests and single-process runs"""

    def __init__(self):
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[bytes]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return value

    async def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        self._data[key] = (value, expires_at)

    def __len__(self) -> int:
        return len(self._data)


class RedisCacheStore(CacheStore):
    """redis.asyncio backed store; TTL is forwarded as key expiry"""

    def __init__(self, client: Optional[aioredis.Redis] = None, url: Optional[str] = None):
        self._client = client or aioredis.from_url(url or get_settings().REDIS_URL)

    async def get(self, key: str) -> Optional[bytes]:
        return await self._client.get(key)

    async def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds:
            await self._client.set(key, value, ex=ttl_seconds)
        else:
            await self._client.set(key, value)

    async def close(self) -> None:
        await self._client.aclose()


def build_cache_store(settings: Optional[Settings] = None) -> CacheStore:
    """Redis when REDIS_URL is set, otherwise process-local"""
    settings = settings or get_settings()
    if settings.REDIS_URL:
        return RedisCacheStore(url=settings.REDIS_URL)
    logger.warning("[Cache] REDIS_URL not set, using in-memory cache")
    return InMemoryCacheStore()


# ─────────────────────────────────────────────────
# Entry helpers
# ─────────────────────────────────────────────────

async def read_entry(store: CacheStore, key: str) -> Optional[CacheEntry]:
    """Read a live entry; store failures read as a miss"""
    try:
        raw = await store.get(key)
    except Exception as e:
        logger.warning(f"[Cache] Read failed for {key}: {type(e).__name__}: {e}")
        return None

    if raw is None:
        return None
    entry = CacheEntry.decode(raw)
    if entry is None or not entry.is_live():
        return None
    return entry


async def write_entry(store: CacheStore, key: str, entry: CacheEntry) -> bool:
    """Best-effort write; returns False instead of raising"""
    ttl_seconds = max(1, (entry.expires_at_ms - now_ms()) // 1000)
    try:
        await store.put(key, entry.encode(), ttl_seconds=ttl_seconds)
        return True
    except Exception as e:
        logger.warning(f"[Cache] Write failed for {key}: {type(e).__name__}: {e}")
        return False
