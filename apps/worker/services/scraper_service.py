"""
Scraper Service - profile acquisition with backend fallback and caching

Flow for acquire(subject, depth):
1. normalize the subject to a username
2. return a cached profile whose quality tag covers the requested depth
3. otherwise try each Apify config in priority order (per-config retries)
4. deep / extended: if every structured backend fails, fall back to a light
   scrape without engagement numbers
5. write the result back to the cache (best-effort, never downgrades)
"""

import asyncio
import functools
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

import httpx

from config import AnalysisDepth, Settings, get_settings
from exceptions import (
    AcquisitionError,
    AcquisitionErrorKind,
    ConfigurationError,
    is_retryable,
)
from schemas.profile import ProfileRecord
from services.cache_store import (
    CacheEntry,
    CacheStore,
    now_ms,
    profile_cache_key,
    read_entry,
    write_entry,
)
from services.cost_calculator import calculate_scraper_cost
from services.scraper_configs import (
    LIGHT_SCRAPER_CONFIGS,
    ScraperConfig,
    build_scraper_url,
    get_scraper_configs,
    validate_scraper_response,
)
from services.secret_manager import SecretManager
from utils.profile_parser import extract_username, normalize_profile

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCRAPER_ERROR_PATTERNS = {
    AcquisitionErrorKind.NOT_FOUND: [
        "not found", "404", "user not found", "profile not found", "username not found",
    ],
    AcquisitionErrorKind.PRIVATE: [
        "private", "403", "private profile", "private account", "access denied",
    ],
    AcquisitionErrorKind.RATE_LIMITED: [
        "rate limit", "429", "too many requests", "temporarily blocked", "quota exceeded",
    ],
    AcquisitionErrorKind.TIMEOUT: [
        "timeout", "timed out", "request timeout", "connection timeout",
    ],
    AcquisitionErrorKind.SCRAPER_ERROR: [
        "scraper failed", "actor failed", "apify error", "no data extracted",
    ],
}

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "ProfileQualifier/1.0",
}


def classify_scraper_error(error: BaseException) -> AcquisitionErrorKind:
    """Substring classification over the exception type and message"""
    text = f"{type(error).__name__} {error}".lower()
    for kind, patterns in SCRAPER_ERROR_PATTERNS.items():
        if any(pattern in text for pattern in patterns):
            return kind
    return AcquisitionErrorKind.UNKNOWN


async def with_scraper_retry(
    attempts: Sequence[Callable[[], Awaitable[T]]],
    username: str,
) -> T:
    """
    Run acquisition closures in order and return the first success

    Raises:
        AcquisitionError: every closure failed; classified from the last error
    """
    last_error: Optional[Exception] = None

    for index, attempt in enumerate(attempts, start=1):
        try:
            return await attempt()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            logger.warning(
                f"[Scraper] Backend {index}/{len(attempts)} failed for @{username}: "
                f"{type(e).__name__}: {e}"
            )

    if last_error is None:
        raise AcquisitionError(AcquisitionErrorKind.SCRAPER_ERROR, username, cause="no scraper configured")

    kind = classify_scraper_error(last_error)
    logger.error(f"[Scraper] All backends failed for @{username} ({kind.value}): {last_error}")
    raise AcquisitionError(kind, username, cause=str(last_error)) from last_error


class ProfileAcquirer:
    """Acquisition resilience layer over the Apify run-sync API"""

    def __init__(
        self,
        cache: CacheStore,
        secrets: SecretManager,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        config_provider: Callable[[AnalysisDepth], List[ScraperConfig]] = get_scraper_configs,
    ):
        self.cache = cache
        self.secrets = secrets
        self.settings = settings or get_settings()
        self._client = http_client
        self._config_provider = config_provider

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=REQUEST_HEADERS,
                timeout=self.settings.timeout.scraper_default,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # ─────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────

    async def acquire(self, subject: str, depth: AnalysisDepth) -> ProfileRecord:
        depth = AnalysisDepth(depth)
        username = extract_username(subject)
        if not username:
            raise AcquisitionError(AcquisitionErrorKind.NOT_FOUND, subject or "", cause="invalid username")

        key = profile_cache_key(username, self.settings.cache.key_prefix)
        cached = await read_entry(self.cache, key)
        if cached is not None and cached.rank >= depth.rank:
            logger.info(
                f"[Scraper] Cache hit @{username} (cached={cached.quality_tag.value}, requested={depth.value})"
            )
            return ProfileRecord.from_dict(cached.payload)

        token = await self.secrets.get_secret("APIFY_API_TOKEN")
        if not token:
            raise ConfigurationError("Profile scraping service not configured (APIFY_API_TOKEN)")

        attempts = [
            functools.partial(self._run_config, config, username, token)
            for config in self._config_provider(depth)
        ]

        try:
            record = await with_scraper_retry(attempts, username)
        except AcquisitionError as structured_error:
            if depth == AnalysisDepth.LIGHT:
                raise
            logger.warning(
                f"[Scraper] Structured scrapers failed for @{username}, "
                f"falling back to light scrape without engagement data"
            )
            try:
                record = await self._light_fallback(username, token)
            except AcquisitionError as fallback_error:
                raise structured_error from fallback_error

        logger.info(
            f"[Scraper] @{username} acquired via {record.scraper_used} "
            f"(quality={record.data_quality}, depth={record.depth.value}, "
            f"compute_units={calculate_scraper_cost(depth, record.scraper_used):.2f})"
        )

        await asyncio.shield(self._store(key, record))
        return record

    # ─────────────────────────────────────────────────
    # Backends
    # ─────────────────────────────────────────────────

    async def _run_config(self, config: ScraperConfig, username: str, token: str) -> ProfileRecord:
        """One backend: POST with per-attempt retries, then validate and normalize"""
        url = build_scraper_url(self.settings.APIFY_BASE_URL, config.endpoint, token)
        body = config.input_builder(username)
        total_attempts = max(1, config.max_retries)

        for attempt in range(1, total_attempts + 1):
            try:
                response = await self.client.post(url, json=body, timeout=config.timeout)
                if response.status_code >= 400:
                    raise httpx.HTTPStatusError(
                        f"HTTP {response.status_code}: {response.text[:200]}",
                        request=response.request,
                        response=response,
                    )
                data = response.json() if response.content else []
                break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt >= total_attempts or not is_retryable(e):
                    raise
                delay = config.retry_delay * attempt
                logger.warning(
                    f"[Scraper] {config.name} attempt {attempt}/{total_attempts} failed, "
                    f"retrying in {delay:.0f}s: {type(e).__name__}: {e}"
                )
                await asyncio.sleep(delay)

        if isinstance(data, list) and not data:
            raise ValueError(f"Profile not found: {config.name} returned an empty dataset")
        if not validate_scraper_response(data, config.depth):
            raise ValueError(
                f"No data extracted by {config.name}: response failed {config.depth.value} validation"
            )

        return normalize_profile(data, config.depth, scraper_used=config.name)

    async def _light_fallback(self, username: str, token: str) -> ProfileRecord:
        attempts = [
            functools.partial(self._run_config, config, username, token)
            for config in sorted(LIGHT_SCRAPER_CONFIGS, key=lambda c: c.priority)
        ]
        record = await with_scraper_retry(attempts, username)
        record.latest_posts = []
        record.engagement = None
        record.scraper_used = "light_fallback"
        record.data_quality = "low"
        record.depth = AnalysisDepth.LIGHT
        return record

    # ─────────────────────────────────────────────────
    # Cache
    # ─────────────────────────────────────────────────

    async def _store(self, key: str, record: ProfileRecord) -> None:
        """Best-effort write; a live entry of higher quality is never replaced"""
        existing = await read_entry(self.cache, key)
        if existing is not None and existing.rank > record.depth.rank:
            logger.debug(
                f"[Scraper] Keeping cached {existing.quality_tag.value} entry for {key}"
            )
            return

        ttl_hours = self.settings.cache.profile_ttl_hours[record.depth.value]
        entry = CacheEntry(
            payload=record.to_dict(),
            expires_at_ms=now_ms() + ttl_hours * 3600 * 1000,
            quality_tag=record.depth,
        )
        await write_entry(self.cache, key, entry)
