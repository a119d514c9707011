"""
Tests for services/scraper_service.py and services/scraper_configs.py

Apify is replaced by httpx.MockTransport serving queued responses.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from config import AnalysisDepth, Settings
from exceptions import AcquisitionError, AcquisitionErrorKind, ConfigurationError
from services.cache_store import CacheEntry, InMemoryCacheStore, now_ms, profile_cache_key, read_entry
from services.scraper_configs import (
    DETAILS_ACTOR,
    POSTS_ACTOR,
    get_scraper_configs,
    validate_scraper_response,
)
from services.scraper_service import ProfileAcquirer, classify_scraper_error
from services.secret_manager import SecretManager


class ApifyStub:
    """Serves queued (status, body) pairs and records (actor, input) per call"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        actor = request.url.path.split("/")[-2]
        self.calls.append((actor, json.loads(request.content)))
        if not self.responses:
            raise AssertionError(f"Unexpected Apify call to {actor}")
        status, body = self.responses.pop(0)
        return httpx.Response(status, json=body)

    @property
    def actors(self):
        return [actor for actor, _ in self.calls]


@pytest.fixture
def scraper_settings():
    return Settings(_env_file=None, APIFY_API_TOKEN="apify-test-token")


@pytest.fixture
def cache():
    return InMemoryCacheStore()


def make_acquirer(stub, cache, settings):
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return ProfileAcquirer(cache, SecretManager(None, settings), settings, http_client=client)


def assert_ttl_hours(entry, hours):
    remaining_ms = entry.expires_at_ms - now_ms()
    assert hours * 3_600_000 - 60_000 < remaining_ms <= hours * 3_600_000


async def seed_cache(cache, payload, depth):
    entry = CacheEntry(payload=payload, expires_at_ms=now_ms() + 3_600_000, quality_tag=depth)
    await cache.put(profile_cache_key(payload["username"], "pq"), entry.encode())


class TestScraperConfigs:
    """Config ordering and response validation"""

    def test_light_order(self):
        assert [c.name for c in get_scraper_configs(AnalysisDepth.LIGHT)] == ["light_primary", "light_secondary"]

    def test_extended_tries_deep_configs_after_its_own(self):
        names = [c.name for c in get_scraper_configs(AnalysisDepth.EXTENDED)]
        assert names == ["extended_primary", "deep_primary", "extended_secondary", "deep_secondary"]

    def test_validation_by_depth(self, apify_details_item, apify_posts_item):
        assert validate_scraper_response([apify_details_item], AnalysisDepth.LIGHT)
        assert validate_scraper_response([apify_details_item], AnalysisDepth.DEEP)  # postsCount > 0
        assert not validate_scraper_response([apify_details_item], AnalysisDepth.EXTENDED)
        assert validate_scraper_response([apify_posts_item], AnalysisDepth.EXTENDED)

    @pytest.mark.parametrize("response", [[], None, {"username": "x"}, ["x"], [{"fullName": "x"}]])
    def test_invalid_shapes(self, response):
        assert not validate_scraper_response(response, AnalysisDepth.LIGHT)


class TestClassifyScraperError:

    @pytest.mark.parametrize("message,kind", [
        ("HTTP 404: Not Found", AcquisitionErrorKind.NOT_FOUND),
        ("Profile not found: light_primary returned an empty dataset", AcquisitionErrorKind.NOT_FOUND),
        ("HTTP 403: private account", AcquisitionErrorKind.PRIVATE),
        ("HTTP 429: Too Many Requests", AcquisitionErrorKind.RATE_LIMITED),
        ("No data extracted by deep_primary", AcquisitionErrorKind.SCRAPER_ERROR),
        ("something odd", AcquisitionErrorKind.UNKNOWN),
    ])
    def test_message_patterns(self, message, kind):
        assert classify_scraper_error(RuntimeError(message)) == kind

    def test_exception_type_counts(self):
        assert classify_scraper_error(httpx.ReadTimeout("")) == AcquisitionErrorKind.TIMEOUT


@pytest.mark.asyncio
class TestProfileAcquirer:
    """acquire(subject, depth)"""

    async def test_light_scrape_is_cached(self, cache, scraper_settings, apify_details_item):
        stub = ApifyStub((200, [apify_details_item]))
        acquirer = make_acquirer(stub, cache, scraper_settings)

        record = await acquirer.acquire("@FitCoach", AnalysisDepth.LIGHT)

        assert record.username == "fitcoach"
        assert record.scraper_used == "light_primary"
        assert stub.actors == [DETAILS_ACTOR]
        assert stub.calls[0][1]["usernames"] == ["fitcoach"]

        entry = await read_entry(cache, profile_cache_key("fitcoach", "pq"))
        assert entry.quality_tag == AnalysisDepth.LIGHT

    async def test_token_sent_as_query_parameter(self, cache, scraper_settings, apify_details_item):
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json=[apify_details_item])

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        acquirer = ProfileAcquirer(cache, SecretManager(None, scraper_settings), scraper_settings, http_client=client)
        await acquirer.acquire("fitcoach", AnalysisDepth.LIGHT)

        assert seen[0].params["token"] == "apify-test-token"
        assert seen[0].path.endswith(f"/{DETAILS_ACTOR}/run-sync-get-dataset-items")

    async def test_higher_quality_cache_entry_serves_lower_depth(self, cache, scraper_settings, sample_profile):
        await seed_cache(cache, sample_profile.to_dict(), AnalysisDepth.DEEP)
        stub = ApifyStub()
        acquirer = make_acquirer(stub, cache, scraper_settings)

        record = await acquirer.acquire("fitcoach", AnalysisDepth.LIGHT)

        assert stub.calls == []
        assert record.depth == AnalysisDepth.DEEP
        assert len(record.latest_posts) == 3

    async def test_lower_quality_cache_entry_is_upgraded(self, cache, scraper_settings, apify_details_item, apify_posts_item):
        light_payload = {"username": "fitcoach", "followers_count": 25400, "depth": "light"}
        await seed_cache(cache, light_payload, AnalysisDepth.LIGHT)
        stub = ApifyStub((200, [apify_posts_item]))
        acquirer = make_acquirer(stub, cache, scraper_settings)

        record = await acquirer.acquire("fitcoach", AnalysisDepth.DEEP)

        assert stub.actors == [POSTS_ACTOR]
        assert record.depth == AnalysisDepth.DEEP
        entry = await read_entry(cache, profile_cache_key("fitcoach", "pq"))
        assert entry.quality_tag == AnalysisDepth.DEEP
        assert len(entry.payload["latest_posts"]) == 3
        assert_ttl_hours(entry, 48)

    async def test_light_then_deep_acquisition_upgrades_entry(self, cache, scraper_settings, apify_details_item, apify_posts_item):
        stub = ApifyStub((200, [apify_details_item]), (200, [apify_posts_item]))
        acquirer = make_acquirer(stub, cache, scraper_settings)
        key = profile_cache_key("fitcoach", "pq")

        await acquirer.acquire("fitcoach", AnalysisDepth.LIGHT)
        light_entry = await read_entry(cache, key)
        assert light_entry.quality_tag == AnalysisDepth.LIGHT
        assert_ttl_hours(light_entry, 24)

        record = await acquirer.acquire("fitcoach", AnalysisDepth.DEEP)
        deep_entry = await read_entry(cache, key)

        assert stub.actors == [DETAILS_ACTOR, POSTS_ACTOR]
        assert record.depth == AnalysisDepth.DEEP
        assert deep_entry.quality_tag == AnalysisDepth.DEEP
        assert_ttl_hours(deep_entry, 48)

        # Served from the upgraded entry without another scrape
        again = await acquirer.acquire("fitcoach", AnalysisDepth.DEEP)
        assert len(stub.calls) == 2
        assert len(again.latest_posts) == 3

    async def test_cache_key_uses_configured_prefix(self, cache, apify_details_item):
        settings = Settings(_env_file=None, APIFY_API_TOKEN="apify-test-token", cache={"key_prefix": "tenant-a"})
        acquirer = make_acquirer(ApifyStub((200, [apify_details_item])), cache, settings)

        await acquirer.acquire("fitcoach", AnalysisDepth.LIGHT)

        assert await read_entry(cache, profile_cache_key("fitcoach", "tenant-a")) is not None
        assert await read_entry(cache, profile_cache_key("fitcoach", "pq")) is None

    async def test_deep_falls_through_to_secondary(self, cache, scraper_settings, apify_details_item):
        stub = ApifyStub((404, {"error": "not found"}), (200, [apify_details_item]))
        acquirer = make_acquirer(stub, cache, scraper_settings)

        record = await acquirer.acquire("fitcoach", AnalysisDepth.DEEP)

        assert stub.actors == [POSTS_ACTOR, DETAILS_ACTOR]
        assert record.scraper_used == "deep_secondary"
        assert record.depth == AnalysisDepth.DEEP

    async def test_deep_falls_back_to_light(self, cache, scraper_settings, apify_details_item):
        stub = ApifyStub(
            (404, {"error": "not found"}),   # deep_primary
            (404, {"error": "not found"}),   # deep_secondary
            (200, [apify_details_item]),     # light_primary
        )
        acquirer = make_acquirer(stub, cache, scraper_settings)

        record = await acquirer.acquire("fitcoach", AnalysisDepth.DEEP)

        assert record.scraper_used == "light_fallback"
        assert record.depth == AnalysisDepth.LIGHT
        assert record.data_quality == "low"
        assert record.engagement is None
        assert record.latest_posts == []
        assert "usernames" in stub.calls[-1][1]

    async def test_fallback_does_not_replace_better_cache_entry(self, cache, scraper_settings, sample_profile, apify_details_item):
        await seed_cache(cache, sample_profile.to_dict(), AnalysisDepth.DEEP)
        stub = ApifyStub(
            (404, {}), (404, {}), (404, {}), (404, {}),   # extended + deep configs
            (200, [apify_details_item]),                  # light_primary
        )
        acquirer = make_acquirer(stub, cache, scraper_settings)

        record = await acquirer.acquire("fitcoach", AnalysisDepth.EXTENDED)

        assert record.scraper_used == "light_fallback"
        entry = await read_entry(cache, profile_cache_key("fitcoach", "pq"))
        assert entry.quality_tag == AnalysisDepth.DEEP
        assert entry.payload["scraper_used"] == "deep_primary"

    async def test_fallback_failure_raises_structured_error(self, cache, scraper_settings):
        stub = ApifyStub(
            (403, {"error": "private account"}),
            (403, {"error": "private account"}),
            (404, {}),
            (404, {}),
        )
        acquirer = make_acquirer(stub, cache, scraper_settings)

        with pytest.raises(AcquisitionError) as exc_info:
            await acquirer.acquire("fitcoach", AnalysisDepth.DEEP)

        assert exc_info.value.kind == AcquisitionErrorKind.PRIVATE
        assert exc_info.value.subject_id == "fitcoach"

    async def test_light_failure_has_no_fallback(self, cache, scraper_settings):
        stub = ApifyStub((200, []), (200, []))
        acquirer = make_acquirer(stub, cache, scraper_settings)

        with pytest.raises(AcquisitionError) as exc_info:
            await acquirer.acquire("ghost", AnalysisDepth.LIGHT)

        assert exc_info.value.kind == AcquisitionErrorKind.NOT_FOUND
        assert len(stub.calls) == 2
        assert await read_entry(cache, profile_cache_key("ghost", "pq")) is None

    async def test_server_error_is_retried(self, cache, scraper_settings, apify_details_item):
        stub = ApifyStub((500, {"error": "boom"}), (200, [apify_details_item]))
        acquirer = make_acquirer(stub, cache, scraper_settings)

        with patch("services.scraper_service.asyncio.sleep", new=AsyncMock()) as sleep:
            record = await acquirer.acquire("fitcoach", AnalysisDepth.LIGHT)

        assert record.scraper_used == "light_primary"
        assert stub.actors == [DETAILS_ACTOR, DETAILS_ACTOR]
        sleep.assert_awaited_once_with(2)

    async def test_stub_profile_moves_to_next_backend(self, cache, scraper_settings, apify_details_item):
        stub = ApifyStub((200, [{"username": "fitcoach"}]), (200, [apify_details_item]))
        acquirer = make_acquirer(stub, cache, scraper_settings)

        record = await acquirer.acquire("fitcoach", AnalysisDepth.LIGHT)

        assert record.scraper_used == "light_secondary"

    async def test_missing_token(self, cache):
        settings = Settings(_env_file=None, APIFY_API_TOKEN="")
        acquirer = make_acquirer(ApifyStub(), cache, settings)

        with pytest.raises(ConfigurationError):
            await acquirer.acquire("fitcoach", AnalysisDepth.LIGHT)

    async def test_invalid_subject(self, cache, scraper_settings):
        acquirer = make_acquirer(ApifyStub(), cache, scraper_settings)

        with pytest.raises(AcquisitionError) as exc_info:
            await acquirer.acquire("https://instagram.com/", AnalysisDepth.LIGHT)
        assert exc_info.value.kind == AcquisitionErrorKind.NOT_FOUND
