"""
Scraper Configs - Apify actor definitions per analysis depth

Lower priority runs first. Extended depth tries its own actors, then the
deep actors.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from config import AnalysisDepth

DETAILS_ACTOR = "dSCLg0C3YEZ83HzYX"
POSTS_ACTOR = "shu8hvrXbJbY3Eb9W"
RUN_SYNC_PATH = "run-sync-get-dataset-items"


@dataclass(frozen=True)
class ScraperConfig:
    name: str
    endpoint: str                  # Apify actor id
    timeout: float                 # seconds
    max_retries: int
    retry_delay: float             # seconds, multiplied by the attempt number
    input_builder: Callable[[str], Dict[str, Any]]
    priority: int = 1
    depth: AnalysisDepth = AnalysisDepth.LIGHT   # quality this config can deliver


def details_input(username: str) -> Dict[str, Any]:
    return {
        "usernames": [username],
        "resultsType": "details",
        "resultsLimit": 1,
        "addParentData": False,
    }


def posts_input(results_limit: int) -> Callable[[str], Dict[str, Any]]:
    def build(username: str) -> Dict[str, Any]:
        return {
            "addParentData": False,
            "directUrls": [f"https://instagram.com/{username}/"],
            "enhanceUserSearchWithFacebookPage": False,
            "isUserReelFeedURL": False,
            "isUserTaggedFeedURL": False,
            "resultsLimit": results_limit,
            "resultsType": "details",
            "searchType": "hashtag",
        }
    return build


LIGHT_SCRAPER_CONFIGS: List[ScraperConfig] = [
    ScraperConfig("light_primary", DETAILS_ACTOR, 30, 2, 2, details_input, priority=1),
    ScraperConfig("light_secondary", POSTS_ACTOR, 30, 2, 3, details_input, priority=2),
]

DEEP_SCRAPER_CONFIGS: List[ScraperConfig] = [
    ScraperConfig("deep_primary", POSTS_ACTOR, 60, 2, 3, posts_input(12), priority=1, depth=AnalysisDepth.DEEP),
    ScraperConfig("deep_secondary", DETAILS_ACTOR, 90, 1, 8, details_input, priority=2, depth=AnalysisDepth.DEEP),
]

EXTENDED_SCRAPER_CONFIGS: List[ScraperConfig] = [
    ScraperConfig("extended_primary", POSTS_ACTOR, 120, 1, 10, posts_input(50), priority=1, depth=AnalysisDepth.EXTENDED),
    ScraperConfig("extended_secondary", DETAILS_ACTOR, 90, 1, 8, details_input, priority=2, depth=AnalysisDepth.EXTENDED),
]


def get_scraper_configs(depth: AnalysisDepth) -> List[ScraperConfig]:
    """Ordered configs for a depth (stable sort keeps declaration order on ties)"""
    depth = AnalysisDepth(depth)
    if depth == AnalysisDepth.LIGHT:
        configs = list(LIGHT_SCRAPER_CONFIGS)
    elif depth == AnalysisDepth.DEEP:
        configs = list(DEEP_SCRAPER_CONFIGS)
    else:
        configs = EXTENDED_SCRAPER_CONFIGS + DEEP_SCRAPER_CONFIGS
    return sorted(configs, key=lambda c: c.priority)


def build_scraper_url(base_url: str, endpoint: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/{endpoint}/{RUN_SYNC_PATH}?token={token}"


def validate_scraper_response(response: Any, depth: AnalysisDepth) -> bool:
    """Shape check before normalization; depth decides how much data is enough"""
    if not isinstance(response, list) or not response:
        return False

    first = response[0]
    if not isinstance(first, dict):
        return False
    if not first.get("username") and not first.get("handle"):
        return False

    depth = AnalysisDepth(depth)
    has_posts = bool(first.get("posts") or first.get("latestPosts"))

    if depth == AnalysisDepth.DEEP:
        try:
            posts_count = int(first.get("postsCount") or 0)
        except (TypeError, ValueError):
            posts_count = 0
        return has_posts or posts_count > 0
    if depth == AnalysisDepth.EXTENDED:
        has_followers = first.get("followersCount") is not None or first.get("followers") is not None
        return has_posts and has_followers
    return True
