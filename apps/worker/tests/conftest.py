"""
Worker Test Configuration
"""
import json
import os
import sys
from pathlib import Path

# Add worker directory to path for imports
worker_dir = Path(__file__).parent.parent
sys.path.insert(0, str(worker_dir))

import pytest

from config import AnalysisDepth, Settings
from schemas.business import BusinessProfile
from schemas.pipeline_types import ProviderKind, UniversalResponse
from schemas.profile import EngagementStats, PostRecord, ProfileRecord


# Heading of each stage's user prompt, used to route scripted responses
TRIAGE = "# LEAD TRIAGE"
PREPROCESS = "# DATA EXTRACTION"
ANALYSIS = "# PARTNERSHIP ANALYSIS"
CONTEXT = "# BUSINESS CONTEXT"


class ScriptedAdapter:
    """
    Stand-in for ProviderAdapter

    responses maps a prompt heading to a dict (returned as JSON), a raw
    string, or an exception to raise.
    """

    def __init__(self, responses, cost=0.001, tokens=(100, 50)):
        self.responses = dict(responses)
        self.cost = cost
        self.tokens = tokens
        self.requests = []

    def calls_for(self, heading):
        return [r for r in self.requests if r.user_prompt.startswith(heading)]

    async def execute_request(self, request):
        self.requests.append(request)
        for heading, response in self.responses.items():
            if request.user_prompt.startswith(heading):
                if isinstance(response, Exception):
                    raise response
                content = response if isinstance(response, str) else json.dumps(response)
                return UniversalResponse(
                    content=content,
                    input_tokens=self.tokens[0],
                    output_tokens=self.tokens[1],
                    cost=self.cost,
                    model_used=request.model_id,
                    provider=ProviderKind.OPENAI,
                )
        raise AssertionError(f"Unexpected prompt: {request.user_prompt[:40]}")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Drop exported worker variables (API keys, TIMEOUT__LLM ...) for every test"""
    names = {name.upper() for name in Settings.model_fields}
    for key in list(os.environ):
        if key.upper().split("__")[0] in names:
            monkeypatch.delenv(key)


@pytest.fixture
def settings():
    """Settings with defaults only (no .env)"""
    return Settings(_env_file=None)


@pytest.fixture
def sample_posts():
    return [
        PostRecord(id="p1", short_code="A1", caption="Morning run #fitness @nike", likes_count=1200, comments_count=40),
        PostRecord(id="p2", short_code="A2", caption="Meal prep sunday #nutrition", likes_count=900, comments_count=25),
        PostRecord(id="p3", short_code="A3", caption="New gym gear", likes_count=1500, comments_count=60),
    ]


@pytest.fixture
def sample_profile(sample_posts):
    """Deep-quality fitness profile"""
    return ProfileRecord(
        username="fitcoach",
        display_name="Fit Coach",
        bio="Certified trainer | DM for coaching",
        followers_count=25_400,
        following_count=310,
        posts_count=480,
        is_business_account=True,
        external_url="https://fitcoach.example.com",
        latest_posts=sample_posts,
        engagement=EngagementStats(
            avg_likes=1200,
            avg_comments=42,
            engagement_rate=4.89,
            total_engagement=1242,
            posts_analyzed=3,
        ),
        scraper_used="deep_primary",
        data_quality="high",
        depth=AnalysisDepth.DEEP,
    )


@pytest.fixture
def sample_business():
    return BusinessProfile(
        name="Peak Supplements",
        id="biz-1",
        industry="Fitness nutrition",
        target_audience="Amateur athletes 20-35",
        value_proposition="Clean protein without additives",
        pain_points=["hidden sugar", "poor taste"],
    )


@pytest.fixture
def triage_pass():
    return {"lead_score": 82, "data_richness": 80, "confidence": 0.9, "early_exit": False, "focus_points": ["fitness niche"]}


@pytest.fixture
def preprocess_output():
    return {
        "posting_cadence": "3 posts per week",
        "content_themes": ["training", "nutrition", "gear"],
        "audience_signals": ["young athletes"],
        "brand_mentions": ["nike"],
        "engagement_patterns": "steady",
        "collaboration_history": "occasional sponsored posts",
        "contact_readiness": "email in bio",
        "content_quality": "high",
    }


@pytest.fixture
def analysis_output():
    return {
        "score": 78,
        "engagement_score": 70,
        "niche_fit": 85,
        "audience_quality": "High",
        "engagement_insights": "Consistent engagement around training content",
        "selling_points": ["authentic voice"],
        "reasons": ["audience overlaps target market"],
    }


@pytest.fixture
def context_output():
    return {
        "business_one_liner": "Peak Supplements helps amateur athletes recover with clean protein.",
        "business_context_pack": {
            "niche": "sports nutrition",
            "value_prop": "clean protein",
            "must_avoid": ["fad diets"],
            "priority_signals": ["training content"],
            "tone_words": ["honest", "energetic", "practical"],
        },
    }


@pytest.fixture
def apify_details_item():
    """One item as returned by the details actor"""
    return {
        "username": "fitcoach",
        "fullName": "Fit Coach",
        "biography": "Certified trainer",
        "followersCount": 25400,
        "followsCount": 310,
        "postsCount": 480,
        "verified": False,
        "private": False,
        "isBusinessAccount": True,
        "externalUrl": "https://fitcoach.example.com",
    }


@pytest.fixture
def apify_posts_item(apify_details_item):
    """Details item with nested latestPosts, as returned by the posts actor"""
    item = dict(apify_details_item)
    item["latestPosts"] = [
        {"id": "p1", "shortCode": "A1", "caption": "Morning run #fitness", "likesCount": 1200, "commentsCount": 40},
        {"id": "p2", "shortCode": "A2", "caption": "Meal prep @chef", "likesCount": 900, "commentsCount": 25},
        {"id": "p3", "shortCode": "A3", "caption": "New gear", "likesCount": 1500, "commentsCount": 60},
    ]
    return item
