"""
Tests for utils/profile_parser.py
"""

import pytest

from config import AnalysisDepth
from schemas.profile import PostRecord
from utils.profile_parser import (
    compute_engagement,
    data_quality_for,
    extract_hashtags,
    extract_mentions,
    extract_username,
    normalize_profile,
    parse_post,
)


class TestExtractUsername:

    @pytest.mark.parametrize("raw,expected", [
        ("@Nike", "nike"),
        ("nike", "nike"),
        ("https://www.instagram.com/nike/", "nike"),
        ("instagram.com/nike?hl=en", "nike"),
        ("  fit.coach_1  ", "fit.coach_1"),
        ("", ""),
        ("https://instagram.com/", ""),
    ])
    def test_normalization(self, raw, expected):
        assert extract_username(raw) == expected


class TestTextExtraction:

    def test_hashtags_lowercased(self):
        assert extract_hashtags("Leg day #Fitness #gym") == ["#fitness", "#gym"]

    def test_mentions(self):
        assert extract_mentions("Thanks @Nike and @peak.supps") == ["@nike", "@peak.supps"]

    def test_empty_text(self):
        assert extract_hashtags("") == []
        assert extract_mentions(None) == []


class TestParsePost:

    def test_alternate_field_names(self):
        post = parse_post({"shortCode": "XY", "caption": "hi #a", "likes": "12", "comment_count": 3, "isVideo": True})
        assert post.id == "XY"
        assert post.likes_count == 12
        assert post.comments_count == 3
        assert post.is_video is True
        assert post.url == "https://instagram.com/p/XY/"
        assert post.hashtags == ["#a"]

    def test_missing_counts_default_to_zero(self):
        post = parse_post({"id": "1"})
        assert post.likes_count == 0
        assert post.view_count is None


class TestComputeEngagement:

    def test_averages_over_posts_with_engagement(self):
        posts = [
            PostRecord(id="1", likes_count=100, comments_count=10),
            PostRecord(id="2", likes_count=300, comments_count=30),
            PostRecord(id="3"),
        ]
        stats = compute_engagement(posts, followers=10_000)
        assert stats.avg_likes == 200
        assert stats.avg_comments == 20
        assert stats.total_engagement == 220
        assert stats.engagement_rate == 2.2
        assert stats.posts_analyzed == 2

    def test_no_engagement_returns_none(self):
        assert compute_engagement([PostRecord(id="1")], followers=500) is None
        assert compute_engagement([], followers=500) is None

    def test_zero_followers(self):
        stats = compute_engagement([PostRecord(id="1", likes_count=5)], followers=0)
        assert stats.engagement_rate == 0.0

    @pytest.mark.parametrize("count,quality", [(0, "low"), (1, "medium"), (2, "medium"), (3, "high")])
    def test_data_quality(self, count, quality):
        assert data_quality_for(count) == quality


class TestNormalizeProfile:

    def test_light_keeps_no_posts(self, apify_posts_item):
        record = normalize_profile([apify_posts_item], AnalysisDepth.LIGHT, "light_primary")
        assert record.username == "fitcoach"
        assert record.followers_count == 25400
        assert record.latest_posts == []
        assert record.has_engagement_data is False
        assert record.data_quality == "medium"
        assert record.depth == AnalysisDepth.LIGHT

    def test_deep_parses_nested_posts(self, apify_posts_item):
        record = normalize_profile([apify_posts_item], AnalysisDepth.DEEP, "deep_primary")
        assert len(record.latest_posts) == 3
        assert record.engagement.posts_analyzed == 3
        assert record.has_engagement_data is True
        assert record.data_quality == "high"
        assert record.scraper_used == "deep_primary"
        assert record.is_business_account is True

    def test_deep_collects_flat_post_items(self, apify_details_item):
        items = [
            apify_details_item,
            {"shortCode": "B1", "likesCount": 50, "commentsCount": 2, "caption": "one"},
        ]
        record = normalize_profile(items, AnalysisDepth.DEEP, "deep_secondary")
        assert [p.short_code for p in record.latest_posts] == ["B1"]
        assert record.data_quality == "medium"

    def test_post_sample_is_capped(self, apify_details_item):
        item = dict(apify_details_item)
        item["latestPosts"] = [{"id": str(i), "likesCount": i + 1} for i in range(20)]
        record = normalize_profile([item], AnalysisDepth.DEEP, "deep_primary")
        assert len(record.latest_posts) == 12

    def test_username_stub_is_not_found(self):
        with pytest.raises(ValueError, match="Profile not found"):
            normalize_profile([{"username": "ghost"}], AnalysisDepth.LIGHT, "light_primary")

    def test_no_profile_item(self):
        with pytest.raises(ValueError):
            normalize_profile([{"error": "nope"}], AnalysisDepth.LIGHT, "light_primary")

    def test_record_round_trips_through_dict(self, apify_posts_item):
        from schemas.profile import ProfileRecord

        record = normalize_profile([apify_posts_item], AnalysisDepth.EXTENDED, "extended_primary")
        restored = ProfileRecord.from_dict(record.to_dict())
        assert restored == record
