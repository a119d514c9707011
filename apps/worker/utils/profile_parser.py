"""
Profile Parser - scraper payload normalization

Apify actors disagree on field names (likesCount / likes / like_count ...).
Everything here maps those payloads onto ProfileRecord / PostRecord and
computes engagement from real posts only.
"""

import re
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from config import AnalysisDepth
from schemas.profile import PostRecord, EngagementStats, ProfileRecord

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r"#[\w\u0590-\u05ff]+")
MENTION_PATTERN = re.compile(r"@[\w.]+")
USERNAME_INVALID_CHARS = re.compile(r"[^a-z0-9._]")

# Post samples kept per depth
MAX_POSTS = {
    AnalysisDepth.LIGHT: 0,
    AnalysisDepth.DEEP: 12,
    AnalysisDepth.EXTENDED: 50,
}

_LIKE_FIELDS = ("likesCount", "likes", "like_count", "likeCount")
_COMMENT_FIELDS = ("commentsCount", "comments", "comment_count", "commentCount")
_VIEW_FIELDS = ("viewCount", "views", "video_view_count", "videoViewCount")


def extract_username(raw: str) -> str:
    """
    Normalize a handle or profile URL to a bare lowercase username

    "@Nike" -> "nike", "https://www.instagram.com/nike/" -> "nike"
    """
    if not raw:
        return ""
    cleaned = raw.strip().lstrip("@").lower()

    if "instagram.com" in cleaned:
        if "://" not in cleaned:
            cleaned = f"https://{cleaned}"
        segments = [s for s in urlparse(cleaned).path.split("/") if s]
        cleaned = segments[0] if segments else ""

    return USERNAME_INVALID_CHARS.sub("", cleaned)


def extract_hashtags(text: str) -> List[str]:
    if not text:
        return []
    return [tag.lower() for tag in HASHTAG_PATTERN.findall(text)]


def extract_mentions(text: str) -> List[str]:
    if not text:
        return []
    return [m.lower() for m in MENTION_PATTERN.findall(text)]


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _first(data: Dict[str, Any], fields, default: Any = None) -> Any:
    for name in fields:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return default


def parse_post(raw: Dict[str, Any]) -> PostRecord:
    caption = raw.get("caption") or raw.get("title") or ""
    short_code = str(raw.get("shortCode") or raw.get("code") or "")
    post_type = raw.get("type") or raw.get("__typename") or ("video" if raw.get("isVideo") else "photo")
    views = _to_int(_first(raw, _VIEW_FIELDS, 0))

    return PostRecord(
        id=str(raw.get("id") or short_code),
        short_code=short_code,
        caption=caption,
        likes_count=_to_int(_first(raw, _LIKE_FIELDS, 0)),
        comments_count=_to_int(_first(raw, _COMMENT_FIELDS, 0)),
        timestamp=str(raw.get("timestamp") or raw.get("taken_at") or ""),
        url=raw.get("url") or (f"https://instagram.com/p/{short_code}/" if short_code else ""),
        type=str(post_type),
        hashtags=extract_hashtags(caption),
        mentions=extract_mentions(caption),
        view_count=views or None,
        is_video=bool(raw.get("isVideo") or post_type in ("video", "Video", "GraphVideo")),
    )


def compute_engagement(posts: List[PostRecord], followers: int) -> Optional[EngagementStats]:
    """
    Engagement over posts that have any likes or comments

    Returns None when no post carries engagement; numbers are never guessed.
    """
    valid = [p for p in posts if p.likes_count > 0 or p.comments_count > 0]
    if not valid:
        return None

    avg_likes = round(sum(p.likes_count for p in valid) / len(valid))
    avg_comments = round(sum(p.comments_count for p in valid) / len(valid))
    total = avg_likes + avg_comments
    if total == 0:
        return None

    rate = round(total / followers * 100, 2) if followers > 0 else 0.0
    return EngagementStats(
        avg_likes=avg_likes,
        avg_comments=avg_comments,
        engagement_rate=rate,
        total_engagement=total,
        posts_analyzed=len(valid),
    )


def data_quality_for(post_count: int) -> str:
    if post_count >= 3:
        return "high"
    if post_count >= 1:
        return "medium"
    return "low"


def _find_profile_item(items: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for item in items:
        if item.get("username") or item.get("ownerUsername") or item.get("handle"):
            return item
        if "latestPosts" in item:
            return item
    return None


def normalize_profile(
    items: List[Dict[str, Any]],
    depth: AnalysisDepth,
    scraper_used: str,
) -> ProfileRecord:
    """
    Build a ProfileRecord from an Apify dataset

    Raises:
        ValueError: no profile item, or a username-only stub (profile not found)
    """
    profile = _find_profile_item(items)
    if profile is None:
        raise ValueError("No profile data extracted from scraper response")

    if len(profile) <= 2 and not profile.get("followersCount"):
        raise ValueError("Profile not found: scraper returned a username-only stub")

    depth = AnalysisDepth(depth)
    posts: List[PostRecord] = []
    if depth != AnalysisDepth.LIGHT:
        nested = profile.get("latestPosts")
        if isinstance(nested, list) and nested:
            raw_posts = nested
        else:
            raw_posts = [i for i in items if i.get("shortCode") and _first(i, _LIKE_FIELDS) is not None]
        posts = [parse_post(p) for p in raw_posts[:MAX_POSTS[depth]]]

    followers = _to_int(_first(profile, ("followersCount", "followers", "follower_count"), 0))
    username = profile.get("username") or profile.get("ownerUsername") or profile.get("handle") or ""

    record = ProfileRecord(
        username=str(username).lower(),
        display_name=_first(profile, ("fullName", "displayName", "full_name"), ""),
        bio=_first(profile, ("biography", "bio"), ""),
        followers_count=followers,
        following_count=_to_int(_first(profile, ("followsCount", "followingCount", "following"), 0)),
        posts_count=_to_int(_first(profile, ("postsCount", "posts"), len(posts))),
        is_verified=bool(_first(profile, ("verified", "isVerified", "is_verified"), False)),
        is_private=bool(_first(profile, ("private", "isPrivate", "is_private"), False)),
        is_business_account=bool(_first(profile, ("isBusinessAccount", "is_business_account"), False)),
        profile_pic_url=_first(profile, ("profilePicUrl", "profilePicture", "profile_pic_url"), ""),
        external_url=_first(profile, ("externalUrl", "website", "external_url"), ""),
        latest_posts=posts,
        engagement=compute_engagement(posts, followers),
        scraper_used=scraper_used,
        data_quality="medium" if depth == AnalysisDepth.LIGHT else data_quality_for(len(posts)),
        depth=depth,
    )

    logger.debug(
        f"[ProfileParser] @{record.username}: {len(posts)} posts, "
        f"engagement={'yes' if record.engagement else 'none'}, quality={record.data_quality}"
    )
    return record
