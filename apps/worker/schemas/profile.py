"""
Profile records produced by the acquisition layer

Records round-trip through dicts so they can be stored in the cache.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any

from config import AnalysisDepth


@dataclass
class PostRecord:
    id: str
    short_code: str = ""
    caption: str = ""
    likes_count: int = 0
    comments_count: int = 0
    timestamp: str = ""
    url: str = ""
    type: str = ""
    hashtags: List[str] = field(default_factory=list)
    mentions: List[str] = field(default_factory=list)
    view_count: Optional[int] = None
    is_video: bool = False


@dataclass
class EngagementStats:
    """Engagement computed from real scraped posts only"""
    avg_likes: int
    avg_comments: int
    engagement_rate: float   # percent of followers
    total_engagement: int
    posts_analyzed: int


@dataclass
class ProfileRecord:
    username: str
    display_name: str = ""
    bio: str = ""
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0
    is_verified: bool = False
    is_private: bool = False
    is_business_account: bool = False
    profile_pic_url: str = ""
    external_url: str = ""
    latest_posts: List[PostRecord] = field(default_factory=list)
    engagement: Optional[EngagementStats] = None
    scraper_used: str = ""
    data_quality: str = "low"              # high / medium / low
    depth: AnalysisDepth = AnalysisDepth.LIGHT

    @property
    def has_engagement_data(self) -> bool:
        return self.engagement is not None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["depth"] = self.depth.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileRecord":
        data = dict(data)
        posts = [PostRecord(**p) for p in data.pop("latest_posts", None) or []]
        engagement = data.pop("engagement", None)
        depth = AnalysisDepth(data.pop("depth", AnalysisDepth.LIGHT.value))
        return cls(
            latest_posts=posts,
            engagement=EngagementStats(**engagement) if engagement else None,
            depth=depth,
            **data,
        )
