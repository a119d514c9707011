"""
Prompt builders per stage kind

Every builder reads only the context (profile, business, outputs of earlier
stages) and returns the user prompt text.
"""

from typing import List

from context.pipeline_context import PipelineContext
from schemas.business import BusinessProfile
from schemas.profile import ProfileRecord


# ─────────────────────────────────────────────────────────────────────────────
# System prompts
# ─────────────────────────────────────────────────────────────────────────────
TRIAGE_SYSTEM_PROMPT = (
    "You are a rapid assessment specialist. Analyze profiles quickly and return valid JSON. "
    "Be decisive: most profiles should get a clear pass or fail."
)
PREPROCESS_SYSTEM_PROMPT = (
    "You are a data extraction specialist. Extract structured facts from profiles. "
    "Report only what the data shows."
)
ANALYSIS_SYSTEM_PROMPT = (
    "You are a business analyst specializing in influencer partnerships. Return valid JSON."
)
CONTEXT_SYSTEM_PROMPT = (
    "You are a business strategist. Generate business context and one-liners. "
    "Return only valid JSON matching the schema."
)


def _caption_samples(profile: ProfileRecord, count: int, width: int) -> List[str]:
    samples = []
    for post in profile.latest_posts[:count]:
        caption = (post.caption or "").strip().replace("\n", " ")
        if caption:
            samples.append(caption[:width] + ("..." if len(caption) > width else ""))
    return samples


def _engagement_line(profile: ProfileRecord) -> str:
    e = profile.engagement
    if e is None:
        return "Not available"
    return (
        f"{e.engagement_rate}% rate ({e.avg_likes:,} avg likes, "
        f"{e.avg_comments:,} avg comments over {e.posts_analyzed} posts)"
    )


def build_triage_prompt(ctx: PipelineContext) -> str:
    profile = ctx.profile
    captions = _caption_samples(profile, 3, 80)

    return f"""# LEAD TRIAGE

## BUSINESS
{ctx.business_one_liner}

## PROFILE
- Username: @{profile.username}
- Followers: {profile.followers_count:,}
- Status: {"Verified" if profile.is_verified else "Unverified"} | {"Private" if profile.is_private else "Public"}
- Bio: "{profile.bio or 'No bio'}"
- External link: {profile.external_url or 'None'}
- Sample captions: {" | ".join(f'"{c}"' for c in captions) if captions else 'None available'}
- Engagement: {_engagement_line(profile)}

## TASK
Score the profile:
- lead_score (0-100): business fit potential
- data_richness (0-100): how much usable information is available
- confidence (0-1): certainty about both scores
- focus_points: 2-4 observations that drove the scores
- early_exit: true if lead_score < 25 or data_richness < 20

Return only valid JSON:
{{"lead_score": 0, "data_richness": 0, "confidence": 0.0, "early_exit": false, "focus_points": []}}"""


def build_preprocess_prompt(ctx: PipelineContext) -> str:
    profile = ctx.profile
    post_lines = []
    for i, post in enumerate(profile.latest_posts[:8], start=1):
        caption = (post.caption or "")[:150]
        post_lines.append(
            f"- Post {i}: {post.likes_count:,} likes, {post.comments_count:,} comments. Caption: \"{caption}\""
        )

    return f"""# DATA EXTRACTION

## PROFILE
- Username: @{profile.username}
- Followers: {profile.followers_count:,}
- Bio: "{profile.bio or 'No bio'}"
- External link: {profile.external_url or 'None'}
- Account: {"Business" if profile.is_business_account else "Personal"} | {"Verified" if profile.is_verified else "Unverified"}
- Engagement: {_engagement_line(profile)}

## POSTS ({len(profile.latest_posts)} available)
{chr(10).join(post_lines) if post_lines else 'No recent posts'}

## TASK
Extract only what the data above shows. Use "insufficient_data" where unclear.
Fields: posting_cadence, content_themes (3-5), audience_signals (2-4), brand_mentions,
engagement_patterns, collaboration_history, contact_readiness, content_quality.
Return only valid JSON."""


def build_analysis_prompt(ctx: PipelineContext) -> str:
    profile = ctx.profile
    triage = ctx.triage or {}
    facts = ctx.preprocess or {}
    themes = ", ".join((facts.get("content_themes") or [])[:3]) or "unknown"

    lines = [
        "# PARTNERSHIP ANALYSIS",
        "",
        "## BUSINESS",
        ctx.business_one_liner,
        f"Target audience: {ctx.business.target_audience or 'Not specified'}",
        "",
        "## PROFILE",
        f"- Username: @{profile.username}",
        f"- Followers: {profile.followers_count:,} | Following: {profile.following_count:,} | Posts: {profile.posts_count:,}",
        f"- Bio: \"{(profile.bio or '')[:200]}\"",
        f"- Engagement: {_engagement_line(profile)}",
        f"- Data quality: {profile.data_quality}",
        f"- Content themes: {themes}",
    ]
    if triage:
        lines.append(f"- Triage: lead_score {triage.get('lead_score')}, data_richness {triage.get('data_richness')}")
    if facts:
        lines.append(f"- Collaboration history: {facts.get('collaboration_history', 'unknown')}")
        lines.append(f"- Contact readiness: {facts.get('contact_readiness', 'unknown')}")

    captions = _caption_samples(profile, 5, 120)
    if captions:
        lines.append("")
        lines.append("## RECENT CAPTIONS")
        lines.extend(f"- {c}" for c in captions)

    lines.extend([
        "",
        "## TASK",
        "Return JSON: score (0-100), engagement_score (0-100), niche_fit (0-100), audience_quality,",
        "engagement_insights, selling_points[], reasons[].",
        "Do not invent engagement numbers that are not listed above.",
    ])
    return "\n".join(lines)


def build_business_context_prompt(business: BusinessProfile) -> str:
    pain_points = ", ".join(business.pain_points) if business.pain_points else "Not specified"
    return f"""# BUSINESS CONTEXT

- Name: {business.name}
- Industry: {business.industry or 'Not specified'}
- Target audience: {business.target_audience or 'Not specified'}
- Value proposition: {business.value_proposition or 'Not specified'}
- Pain points solved: {pain_points}

Write business_one_liner: one sentence (max 140 chars) stating who the business
helps, with what outcome, and how.

Write business_context_pack:
- niche: the market niche in a few words
- value_prop: the core promise
- must_avoid: partner traits that would hurt the brand
- priority_signals: profile signals that indicate a strong partner
- tone_words: 3-5 words for the brand voice

Return only valid JSON."""


def build_context_prompt(ctx: PipelineContext) -> str:
    return build_business_context_prompt(ctx.business)
