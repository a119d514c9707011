"""
Business Context - one-liner and context pack for a business

Generated context is reused for 24 hours (settings.cache.business_context_fresh_hours).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from config import ModelTier, Settings, get_settings
from schemas.business import BusinessProfile
from schemas.pipeline_types import StageKind, UniversalRequest
from services.model_selector import select_model
from services.provider_adapter import ProviderAdapter

from .prompts import build_business_context_prompt
from .stage_registry import get_stage_spec

logger = logging.getLogger(__name__)

# Same tier the workflows give their context stage
CONTEXT_MODEL_TIER = ModelTier.ECONOMY


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def existing_context(
    business: BusinessProfile,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Stored context if it is complete and fresh, else None"""
    if not (business.one_liner and business.context_pack and business.context_updated_at):
        return None

    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)
    age = now - _as_utc(business.context_updated_at)
    if age >= timedelta(hours=settings.cache.business_context_fresh_hours):
        return None

    return {
        "business_one_liner": business.one_liner,
        "business_context_pack": business.context_pack,
    }


def apply_business_context(business: BusinessProfile, context: Dict[str, Any]) -> None:
    """Store generated context on the business record"""
    business.one_liner = context.get("business_one_liner") or business.one_liner
    business.context_pack = context.get("business_context_pack") or business.context_pack
    business.context_updated_at = datetime.now(timezone.utc)


async def ensure_business_context(
    business: BusinessProfile,
    adapter: ProviderAdapter,
    settings: Optional[Settings] = None,
    request_id: str = "",
) -> Dict[str, Any]:
    """
    Return fresh business context, generating it through the context stage
    spec when the stored one is missing or stale

    Raises:
        ValidationError: the model output is not a valid context
    """
    settings = settings or get_settings()
    current = existing_context(business, settings)
    if current is not None:
        logger.info(f"[BusinessContext] Using stored context for {business.id or business.name} ({request_id})")
        return current

    logger.info(f"[BusinessContext] Generating context for {business.id or business.name} ({request_id})")
    spec = get_stage_spec(StageKind.CONTEXT)
    response = await adapter.execute_request(
        UniversalRequest(
            model_id=select_model(StageKind.CONTEXT.value, CONTEXT_MODEL_TIER),
            system_prompt=spec.system_prompt,
            user_prompt=build_business_context_prompt(business),
            max_tokens=spec.max_tokens,
            temperature=spec.temperature,
            json_schema=spec.json_schema,
        )
    )

    context = spec.parse_output(response.content)

    apply_business_context(business, context)
    logger.info(
        f"[BusinessContext] Generated via {response.model_used} "
        f"(${response.cost:.6f}, {len(context['business_one_liner'])} chars)"
    )
    return context
