"""
Model Selector - stage key + tier -> model id
"""

import logging
from typing import Optional, Dict, Any

from config import ModelTier
from exceptions import ConfigurationError
from orchestrator.pipeline_config import STAGE_MODEL_MAP

logger = logging.getLogger(__name__)

# Triage lead_score above which a balanced run is upgraded to premium
HIGH_VALUE_LEAD_THRESHOLD = 70


def select_model(
    stage_key: str,
    tier: ModelTier,
    signal: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Pick the model id for a stage

    Args:
        stage_key: triage / preprocess / context, or an analysis depth
        tier: requested tier
        signal: latest triage output, if any

    Raises:
        ConfigurationError: unknown stage key
    """
    tiers = STAGE_MODEL_MAP.get(stage_key)
    if tiers is None:
        raise ConfigurationError(f"Unknown stage key: {stage_key}")

    tier = ModelTier(tier)
    lead_score = (signal or {}).get("lead_score")

    if (
        tier == ModelTier.BALANCED
        and isinstance(lead_score, (int, float))
        and lead_score > HIGH_VALUE_LEAD_THRESHOLD
    ):
        logger.info(
            f"[ModelSelector] High-value lead ({lead_score}) -> premium model for {stage_key}"
        )
        return tiers[ModelTier.PREMIUM]

    return tiers[tier]
