"""
Pipeline Config - static model, mapping and workflow tables

Tables are built once at import time and are read-only afterwards.
"""

from typing import Dict

from config import ModelTier
from exceptions import ConfigurationError
from schemas.pipeline_types import (
    ModelDescriptor,
    ProviderKind,
    WireFormat,
    Stage,
    StageKind,
    SkipCondition,
    ConditionOperator,
    WorkflowDefinition,
)


# ─────────────────────────────────────────────────────────────────────────────
# Model registry (prices: USD per 1M tokens)
# ─────────────────────────────────────────────────────────────────────────────
MODELS: Dict[str, ModelDescriptor] = {
    "claude-opus-4.1": ModelDescriptor(
        model_id="claude-opus-4.1",
        api_model="claude-opus-4-1-20250805",
        provider=ProviderKind.ANTHROPIC,
        wire_format=WireFormat.ANTHROPIC_MESSAGES,
        price_in_per_million=15.0,
        price_out_per_million=75.0,
        max_output_tokens=8000,
        backup="gpt-5",
    ),
    "gpt-5": ModelDescriptor(
        model_id="gpt-5",
        api_model="gpt-5",
        provider=ProviderKind.OPENAI,
        wire_format=WireFormat.OPENAI_REASONING,
        price_in_per_million=1.25,
        price_out_per_million=10.0,
        max_output_tokens=16000,
        backup="claude-sonnet-4",
    ),
    "claude-sonnet-4": ModelDescriptor(
        model_id="claude-sonnet-4",
        api_model="claude-3-5-sonnet-20241022",
        provider=ProviderKind.ANTHROPIC,
        wire_format=WireFormat.ANTHROPIC_MESSAGES,
        price_in_per_million=3.0,
        price_out_per_million=15.0,
        max_output_tokens=8000,
        backup="gpt-4o",
    ),
    "gpt-4o": ModelDescriptor(
        model_id="gpt-4o",
        api_model="gpt-4o",
        provider=ProviderKind.OPENAI,
        wire_format=WireFormat.OPENAI_CHAT,
        price_in_per_million=2.5,
        price_out_per_million=10.0,
        max_output_tokens=16000,
        backup="gemini-2.5-flash",
    ),
    "gemini-2.5-flash": ModelDescriptor(
        model_id="gemini-2.5-flash",
        api_model="gemini-2.5-flash",
        provider=ProviderKind.GEMINI,
        wire_format=WireFormat.GEMINI_GENERATE,
        price_in_per_million=0.3,
        price_out_per_million=2.5,
        max_output_tokens=16000,
    ),
    "gpt-5-mini": ModelDescriptor(
        model_id="gpt-5-mini",
        api_model="gpt-5-mini",
        provider=ProviderKind.OPENAI,
        wire_format=WireFormat.OPENAI_REASONING,
        price_in_per_million=0.25,
        price_out_per_million=2.0,
        max_output_tokens=16000,
    ),
    "gpt-5-nano": ModelDescriptor(
        model_id="gpt-5-nano",
        api_model="gpt-5-nano",
        provider=ProviderKind.OPENAI,
        wire_format=WireFormat.OPENAI_REASONING,
        price_in_per_million=0.05,
        price_out_per_million=0.4,
        max_output_tokens=16000,
        backup="gpt-5-mini",
    ),
}


# ─────────────────────────────────────────────────────────────────────────────
# Stage key -> tier -> model id
# Stage keys: triage / preprocess / context, and the analysis depths
# ─────────────────────────────────────────────────────────────────────────────
STAGE_MODEL_MAP: Dict[str, Dict[ModelTier, str]] = {
    "triage": {
        ModelTier.PREMIUM: "gpt-5-nano",
        ModelTier.BALANCED: "gpt-5-nano",
        ModelTier.ECONOMY: "gpt-5-nano",
    },
    "preprocess": {
        ModelTier.PREMIUM: "gpt-5-mini",
        ModelTier.BALANCED: "gpt-5-mini",
        ModelTier.ECONOMY: "gpt-5-nano",
    },
    "context": {
        ModelTier.PREMIUM: "gpt-5-mini",
        ModelTier.BALANCED: "gpt-5-mini",
        ModelTier.ECONOMY: "gpt-5-nano",
    },
    "light": {
        ModelTier.PREMIUM: "gpt-5",
        ModelTier.BALANCED: "gpt-4o",
        ModelTier.ECONOMY: "gpt-5-mini",
    },
    "deep": {
        ModelTier.PREMIUM: "claude-opus-4.1",
        ModelTier.BALANCED: "gpt-5",
        ModelTier.ECONOMY: "claude-sonnet-4",
    },
    "extended": {
        ModelTier.PREMIUM: "claude-opus-4.1",
        ModelTier.BALANCED: "claude-sonnet-4",
        ModelTier.ECONOMY: "gpt-5",
    },
}


# ─────────────────────────────────────────────────────────────────────────────
# Workflows
# ─────────────────────────────────────────────────────────────────────────────
WORKFLOWS: Dict[str, WorkflowDefinition] = {
    "micro_only": WorkflowDefinition(
        name="micro_only",
        description="Fast triage, then a light analysis",
        stages=(
            Stage("triage", StageKind.TRIAGE, required=True, model_tier=ModelTier.ECONOMY),
            Stage(
                "light_analysis",
                StageKind.ANALYSIS,
                required=True,
                model_tier=ModelTier.ECONOMY,
                conditions=(
                    SkipCondition("analysis_type", ConditionOperator.EQ, "light"),
                ),
            ),
        ),
    ),
    "auto": WorkflowDefinition(
        name="auto",
        description="Context, triage, optional fact extraction, main analysis",
        stages=(
            Stage("context_generation", StageKind.CONTEXT, required=True, model_tier=ModelTier.ECONOMY),
            Stage("triage", StageKind.TRIAGE, required=True, model_tier=ModelTier.ECONOMY),
            Stage(
                "preprocessor",
                StageKind.PREPROCESS,
                required=False,
                model_tier=ModelTier.ECONOMY,
                conditions=(
                    SkipCondition("triage.data_richness", ConditionOperator.GT, 70),
                ),
            ),
            Stage("main_analysis", StageKind.ANALYSIS, required=True, model_tier=ModelTier.BALANCED),
        ),
    ),
    "full": WorkflowDefinition(
        name="full",
        description="Every stage, all required",
        stages=(
            Stage("context_generation", StageKind.CONTEXT, required=True, model_tier=ModelTier.ECONOMY),
            Stage("triage", StageKind.TRIAGE, required=True, model_tier=ModelTier.ECONOMY),
            Stage("preprocessor", StageKind.PREPROCESS, required=True, model_tier=ModelTier.ECONOMY),
            Stage("main_analysis", StageKind.ANALYSIS, required=True, model_tier=ModelTier.BALANCED),
        ),
    ),
}

DEFAULT_WORKFLOW = "auto"
DEFAULT_MODEL_TIER = ModelTier.BALANCED


def get_workflow(name: str) -> WorkflowDefinition:
    workflow = WORKFLOWS.get(name)
    if workflow is None:
        raise ConfigurationError(
            f"Unknown workflow: {name}",
            details={"available": sorted(WORKFLOWS)},
        )
    return workflow


def get_model_descriptor(model_id: str) -> ModelDescriptor:
    descriptor = MODELS.get(model_id)
    if descriptor is None:
        raise ConfigurationError(f"Unknown model: {model_id}", details={"model_id": model_id})
    return descriptor
