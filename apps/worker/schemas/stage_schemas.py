"""
Stage Schemas - structured-output schemas and result types per stage kind

The JSON schemas are sent to providers that support structured outputs.
The pydantic models validate whatever text comes back, regardless of the
provider that produced it.
"""

from typing import Dict, Any, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from .pipeline_types import StageKind


# ─────────────────────────────────────────────────────────────────────────────
# 1. Triage
# ─────────────────────────────────────────────────────────────────────────────
TRIAGE_SCHEMA: Dict[str, Any] = {
    "name": "TriageResult",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "lead_score": {"type": "integer", "minimum": 0, "maximum": 100},
            "data_richness": {"type": "integer", "minimum": 0, "maximum": 100},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "early_exit": {"type": "boolean"},
            "focus_points": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["lead_score", "data_richness", "confidence", "early_exit", "focus_points"],
    },
}


# ─────────────────────────────────────────────────────────────────────────────
# 2. Preprocess (fact extraction)
# ─────────────────────────────────────────────────────────────────────────────
PREPROCESS_SCHEMA: Dict[str, Any] = {
    "name": "PreprocessorResult",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "posting_cadence": {"type": "string"},
            "content_themes": {"type": "array", "items": {"type": "string"}},
            "audience_signals": {"type": "array", "items": {"type": "string"}},
            "brand_mentions": {"type": "array", "items": {"type": "string"}},
            "engagement_patterns": {"type": "string"},
            "collaboration_history": {"type": "string"},
            "contact_readiness": {"type": "string"},
            "content_quality": {"type": "string"},
        },
        "required": [
            "posting_cadence",
            "content_themes",
            "audience_signals",
            "brand_mentions",
            "engagement_patterns",
            "collaboration_history",
            "contact_readiness",
            "content_quality",
        ],
    },
}


# ─────────────────────────────────────────────────────────────────────────────
# 3. Main analysis
# ─────────────────────────────────────────────────────────────────────────────
ANALYSIS_SCHEMA: Dict[str, Any] = {
    "name": "AnalysisResult",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "score": {"type": "integer", "minimum": 0, "maximum": 100},
            "engagement_score": {"type": "integer", "minimum": 0, "maximum": 100},
            "niche_fit": {"type": "integer", "minimum": 0, "maximum": 100},
            "audience_quality": {"type": "string"},
            "engagement_insights": {"type": "string"},
            "selling_points": {"type": "array", "items": {"type": "string"}},
            "reasons": {"type": "array", "items": {"type": "string"}},
        },
        "required": [
            "score",
            "engagement_score",
            "niche_fit",
            "audience_quality",
            "engagement_insights",
            "selling_points",
            "reasons",
        ],
    },
}


# ─────────────────────────────────────────────────────────────────────────────
# 4. Business context
# ─────────────────────────────────────────────────────────────────────────────
CONTEXT_SCHEMA: Dict[str, Any] = {
    "name": "ContextResult",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "business_one_liner": {"type": "string"},
            "business_context_pack": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "niche": {"type": "string"},
                    "value_prop": {"type": "string"},
                    "must_avoid": {"type": "array", "items": {"type": "string"}},
                    "priority_signals": {"type": "array", "items": {"type": "string"}},
                    "tone_words": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["niche", "value_prop", "must_avoid", "priority_signals", "tone_words"],
            },
        },
        "required": ["business_one_liner", "business_context_pack"],
    },
}


# ─────────────────────────────────────────────────────────────────────────────
# Result models
# ─────────────────────────────────────────────────────────────────────────────

class StageOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TriageResult(StageOutput):
    lead_score: int = Field(ge=0, le=100)
    data_richness: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0, le=1)
    early_exit: bool = False
    focus_points: List[str] = Field(default_factory=list)


class PreprocessorResult(StageOutput):
    posting_cadence: str = "insufficient_data"
    content_themes: List[str] = Field(default_factory=list)
    audience_signals: List[str] = Field(default_factory=list)
    brand_mentions: List[str] = Field(default_factory=list)
    engagement_patterns: str = "insufficient_data"
    collaboration_history: str = "insufficient_data"
    contact_readiness: str = "insufficient_data"
    content_quality: str = "insufficient_data"


class AnalysisResult(StageOutput):
    score: int = Field(ge=0, le=100)
    engagement_score: int = Field(ge=0, le=100)
    niche_fit: int = Field(ge=0, le=100)
    audience_quality: str = "Unknown"
    engagement_insights: str = "No insights available"
    selling_points: List[str] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)


class BusinessContextPack(StageOutput):
    niche: str = ""
    value_prop: str = ""
    must_avoid: List[str] = Field(default_factory=list)
    priority_signals: List[str] = Field(default_factory=list)
    tone_words: List[str] = Field(default_factory=list)


class ContextResult(StageOutput):
    business_one_liner: str = Field(min_length=1)
    business_context_pack: Optional[BusinessContextPack] = None


STAGE_SCHEMAS: Dict[StageKind, Dict[str, Any]] = {
    StageKind.TRIAGE: TRIAGE_SCHEMA,
    StageKind.PREPROCESS: PREPROCESS_SCHEMA,
    StageKind.ANALYSIS: ANALYSIS_SCHEMA,
    StageKind.CONTEXT: CONTEXT_SCHEMA,
}

STAGE_RESULT_TYPES: Dict[StageKind, Type[StageOutput]] = {
    StageKind.TRIAGE: TriageResult,
    StageKind.PREPROCESS: PreprocessorResult,
    StageKind.ANALYSIS: AnalysisResult,
    StageKind.CONTEXT: ContextResult,
}
