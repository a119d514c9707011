# Schemas Package

from .pipeline_types import (
    StageKind,
    ConditionOperator,
    SkipCondition,
    Stage,
    WorkflowDefinition,
    ProviderKind,
    WireFormat,
    ModelDescriptor,
    UniversalRequest,
    UniversalResponse,
    StageCost,
    WorkflowResult,
)

from .profile import (
    PostRecord,
    EngagementStats,
    ProfileRecord,
)

from .business import BusinessProfile

from .stage_schemas import (
    STAGE_SCHEMAS,
    STAGE_RESULT_TYPES,
    TriageResult,
    PreprocessorResult,
    AnalysisResult,
    ContextResult,
    BusinessContextPack,
)

__all__ = [
    # Pipeline types
    "StageKind",
    "ConditionOperator",
    "SkipCondition",
    "Stage",
    "WorkflowDefinition",
    "ProviderKind",
    "WireFormat",
    "ModelDescriptor",
    "UniversalRequest",
    "UniversalResponse",
    "StageCost",
    "WorkflowResult",
    # Profile records
    "PostRecord",
    "EngagementStats",
    "ProfileRecord",
    # Business
    "BusinessProfile",
    # Stage schemas
    "STAGE_SCHEMAS",
    "STAGE_RESULT_TYPES",
    "TriageResult",
    "PreprocessorResult",
    "AnalysisResult",
    "ContextResult",
    "BusinessContextPack",
]
