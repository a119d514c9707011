"""
Pipeline types shared by the model layer and the workflow engine

- Workflow declarations (WorkflowDefinition / Stage / SkipCondition)
- Model descriptors and the normalized request/response contract
- Per-stage cost records
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple, Dict, Any

from config import ModelTier


# ============================================================================
# Workflow declarations
# ============================================================================

class StageKind(str, Enum):
    """Closed set of stage kinds"""
    TRIAGE = "triage"
    PREPROCESS = "preprocess"
    ANALYSIS = "analysis"
    CONTEXT = "context"


class ConditionOperator(str, Enum):
    GT = ">"
    LT = "<"
    EQ = "=="
    CONTAINS = "contains"


@dataclass(frozen=True)
class SkipCondition:
    """
    One condition on a stage

    skip_if_true=True  -> skip the stage when the condition holds
    skip_if_true=False -> skip the stage when the condition does NOT hold
    """
    field: str                    # dotted path, e.g. "triage.data_richness"
    operator: ConditionOperator
    value: Any
    skip_if_true: bool = False


@dataclass(frozen=True)
class Stage:
    name: str
    kind: StageKind
    required: bool
    model_tier: Optional[ModelTier] = None
    conditions: Tuple[SkipCondition, ...] = ()


@dataclass(frozen=True)
class WorkflowDefinition:
    name: str
    description: str
    stages: Tuple[Stage, ...]

    @property
    def stage_names(self) -> Tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)


# ============================================================================
# Model layer
# ============================================================================

class ProviderKind(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class WireFormat(str, Enum):
    """Request/response shape used to talk to a model"""
    OPENAI_CHAT = "openai_chat"              # messages + max_tokens + temperature
    OPENAI_REASONING = "openai_reasoning"    # messages + max_completion_tokens
    ANTHROPIC_MESSAGES = "anthropic_messages"  # separate system field
    GEMINI_GENERATE = "gemini_generate"      # generate_content + system_instruction


@dataclass(frozen=True)
class ModelDescriptor:
    model_id: str
    api_model: str                 # provider-side model name
    provider: ProviderKind
    wire_format: WireFormat
    price_in_per_million: float    # USD per 1M input tokens
    price_out_per_million: float   # USD per 1M output tokens
    max_output_tokens: int = 16000
    backup: Optional[str] = None


@dataclass(frozen=True)
class UniversalRequest:
    model_id: str
    system_prompt: str
    user_prompt: str
    max_tokens: int
    temperature: float = 0.7
    json_schema: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class UniversalResponse:
    content: str
    input_tokens: int
    output_tokens: int
    cost: float
    model_used: str
    provider: ProviderKind

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


# ============================================================================
# Workflow execution records
# ============================================================================

@dataclass
class StageCost:
    stage: str
    model: str
    cost: float
    tokens_in: int
    tokens_out: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "model": self.model,
            "cost": self.cost,
            "tokens_in": self.tokens_in,
            "tokens_out": self.tokens_out,
        }


@dataclass
class WorkflowResult:
    workflow_used: str
    outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    costs: list = field(default_factory=list)           # List[StageCost]
    performance: Dict[str, int] = field(default_factory=dict)
    skipped: list = field(default_factory=list)         # stage names
    early_exit: bool = False

    @property
    def total_cost(self) -> float:
        return sum(c.cost for c in self.costs)

    @property
    def tokens_in(self) -> int:
        return sum(c.tokens_in for c in self.costs)

    @property
    def tokens_out(self) -> int:
        return sum(c.tokens_out for c in self.costs)
