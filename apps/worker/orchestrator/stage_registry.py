"""
Stage Registry - everything a stage kind needs, in one table

StageKind -> prompt builder, system prompt, JSON schema, max tokens,
result type, model-selection key and optional output hook.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from pydantic import ValidationError as PydanticValidationError

from context.pipeline_context import PipelineContext
from exceptions import ConfigurationError, ValidationError
from schemas.pipeline_types import StageKind
from schemas.stage_schemas import STAGE_RESULT_TYPES, STAGE_SCHEMAS, StageOutput
from utils.llm_output import parse_json_output
from . import prompts

# Triage thresholds below which analysis stops
EARLY_EXIT_LEAD_SCORE = 25
EARLY_EXIT_DATA_RICHNESS = 20


def apply_early_exit_rule(output: Dict[str, Any]) -> Dict[str, Any]:
    """The model's early_exit flag is advisory; the thresholds decide"""
    output["early_exit"] = (
        output.get("lead_score", 0) < EARLY_EXIT_LEAD_SCORE
        or output.get("data_richness", 0) < EARLY_EXIT_DATA_RICHNESS
    )
    return output


@dataclass(frozen=True)
class StageSpec:
    kind: StageKind
    build_prompt: Callable[[PipelineContext], str]
    system_prompt: str
    json_schema: Dict[str, Any]
    max_tokens: int
    result_type: Type[StageOutput]
    temperature: float = 0.7
    post_process: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None

    def model_key(self, ctx: PipelineContext) -> str:
        """Analysis stages select models by depth; the rest by kind"""
        if self.kind == StageKind.ANALYSIS:
            return ctx.analysis_depth.value
        return self.kind.value

    def parse_output(self, content: str) -> Dict[str, Any]:
        """
        Raw model text -> validated stage output, with the output hook applied

        Raises:
            ValidationError: not JSON, or not the stage's result shape
        """
        parsed = parse_json_output(content)
        try:
            output = self.result_type.model_validate(parsed).model_dump()
        except PydanticValidationError as e:
            raise ValidationError(
                f"{self.kind.value} output failed validation: {e.error_count()} error(s)",
                raw_content=content,
                details={"errors": e.errors(include_url=False)},
            ) from e
        if self.post_process is not None:
            output = self.post_process(output)
        return output


STAGE_REGISTRY: Dict[StageKind, StageSpec] = {
    StageKind.TRIAGE: StageSpec(
        kind=StageKind.TRIAGE,
        build_prompt=prompts.build_triage_prompt,
        system_prompt=prompts.TRIAGE_SYSTEM_PROMPT,
        json_schema=STAGE_SCHEMAS[StageKind.TRIAGE],
        max_tokens=10000,
        result_type=STAGE_RESULT_TYPES[StageKind.TRIAGE],
        temperature=0.1,
        post_process=apply_early_exit_rule,
    ),
    StageKind.PREPROCESS: StageSpec(
        kind=StageKind.PREPROCESS,
        build_prompt=prompts.build_preprocess_prompt,
        system_prompt=prompts.PREPROCESS_SYSTEM_PROMPT,
        json_schema=STAGE_SCHEMAS[StageKind.PREPROCESS],
        max_tokens=14000,
        result_type=STAGE_RESULT_TYPES[StageKind.PREPROCESS],
        temperature=0.2,
    ),
    StageKind.ANALYSIS: StageSpec(
        kind=StageKind.ANALYSIS,
        build_prompt=prompts.build_analysis_prompt,
        system_prompt=prompts.ANALYSIS_SYSTEM_PROMPT,
        json_schema=STAGE_SCHEMAS[StageKind.ANALYSIS],
        max_tokens=18000,
        result_type=STAGE_RESULT_TYPES[StageKind.ANALYSIS],
    ),
    StageKind.CONTEXT: StageSpec(
        kind=StageKind.CONTEXT,
        build_prompt=prompts.build_context_prompt,
        system_prompt=prompts.CONTEXT_SYSTEM_PROMPT,
        json_schema=STAGE_SCHEMAS[StageKind.CONTEXT],
        max_tokens=13000,
        result_type=STAGE_RESULT_TYPES[StageKind.CONTEXT],
        temperature=0.3,
    ),
}


def get_stage_spec(kind: StageKind) -> StageSpec:
    try:
        return STAGE_REGISTRY[StageKind(kind)]
    except (KeyError, ValueError):
        raise ConfigurationError(f"Unknown stage kind: {kind}")
