"""
Workflow Engine - runs a named workflow over a PipelineContext

Per stage, in declared order:
1. evaluate skip conditions against the context's merged view
2. preprocess stages consult the preprocessor cache; context stages reuse
   fresh stored business context
3. build prompt, select model, call the provider adapter
4. strip code fences, parse JSON, validate into the stage's result type
5. record output, cost and duration

A failing required stage aborts the run (StageExecutionError); a failing
optional stage is logged and leaves no output. A triage verdict of
early_exit stops the run after triage.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from config import AnalysisDepth, Settings, get_settings
from context.pipeline_context import PipelineContext
from exceptions import StageExecutionError
from schemas.pipeline_types import (
    Stage,
    StageCost,
    StageKind,
    UniversalRequest,
    WorkflowResult,
)
from services.cache_store import (
    CacheEntry,
    CacheStore,
    now_ms,
    preprocessor_cache_key,
    read_entry,
    write_entry,
)
from services.model_selector import select_model
from services.provider_adapter import ProviderAdapter
from utils.structured_logger import log_context

from .business_context import apply_business_context, existing_context
from .conditions import should_skip
from .pipeline_config import get_workflow
from .stage_registry import get_stage_spec

logger = logging.getLogger(__name__)

CACHED_MODEL = "cached"


class WorkflowEngine:
    """Executes workflow definitions; holds no per-run state"""

    def __init__(
        self,
        adapter: ProviderAdapter,
        cache: Optional[CacheStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.adapter = adapter
        self.cache = cache
        self.settings = settings or get_settings()

    async def execute(self, workflow_name: str, ctx: PipelineContext) -> WorkflowResult:
        """
        Run a workflow

        Raises:
            ConfigurationError: unknown workflow name
            StageExecutionError: a required stage failed
        """
        workflow = get_workflow(workflow_name)
        result = WorkflowResult(workflow_used=workflow.name)

        logger.info(
            f"[WorkflowEngine] Starting {workflow.name} ({len(workflow.stages)} stages)",
            extra=log_context(ctx.log_context()),
        )

        for stage in workflow.stages:
            if should_skip(stage, ctx.lookup_view()):
                ctx.skip_stage(stage)
                result.skipped.append(stage.name)
                logger.info(
                    f"[WorkflowEngine] Skipping {stage.name}",
                    extra=log_context(ctx.log_context(stage=stage.name)),
                )
                continue

            record = ctx.start_stage(stage)
            stage_start = time.monotonic()

            try:
                output, cost = await self._execute_stage(stage, ctx)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                record.fail(str(e))
                if stage.required:
                    logger.error(
                        f"[WorkflowEngine] Required stage {stage.name} failed: {e}",
                        extra=log_context(ctx.log_context(stage=stage.name)),
                    )
                    raise StageExecutionError(stage.name, e, partial_result=result) from e

                logger.warning(
                    f"[WorkflowEngine] Optional stage {stage.name} failed, continuing: {e}",
                    extra=log_context(ctx.log_context(stage=stage.name)),
                )
                continue

            ctx.record_stage_output(stage, output)
            record.complete(model=cost.model)
            result.outputs[stage.name] = output
            result.costs.append(cost)
            result.performance[stage.name] = int((time.monotonic() - stage_start) * 1000)

            if stage.kind == StageKind.TRIAGE and output.get("early_exit"):
                result.early_exit = True
                logger.info(
                    f"[WorkflowEngine] Early exit after {stage.name} "
                    f"(lead_score={output.get('lead_score')}, data_richness={output.get('data_richness')})",
                    extra=log_context(ctx.log_context(stage=stage.name)),
                )
                break

        logger.info(
            f"[WorkflowEngine] {workflow.name} done - {len(result.costs)} stages, "
            f"${result.total_cost:.6f}, skipped={result.skipped}",
            extra=log_context(ctx.log_context()),
        )
        return result

    # ─────────────────────────────────────────────────
    # Stage execution
    # ─────────────────────────────────────────────────

    async def _execute_stage(self, stage: Stage, ctx: PipelineContext):
        spec = get_stage_spec(stage.kind)

        cache_key = None
        if stage.kind == StageKind.PREPROCESS and self.cache is not None:
            cache_key = self._preprocess_key(ctx)
            cached = await read_entry(self.cache, cache_key)
            if cached is not None:
                logger.info(f"[WorkflowEngine] Preprocessor cache hit for @{ctx.profile.username}")
                return cached.payload, StageCost(stage.name, CACHED_MODEL, 0.0, 0, 0)

        if stage.kind == StageKind.CONTEXT:
            stored = existing_context(ctx.business, self.settings)
            if stored is not None:
                return stored, StageCost(stage.name, CACHED_MODEL, 0.0, 0, 0)

        tier = stage.model_tier or ctx.model_tier
        model_id = select_model(spec.model_key(ctx), tier, ctx.triage)

        response = await self.adapter.execute_request(
            UniversalRequest(
                model_id=model_id,
                system_prompt=spec.system_prompt,
                user_prompt=spec.build_prompt(ctx),
                max_tokens=spec.max_tokens,
                temperature=spec.temperature,
                json_schema=spec.json_schema,
            )
        )

        output = spec.parse_output(response.content)

        if cache_key is not None:
            await asyncio.shield(self._store_preprocess(cache_key, output, ctx.analysis_depth))
        if stage.kind == StageKind.CONTEXT:
            apply_business_context(ctx.business, output)

        cost = StageCost(
            stage=stage.name,
            model=response.model_used,
            cost=response.cost,
            tokens_in=response.input_tokens,
            tokens_out=response.output_tokens,
        )
        return output, cost

    # ─────────────────────────────────────────────────
    # Preprocessor cache
    # ─────────────────────────────────────────────────

    def _preprocess_key(self, ctx: PipelineContext) -> str:
        profile = ctx.profile
        return preprocessor_cache_key(
            profile.username,
            profile.followers_count,
            [(post.id, post.likes_count) for post in profile.latest_posts],
            self.settings.cache.key_prefix,
        )

    async def _store_preprocess(self, key: str, output: Dict[str, Any], depth: AnalysisDepth) -> None:
        ttl_ms = self.settings.cache.preprocessor_ttl_hours * 3600 * 1000
        await write_entry(
            self.cache,
            key,
            CacheEntry(payload=output, expires_at_ms=now_ms() + ttl_ms, quality_tag=depth),
        )
