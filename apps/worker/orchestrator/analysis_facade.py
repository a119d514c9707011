"""
Analysis Facade - one call from profile reference to analysis outcome

Flow:
1. acquire the profile (cache-aware, depth-aware)
2. build a PipelineContext
3. run the workflow
4. shape the outcome: verdict, merged cost, credits, timings

Errors never escape run_analysis; they become verdict="error" with the cost
of the stages that completed before the failure.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Union

from config import AnalysisDepth, ModelTier, Settings, get_settings
from context.pipeline_context import PipelineContext
from exceptions import ConfigurationError, StageExecutionError, WorkerError
from schemas.business import BusinessProfile
from schemas.pipeline_types import StageKind, WorkflowResult
from schemas.profile import ProfileRecord
from services.cost_calculator import calculate_credit_cost, monitor_costs
from services.provider_adapter import ProviderAdapter
from services.scraper_service import ProfileAcquirer
from utils.structured_logger import LogContext, log_context

from .business_context import ensure_business_context
from .stage_registry import EARLY_EXIT_LEAD_SCORE
from .workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)

BULK_BATCH_PAUSE_SECONDS = 0.5

ProfileRef = Union[str, ProfileRecord]


@dataclass
class AnalysisOutcome:
    """Result of one analysis run"""
    result: Dict[str, Any]
    cost: Dict[str, Any]
    performance: Dict[str, int]
    verdict: str                      # "success", "early_exit", "error"
    workflow_used: str
    credit_cost: float = 0.0
    early_exit_reason: Optional[str] = None  # "poor_fit", "low_data"
    alerts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "result": self.result,
            "cost": self.cost,
            "performance": self.performance,
            "verdict": self.verdict,
            "workflow_used": self.workflow_used,
            "credit_cost": self.credit_cost,
        }
        if self.early_exit_reason:
            data["early_exit_reason"] = self.early_exit_reason
        if self.alerts:
            data["alerts"] = self.alerts
        return data


def aggregate_costs(result: Optional[WorkflowResult]) -> Dict[str, Any]:
    """Merged cost of the stages that produced output"""
    costs = result.costs if result is not None else []
    return {
        "actual_cost": sum(c.cost for c in costs),
        "tokens_in": sum(c.tokens_in for c in costs),
        "tokens_out": sum(c.tokens_out for c in costs),
        "blocks_used": [c.stage for c in costs],
        "total_blocks": len(costs),
    }


def early_exit_result(triage: Dict[str, Any]) -> Dict[str, Any]:
    poor_fit = triage.get("lead_score", 0) < EARLY_EXIT_LEAD_SCORE
    return {
        "verdict": "low_quality_lead",
        "triage": triage,
        "reason": "Poor business fit" if poor_fit else "Insufficient data",
        "early_exit": True,
    }


def early_exit_reason(triage: Dict[str, Any]) -> str:
    return "poor_fit" if triage.get("lead_score", 0) < EARLY_EXIT_LEAD_SCORE else "low_data"


class AnalysisFacade:
    """
    Entry point for profile analysis

    Usage:
        facade = AnalysisFacade(acquirer, engine, adapter)
        outcome = await facade.run_analysis("@someone", business, AnalysisDepth.DEEP)
    """

    def __init__(
        self,
        acquirer: ProfileAcquirer,
        engine: WorkflowEngine,
        adapter: ProviderAdapter,
        settings: Optional[Settings] = None,
    ):
        self.acquirer = acquirer
        self.engine = engine
        self.adapter = adapter
        self.settings = settings or get_settings()

    async def run_analysis(
        self,
        profile_ref: ProfileRef,
        business: BusinessProfile,
        depth: AnalysisDepth,
        workflow: Optional[str] = None,
        model_tier: Optional[ModelTier] = None,
        request_id: Optional[str] = None,
    ) -> AnalysisOutcome:
        workflow = workflow or self.settings.DEFAULT_WORKFLOW
        request_id = request_id or uuid.uuid4().hex[:8]
        log_ctx = LogContext(request_id=request_id, workflow=workflow)

        start = time.monotonic()
        result: Optional[WorkflowResult] = None
        performance: Dict[str, int] = {}

        try:
            depth = self._parse_option(AnalysisDepth, depth, "analysis depth")
            model_tier = self._parse_option(ModelTier, model_tier or self.settings.DEFAULT_MODEL_TIER, "model tier")
            log_ctx = log_ctx.child(depth=depth.value)

            profile = await self._resolve_profile(profile_ref, depth)
            performance["acquisition"] = int((time.monotonic() - start) * 1000)
            log_ctx = log_ctx.child(username=profile.username)

            ctx = PipelineContext(
                profile=profile,
                business=business,
                analysis_depth=depth,
                model_tier=model_tier,
                workflow=workflow,
                request_id=request_id,
            )
            result = await self.engine.execute(workflow, ctx)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if isinstance(e, StageExecutionError):
                result = e.partial_result
            message = e.message if isinstance(e, WorkerError) else str(e)
            if result is not None:
                performance.update(result.performance)
            performance["total"] = int((time.monotonic() - start) * 1000)

            logger.error(
                f"[AnalysisFacade] Analysis failed: {message}",
                extra=log_context(log_ctx, error_type=type(e).__name__),
            )
            return AnalysisOutcome(
                result={"error": message},
                cost=aggregate_costs(result),
                performance=performance,
                verdict="error",
                workflow_used=result.workflow_used if result is not None else workflow,
            )

        performance.update(result.performance)
        performance["total"] = int((time.monotonic() - start) * 1000)
        cost = aggregate_costs(result)
        tokens_used = cost["tokens_in"] + cost["tokens_out"]
        credit_cost = calculate_credit_cost(depth, cost["actual_cost"], tokens_used, self.settings.pricing)
        alerts = monitor_costs(depth, cost["actual_cost"], tokens_used, credit_cost, self.settings.pricing)

        triage = ctx.triage or {}
        if result.early_exit:
            logger.info(
                f"[AnalysisFacade] Early exit (lead_score={triage.get('lead_score')}, "
                f"data_richness={triage.get('data_richness')})",
                extra=log_context(log_ctx, total_ms=performance["total"]),
            )
            return AnalysisOutcome(
                result=early_exit_result(triage),
                cost=cost,
                performance=performance,
                verdict="early_exit",
                workflow_used=result.workflow_used,
                credit_cost=credit_cost,
                early_exit_reason=early_exit_reason(triage),
                alerts=[a.alert_type for a in alerts],
            )

        main = dict(ctx.latest(StageKind.ANALYSIS) or {})
        main["pipeline_metadata"] = {
            "triage": ctx.triage,
            "preprocessor": ctx.preprocess,
            "workflow_used": result.workflow_used,
            "skipped": list(result.skipped),
            "data_quality": ctx.profile.data_quality,
            "scraper_used": ctx.profile.scraper_used,
        }

        logger.info(
            f"[AnalysisFacade] Completed @{ctx.profile.username} "
            f"(blocks={'+'.join(cost['blocks_used'])}, ${cost['actual_cost']:.6f}, credits={credit_cost})",
            extra=log_context(log_ctx, total_ms=performance["total"]),
        )
        return AnalysisOutcome(
            result=main,
            cost=cost,
            performance=performance,
            verdict="success",
            workflow_used=result.workflow_used,
            credit_cost=credit_cost,
            alerts=[a.alert_type for a in alerts],
        )

    async def run_bulk_analysis(
        self,
        profile_refs: List[ProfileRef],
        business: BusinessProfile,
        depth: AnalysisDepth,
        workflow: Optional[str] = None,
        model_tier: Optional[ModelTier] = None,
        request_id: Optional[str] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[AnalysisOutcome]:
        """
        Analyze profiles in small concurrent batches

        Business context is generated once up front so batch members do not
        race to create it. Each run works on its own copy of the business
        record. Outcomes keep input order.
        """
        request_id = request_id or uuid.uuid4().hex[:8]
        batch_size = max(1, self.settings.BULK_BATCH_SIZE)
        total = len(profile_refs)

        logger.info(f"[AnalysisFacade] Bulk analysis of {total} profiles ({request_id}, batch={batch_size})")

        try:
            await ensure_business_context(business, self.adapter, self.settings, request_id)
        except Exception as e:
            # Each run regenerates context through its own context stage
            logger.warning(f"[AnalysisFacade] Business context warm-up failed: {e}")

        outcomes: List[AnalysisOutcome] = []
        for offset in range(0, total, batch_size):
            batch = profile_refs[offset:offset + batch_size]
            outcomes.extend(await asyncio.gather(*[
                self.run_analysis(
                    ref,
                    replace(business, pain_points=list(business.pain_points)),
                    depth,
                    workflow=workflow,
                    model_tier=model_tier,
                    request_id=f"{request_id}-{offset + i}",
                )
                for i, ref in enumerate(batch)
            ]))

            done = min(offset + batch_size, total)
            if progress_callback is not None:
                progress_callback(done, total)
            if done < total:
                await asyncio.sleep(BULK_BATCH_PAUSE_SECONDS)

        successes = sum(1 for o in outcomes if o.verdict == "success")
        logger.info(f"[AnalysisFacade] Bulk analysis done: {successes}/{total} succeeded")
        return outcomes

    @staticmethod
    def _parse_option(enum_type, value, label):
        try:
            return enum_type(value)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_type)
            raise ConfigurationError(f"Unknown {label}: {value} (expected one of: {allowed})")

    async def _resolve_profile(self, profile_ref: ProfileRef, depth: AnalysisDepth) -> ProfileRecord:
        if isinstance(profile_ref, ProfileRecord):
            return profile_ref
        return await self.acquirer.acquire(profile_ref, depth)


_analysis_facade: Optional[AnalysisFacade] = None


def get_analysis_facade() -> AnalysisFacade:
    """AnalysisFacade singleton wired from settings"""
    global _analysis_facade
    if _analysis_facade is None:
        from services.cache_store import build_cache_store
        from services.provider_adapter import get_provider_adapter
        from services.secret_manager import get_secret_manager

        settings = get_settings()
        cache = build_cache_store(settings)
        adapter = get_provider_adapter()
        _analysis_facade = AnalysisFacade(
            acquirer=ProfileAcquirer(cache, get_secret_manager(), settings),
            engine=WorkflowEngine(adapter, cache, settings),
            adapter=adapter,
            settings=settings,
        )
    return _analysis_facade
