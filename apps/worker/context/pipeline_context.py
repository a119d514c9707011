"""
PipelineContext - per-run state shared by the workflow stages

One context per analysis run. Holds the profile and business inputs, the
analysis depth (fixed at construction), and stage outputs in execution order.
Stages only ever see outputs of stages that ran before them.
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, Any, Optional
from dataclasses import dataclass, field

from config import AnalysisDepth, ModelTier
from schemas.business import BusinessProfile
from schemas.pipeline_types import Stage, StageKind
from schemas.profile import ProfileRecord
from utils.structured_logger import LogContext

logger = logging.getLogger(__name__)


@dataclass
class StageRecord:
    """Execution record of one stage"""
    stage_name: str
    kind: StageKind
    status: str = "pending"  # "pending", "running", "completed", "failed", "skipped"
    model: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: int = 0
    error: Optional[str] = None

    def start(self):
        self.status = "running"
        self.started_at = datetime.now()

    def complete(self, model: Optional[str] = None):
        self.status = "completed"
        self.model = model
        self._finish()

    def fail(self, error: str):
        self.status = "failed"
        self.error = error
        self._finish()

    def skip(self):
        self.status = "skipped"

    def _finish(self):
        self.completed_at = datetime.now()
        if self.started_at:
            self.duration_ms = int((self.completed_at - self.started_at).total_seconds() * 1000)


class PipelineContext:
    """
    Mutable per-run context

    Features:
    - immutable analysis depth (read-only property)
    - insertion-ordered stage outputs
    - latest output per stage kind (used by prompts and skip conditions)
    - stage execution records
    """

    def __init__(
        self,
        profile: ProfileRecord,
        business: BusinessProfile,
        analysis_depth: AnalysisDepth,
        model_tier: ModelTier = ModelTier.BALANCED,
        workflow: str = "auto",
        request_id: Optional[str] = None,
    ):
        self.profile = profile
        self.business = business
        self._analysis_depth = AnalysisDepth(analysis_depth)
        self.model_tier = ModelTier(model_tier)
        self.workflow = workflow
        self.request_id = request_id or uuid.uuid4().hex[:8]
        self.started_at = datetime.now()

        self.outputs: Dict[str, Dict[str, Any]] = {}
        self.latest_by_kind: Dict[StageKind, Dict[str, Any]] = {}
        self.stage_records: Dict[str, StageRecord] = {}

        logger.debug(
            f"[PipelineContext] Created {self.request_id} for @{profile.username} "
            f"({self._analysis_depth.value}, {self.model_tier.value})"
        )

    @property
    def analysis_depth(self) -> AnalysisDepth:
        return self._analysis_depth

    # ========================================
    # Stage outputs
    # ========================================

    def record_stage_output(self, stage: Stage, output: Dict[str, Any]) -> None:
        self.outputs[stage.name] = output
        self.latest_by_kind[stage.kind] = output

    def latest(self, kind: StageKind) -> Optional[Dict[str, Any]]:
        return self.latest_by_kind.get(kind)

    @property
    def triage(self) -> Optional[Dict[str, Any]]:
        return self.latest(StageKind.TRIAGE)

    @property
    def preprocess(self) -> Optional[Dict[str, Any]]:
        return self.latest(StageKind.PREPROCESS)

    @property
    def business_one_liner(self) -> str:
        generated = self.latest(StageKind.CONTEXT)
        if generated and generated.get("business_one_liner"):
            return generated["business_one_liner"]
        return self.business.one_liner or self.business.name

    # ========================================
    # Stage records
    # ========================================

    def start_stage(self, stage: Stage) -> StageRecord:
        record = StageRecord(stage_name=stage.name, kind=stage.kind)
        record.start()
        self.stage_records[stage.name] = record
        return record

    def skip_stage(self, stage: Stage) -> None:
        record = StageRecord(stage_name=stage.name, kind=stage.kind)
        record.skip()
        self.stage_records[stage.name] = record

    # ========================================
    # Views
    # ========================================

    def lookup_view(self) -> Dict[str, Any]:
        """
        Merged view for dotted-path lookups: context fields, then stage
        outputs by name (outputs win on a name clash)
        """
        view: Dict[str, Any] = {
            "profile": self.profile.to_dict(),
            "business": self.business.to_dict(),
            "analysis_type": self._analysis_depth.value,
            "analysis_depth": self._analysis_depth.value,
            "model_tier": self.model_tier.value,
            "workflow": self.workflow,
            "request_id": self.request_id,
        }
        if self.triage is not None:
            view["triage"] = self.triage
        if self.preprocess is not None:
            view["preprocess"] = self.preprocess
            view["preprocessor"] = self.preprocess
        if self.latest(StageKind.CONTEXT) is not None:
            view["context"] = self.latest(StageKind.CONTEXT)

        view.update(self.outputs)
        return view

    def log_context(self, **overrides) -> LogContext:
        ctx = LogContext(
            request_id=self.request_id,
            username=self.profile.username,
            depth=self._analysis_depth.value,
            workflow=self.workflow,
        )
        return ctx.child(**overrides) if overrides else ctx
