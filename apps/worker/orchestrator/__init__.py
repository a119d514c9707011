"""
Orchestrator - workflow definitions, stage execution and the analysis facade
"""

# Static configuration has no service dependencies; import directly
from .pipeline_config import (
    DEFAULT_MODEL_TIER,
    DEFAULT_WORKFLOW,
    MODELS,
    STAGE_MODEL_MAP,
    WORKFLOWS,
    get_model_descriptor,
    get_workflow,
)


# Engine and facade pull in services; lazy import avoids circular imports
def get_analysis_facade():
    """AnalysisFacade singleton (lazy import)"""
    from .analysis_facade import get_analysis_facade as _get
    return _get()


def create_workflow_engine(adapter, cache=None, settings=None):
    """New WorkflowEngine (lazy import)"""
    from .workflow_engine import WorkflowEngine
    return WorkflowEngine(adapter, cache=cache, settings=settings)


__all__ = [
    # Pipeline config (direct import)
    "DEFAULT_MODEL_TIER",
    "DEFAULT_WORKFLOW",
    "MODELS",
    "STAGE_MODEL_MAP",
    "WORKFLOWS",
    "get_model_descriptor",
    "get_workflow",
    # Lazy imports
    "get_analysis_facade",
    "create_workflow_engine",
]
