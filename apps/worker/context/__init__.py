"""
PipelineContext - per-run state for the qualification workflow
"""

from .pipeline_context import PipelineContext, StageRecord

__all__ = [
    "PipelineContext",
    "StageRecord",
]
