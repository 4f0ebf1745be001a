"""Rebuild workflow: the stage pipeline and its stage records."""

from .state import StageLog, StageRecord, StageStatus
from .executor import WorkflowExecutor, execute_rebuild_workflow

__all__ = [
    "StageLog",
    "StageRecord",
    "StageStatus",
    "WorkflowExecutor",
    "execute_rebuild_workflow",
]
