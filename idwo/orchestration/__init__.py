"""
Workflow orchestration: the orchestrator, its state store and the
decision extraction pipeline.
"""

from idwo.orchestration.orchestrator import WorkflowOrchestrator
from idwo.orchestration.state import WorkflowStateStore

__all__ = [
    "WorkflowOrchestrator",
    "WorkflowStateStore",
]
