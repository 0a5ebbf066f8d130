"""
In-memory workflow state store.

One store per orchestrator instance. Records are replaced whole on every
put and are never deleted; nothing survives a restart.
"""

from typing import Iterator

from idwo.errors import WorkflowNotFoundError
from idwo.models.workflow import WorkflowStatus
from idwo.utils.logging import get_logger

logger = get_logger(__name__)


class WorkflowStateStore:
    """Map of workflow id -> latest WorkflowStatus. Last put wins."""

    def __init__(self) -> None:
        self._records: dict[str, WorkflowStatus] = {}

    def put(self, status: WorkflowStatus) -> WorkflowStatus:
        self._records[status.id] = status
        logger.debug("workflow_state_updated", workflow_id=status.id, status=status.status)
        return status

    def get(self, workflow_id: str) -> WorkflowStatus:
        try:
            return self._records[workflow_id]
        except KeyError:
            raise WorkflowNotFoundError(workflow_id) from None

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[WorkflowStatus]:
        return iter(list(self._records.values()))
