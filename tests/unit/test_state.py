"""
Tests for the in-memory workflow state store.

Tests cover:
- put / get round trip
- Last write wins
- Unknown ids
- Membership, length and iteration
"""

import pytest

from idwo.errors import WorkflowNotFoundError
from idwo.models.workflow import WorkflowPhase, WorkflowStatus, WorkflowType
from idwo.orchestration.state import WorkflowStateStore


def _status(workflow_id="pr-acme-api-7", status=WorkflowPhase.ANALYZING):
    return WorkflowStatus(id=workflow_id, type=WorkflowType.PR, status=status)


class TestWorkflowStateStore:
    def test_put_returns_status(self):
        store = WorkflowStateStore()
        status = _status()
        assert store.put(status) is status

    def test_get_returns_stored_record(self):
        store = WorkflowStateStore()
        store.put(_status())
        assert store.get("pr-acme-api-7").status == "analyzing"

    def test_last_put_wins(self):
        store = WorkflowStateStore()
        store.put(_status())
        store.put(_status(status=WorkflowPhase.COMPLETED))

        assert store.get("pr-acme-api-7").status == "completed"
        assert len(store) == 1

    def test_unknown_id_raises(self):
        store = WorkflowStateStore()
        with pytest.raises(WorkflowNotFoundError, match="Workflow missing not found") as exc_info:
            store.get("missing")
        assert exc_info.value.workflow_id == "missing"

    def test_not_found_is_lookup_error(self):
        with pytest.raises(LookupError):
            WorkflowStateStore().get("missing")

    def test_contains(self):
        store = WorkflowStateStore()
        store.put(_status())
        assert "pr-acme-api-7" in store
        assert "pr-acme-api-8" not in store

    def test_iteration_is_a_snapshot(self):
        store = WorkflowStateStore()
        store.put(_status("a"))
        store.put(_status("b"))

        ids = []
        for record in store:
            ids.append(record.id)
            store.put(_status("c"))

        assert ids == ["a", "b"]
        assert len(store) == 3

    def test_stores_are_independent(self):
        first, second = WorkflowStateStore(), WorkflowStateStore()
        first.put(_status())
        assert "pr-acme-api-7" not in second
