"""Factories and fakes shared by the test suite."""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from gatepass.schemas.profile import Profile
from gatepass.schemas.view import ListScope
from gatepass.schemas.workflow import (
    RequestSnapshot,
    ReturnableItem,
    ReturnState,
    Stage,
    StaffAssignment,
    WorkflowStatusRecord,
)


def ts(day: int, hour: int = 9, minute: int = 0) -> datetime:
    """UTC timestamp in March 2025, to keep test data readable."""
    return datetime(2025, 3, day, hour, minute, tzinfo=timezone.utc)


def make_profile(identifier: str, name: str = "Test User", **overrides) -> Profile:
    data = {
        "identifier": identifier,
        "display_name": name,
        "section": "Network Operations",
        "group": "Colombo Metro",
        "designation": "Engineer",
        "contact_no": "0771234567",
    }
    data.update(overrides)
    return Profile(**data)


def make_record(
    reference_number: str = "GP-001",
    stage: Stage = Stage.AWAITING_VERIFICATION,
    stage_changed_at: Optional[datetime] = None,
    **snapshot_fields,
) -> WorkflowStatusRecord:
    snapshot = {
        "sender_service_no": "EMP100",
        "out_location": "Colombo HQ",
        "in_location": "Kandy",
        "created_at": ts(1),
    }
    snapshot.update(snapshot_fields)
    return WorkflowStatusRecord(
        reference_number=reference_number,
        stage=stage,
        stage_changed_at=stage_changed_at,
        snapshot=RequestSnapshot(**snapshot),
    )


def returnable(serial: str, returned: bool = False, **overrides) -> ReturnableItem:
    data = {
        "serial_number": serial,
        "name": f"Router {serial}",
        "category": "Network",
        "return_state": ReturnState.RETURNED if returned else ReturnState.RETURNABLE,
        "returned_at": ts(2) if returned else None,
    }
    data.update(overrides)
    return ReturnableItem(**data)


class InMemoryWorkflowBackend:
    """Workflow backend that keeps records in a dict and counts calls."""

    def __init__(self, records: Sequence[WorkflowStatusRecord] = ()):
        self.records: Dict[str, WorkflowStatusRecord] = {r.reference_number: r for r in records}
        self.list_calls: List[Stage] = []
        self.mark_returned_calls: List[tuple] = []

    async def list_by_stage(self, stage: Stage, scope: ListScope) -> List[WorkflowStatusRecord]:
        self.list_calls.append(stage)
        return [r for r in self.records.values() if r.stage == stage]

    async def approve(
        self,
        reference_number: str,
        comment: str,
        stage_details: Optional[StaffAssignment],
        actor_id: str,
        returnable_selections: Sequence[str],
    ) -> WorkflowStatusRecord:
        record = self.records[reference_number]
        next_stage = (
            Stage.AWAITING_RECEIPT if record.stage == Stage.AWAITING_VERIFICATION else Stage.APPROVED
        )
        updated = record.model_copy(
            update={"stage": next_stage, "comment": comment, "stage_changed_at": ts(20)}
        )
        self.records[reference_number] = updated
        return updated

    async def reject(self, reference_number: str, comment: str) -> WorkflowStatusRecord:
        record = self.records[reference_number]
        updated = record.model_copy(
            update={"stage": Stage.REJECTED, "comment": comment, "stage_changed_at": ts(20)}
        )
        self.records[reference_number] = updated
        return updated

    async def mark_returned(
        self,
        reference_number: str,
        serial_numbers: Sequence[str],
        remarks: Optional[str] = None,
    ) -> int:
        self.mark_returned_calls.append((reference_number, list(serial_numbers), remarks))
        record = self.records[reference_number]
        items = [
            item.model_copy(update={"return_state": ReturnState.RETURNED, "returned_at": ts(21)})
            if item.serial_number in serial_numbers
            else item
            for item in record.snapshot.returnable_items
        ]
        self.records[reference_number] = record.with_returnable_items(items)
        return len(serial_numbers)

    async def add_item(self, reference_number: str, item: ReturnableItem) -> None:
        record = self.records[reference_number]
        self.records[reference_number] = record.with_returnable_items(
            [*record.snapshot.returnable_items, item]
        )
