"""Interfaces of the external collaborators the core depends on."""

from typing import List, Optional, Protocol, Sequence

from gatepass.schemas.view import ListScope
from gatepass.schemas.workflow import ReturnableItem, Stage, StaffAssignment, WorkflowStatusRecord


class WorkflowBackend(Protocol):
    """Stores requests and statuses; owns every state transition."""

    async def list_by_stage(self, stage: Stage, scope: ListScope) -> List[WorkflowStatusRecord]:
        ...

    async def approve(
        self,
        reference_number: str,
        comment: str,
        stage_details: Optional[StaffAssignment],
        actor_id: str,
        returnable_selections: Sequence[str],
    ) -> WorkflowStatusRecord:
        ...

    async def reject(self, reference_number: str, comment: str) -> WorkflowStatusRecord:
        ...

    async def mark_returned(
        self,
        reference_number: str,
        serial_numbers: Sequence[str],
        remarks: Optional[str] = None,
    ) -> int:
        ...

    async def add_item(self, reference_number: str, item: ReturnableItem) -> None:
        ...
