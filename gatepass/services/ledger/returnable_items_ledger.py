"""Returnable-item sub-ledger of a gate-pass request.

Each serialized item moves independently from ``returnable`` to ``returned``.
A bulk return is all-or-nothing per call from the caller's point of view: the
updated record is only built after the backend accepted the change.
"""

from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel

from gatepass.core.exceptions import StaleWriteConflictError, ValidationError
from gatepass.core.interfaces import WorkflowBackend
from gatepass.schemas.workflow import ReturnableItem, ReturnState, WorkflowStatusRecord
from gatepass.services.base_service import BaseService
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MarkReturnedResult(BaseModel):
    reference_number: str
    updated_count: int
    record: WorkflowStatusRecord


class MarkReturnedService(BaseService):
    """Marks a selection of returnable items as returned."""

    def __init__(self, backend: WorkflowBackend, clock: Callable[[], datetime] = utcnow):
        super().__init__(backend)
        self.clock = clock

    def validate(
        self,
        record: WorkflowStatusRecord,
        serial_numbers: Iterable[str],
        remarks: Optional[str] = None,
    ) -> None:
        requested = {s.strip() for s in serial_numbers if s and s.strip()}
        if not requested:
            raise ValidationError("At least one serial number is required", field="serial_numbers")

        unknown = sorted(s for s in requested if record.returnable_item(s) is None)
        if unknown:
            raise ValidationError(
                f"Unknown returnable serial numbers on {record.reference_number}: {', '.join(unknown)}",
                field="serial_numbers",
            )

    async def run(
        self,
        record: WorkflowStatusRecord,
        serial_numbers: Iterable[str],
        remarks: Optional[str] = None,
    ) -> MarkReturnedResult:
        requested = {s.strip() for s in serial_numbers if s and s.strip()}

        # Already-returned items are no-ops, not errors
        pending = sorted(s for s in requested if not record.returnable_item(s).is_returned)
        if not pending:
            LOGGER.info(
                "All selected items already returned",
                extra={"reference_number": record.reference_number},
            )
            return MarkReturnedResult(
                reference_number=record.reference_number, updated_count=0, record=record
            )

        reported = await self.backend.mark_returned(record.reference_number, pending, remarks)
        if reported != len(pending):
            # The backend does not say which items it skipped
            LOGGER.warning(
                "Backend reported a different returned count",
                extra={
                    "reference_number": record.reference_number,
                    "requested": len(pending),
                    "reported": reported,
                },
            )
            raise StaleWriteConflictError(
                f"Backend returned {reported} of {len(pending)} item(s) on {record.reference_number}; "
                "refresh the request before retrying",
                reference_number=record.reference_number,
            )

        returned_at = self.clock()
        transitioned = set(pending)
        items: List[ReturnableItem] = [
            item.model_copy(
                update={
                    "return_state": ReturnState.RETURNED,
                    "returned_at": returned_at,
                    "remarks": remarks if remarks is not None else item.remarks,
                }
            )
            if item.serial_number in transitioned
            else item
            for item in record.snapshot.returnable_items
        ]

        LOGGER.info(
            f"Marked {reported} item(s) as returned",
            extra={"reference_number": record.reference_number},
        )
        return MarkReturnedResult(
            reference_number=record.reference_number,
            updated_count=reported,
            record=record.with_returnable_items(items),
        )


class AddReturnableItemService(BaseService):
    """Appends a returnable item to a request that has not reached a terminal stage."""

    def validate(self, record: WorkflowStatusRecord, item: ReturnableItem) -> None:
        if record.is_terminal:
            raise ValidationError(
                f"Cannot add items to {record.reference_number}: request is {record.stage.value}",
                field="stage",
            )
        if record.returnable_item(item.serial_number) is not None:
            raise ValidationError(
                f"Serial number {item.serial_number} already exists on {record.reference_number}",
                field="serial_number",
            )

    async def run(self, record: WorkflowStatusRecord, item: ReturnableItem) -> WorkflowStatusRecord:
        new_item = item.model_copy(update={"return_state": ReturnState.RETURNABLE, "returned_at": None})
        await self.backend.add_item(record.reference_number, new_item)
        return record.with_returnable_items([*record.snapshot.returnable_items, new_item])


class ReturnableItemsLedger:
    """Entry point for returnable-item mutations."""

    def __init__(self, backend: WorkflowBackend, clock: Callable[[], datetime] = utcnow):
        self._mark_returned = MarkReturnedService(backend, clock=clock)
        self._add_item = AddReturnableItemService(backend)

    async def mark_returned(
        self,
        record: WorkflowStatusRecord,
        serial_numbers: Iterable[str],
        remarks: Optional[str] = None,
    ) -> MarkReturnedResult:
        """Mark the returnable subset of ``serial_numbers`` as returned.

        Args:
            record: Current record of the request
            serial_numbers: Serial numbers selected for return
            remarks: Optional note stored on each returned item

        Returns:
            MarkReturnedResult with the count of items actually transitioned
            and the updated record

        Raises:
            ValidationError: Empty selection or unknown serial numbers
            StaleWriteConflictError: The backend returned a different number
                of items than were sent; the local record is left unchanged
            APIClientError: The backend call failed; nothing changed
        """
        serial_numbers = list(serial_numbers)
        return await self._mark_returned.execute(record, serial_numbers, remarks)

    async def add_item(self, record: WorkflowStatusRecord, item: ReturnableItem) -> WorkflowStatusRecord:
        """Append a returnable item, rejected once the request is terminal."""
        return await self._add_item.execute(record, item)
