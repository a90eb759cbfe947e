"""Gate-pass workflow coordinator.

This module is the single entry point presentation code talks to. Every role
and tab refreshes through the same path (fetch, reconcile, enrich, project),
and mutations are validated locally before they reach the backend.
"""

import asyncio
from itertools import chain
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from gatepass.core.exceptions import StaleWriteConflictError, ValidationError
from gatepass.core.interfaces import WorkflowBackend
from gatepass.schemas.enriched import EnrichedRecord
from gatepass.schemas.view import ListScope, SessionContext, ViewFilters, ViewRole, ViewTab
from gatepass.schemas.workflow import (
    ReturnableItem,
    Stage,
    StaffAssignment,
    StaffType,
    WorkflowStatusRecord,
)
from gatepass.services.base_service import BaseService
from gatepass.services.enrichment import EnrichmentPipeline
from gatepass.services.ledger import MarkReturnedResult, ReturnableItemsLedger
from gatepass.services.reconciliation import find_stage_regressions, reconcile
from gatepass.services.view import is_actionable_by, project
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)

ViewKey = Tuple[str, ViewRole, ViewTab]


def _check_actionable(record: WorkflowStatusRecord, session: SessionContext) -> None:
    """Raise when the local record is no longer waiting on this role."""
    if session.role == ViewRole.REQUESTER:
        raise ValidationError("Requesters cannot approve or reject a request", field="role")
    if not is_actionable_by(record, session.role):
        raise StaleWriteConflictError(
            f"{record.reference_number} is {record.stage.value}; "
            f"no longer awaiting action from {session.role.value}",
            reference_number=record.reference_number,
        )


class ApproveRequestService(BaseService):
    """Approves the current stage of a gate pass on behalf of the signed-in user."""

    def validate(
        self,
        record: WorkflowStatusRecord,
        session: SessionContext,
        comment: str = "",
        stage_details: Optional[StaffAssignment] = None,
        returnable_selections: Sequence[str] = (),
    ) -> None:
        _check_actionable(record, session)

        if stage_details is not None and stage_details.staff_type == StaffType.NON_SLT:
            details = stage_details.external_staff
            missing = details.missing_required() if details else ["name", "nic", "contact_no"]
            if missing:
                raise ValidationError(
                    f"Non-SLT staff details incomplete: missing {', '.join(missing)}",
                    field="stage_details",
                )

        known = {item.serial_number for item in record.snapshot.items}
        known.update(item.serial_number for item in record.snapshot.returnable_items)
        unknown = sorted(s for s in returnable_selections if s not in known)
        if unknown:
            raise ValidationError(
                f"Unknown serial numbers selected as returnable: {', '.join(unknown)}",
                field="returnable_selections",
            )

    async def run(
        self,
        record: WorkflowStatusRecord,
        session: SessionContext,
        comment: str = "",
        stage_details: Optional[StaffAssignment] = None,
        returnable_selections: Sequence[str] = (),
    ) -> WorkflowStatusRecord:
        updated = await self.backend.approve(
            record.reference_number,
            (comment or "").strip(),
            stage_details,
            session.service_no,
            list(returnable_selections),
        )
        LOGGER.info(
            "Request approved",
            extra={
                "reference_number": record.reference_number,
                "role": session.role.value,
                "stage": updated.stage.value,
            },
        )
        return updated


class RejectRequestService(BaseService):
    """Rejects a gate pass; a comment is mandatory."""

    def validate(self, record: WorkflowStatusRecord, session: SessionContext, comment: str = "") -> None:
        if not (comment or "").strip():
            raise ValidationError("A rejection comment is required", field="comment")
        _check_actionable(record, session)

    async def run(
        self,
        record: WorkflowStatusRecord,
        session: SessionContext,
        comment: str = "",
    ) -> WorkflowStatusRecord:
        updated = await self.backend.reject(record.reference_number, comment.strip())
        LOGGER.info(
            "Request rejected",
            extra={"reference_number": record.reference_number, "role": session.role.value},
        )
        return updated


class GatePassWorkflowService:
    """Builds role views and applies mutations.

    Besides the identity cache owned by the enrichment pipeline, this class
    keeps only the last published view per (user, role, tab) and a generation
    counter used to discard superseded refreshes.
    """

    def __init__(
        self,
        backend: WorkflowBackend,
        pipeline: EnrichmentPipeline,
        ledger: Optional[ReturnableItemsLedger] = None,
    ):
        """Initialize the coordinator.

        Args:
            backend: Workflow backend client
            pipeline: Enrichment pipeline (owns the identity resolver)
            ledger: Returnable-item ledger; built on the backend when omitted
        """
        self.backend = backend
        self.pipeline = pipeline
        self.ledger = ledger or ReturnableItemsLedger(backend)

        self._approve = ApproveRequestService(backend)
        self._reject = RejectRequestService(backend)

        self._generations: Dict[ViewKey, int] = {}
        self._passes: Dict[ViewKey, List[WorkflowStatusRecord]] = {}
        self._views: Dict[ViewKey, List[EnrichedRecord]] = {}

    @staticmethod
    def _key(session: SessionContext, tab: ViewTab) -> ViewKey:
        return (session.service_no, session.role, tab)

    def current_view(self, session: SessionContext, tab: ViewTab) -> List[EnrichedRecord]:
        """The last view published for this user, role and tab."""
        return list(self._views.get(self._key(session, tab), []))

    async def fetch_reconciled(self, session: SessionContext) -> List[WorkflowStatusRecord]:
        """Fetch every stage list concurrently and reconcile the union."""
        scope = ListScope.for_session(session)
        batches = await asyncio.gather(*(self.backend.list_by_stage(stage, scope) for stage in Stage))
        return reconcile(chain.from_iterable(batches))

    async def refresh(
        self,
        session: SessionContext,
        tab: ViewTab,
        filters: Optional[ViewFilters] = None,
    ) -> Optional[List[EnrichedRecord]]:
        """Rebuild one view from a complete reconciliation pass.

        Args:
            session: Signed-in user
            tab: Tab to project
            filters: Optional view filters

        Returns:
            The published view, or None when a newer refresh for the same
            view started while this one was in flight
        """
        key = self._key(session, tab)
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation

        reconciled = await self.fetch_reconciled(session)
        enriched = await self.pipeline.enrich_all(reconciled, session.profile)

        if self._generations.get(key) != generation:
            LOGGER.info(
                "Discarding superseded refresh",
                extra={"role": session.role.value, "tab": tab.value, "generation": generation},
            )
            return None

        self._warn_on_regressions(key, reconciled)
        self._passes[key] = reconciled

        view = project(enriched, session, tab, filters)
        self._views[key] = view
        LOGGER.info(
            f"Refreshed view with {len(view)} record(s)",
            extra={"role": session.role.value, "tab": tab.value, "fetched": len(reconciled)},
        )
        return list(view)

    def _warn_on_regressions(self, key: ViewKey, reconciled: Iterable[WorkflowStatusRecord]) -> None:
        previous = self._passes.get(key)
        if not previous:
            return
        for regression in find_stage_regressions(previous, reconciled):
            LOGGER.warning(
                "Stage regression detected between refreshes",
                extra={
                    "reference_number": regression.reference_number,
                    "previous_stage": regression.previous_stage,
                    "current_stage": regression.current_stage,
                },
            )

    async def approve(
        self,
        session: SessionContext,
        record: WorkflowStatusRecord,
        comment: str = "",
        stage_details: Optional[StaffAssignment] = None,
        returnable_selections: Sequence[str] = (),
    ) -> WorkflowStatusRecord:
        """Approve ``record`` at the stage the session's role acts on.

        Raises:
            ValidationError: Incomplete non-SLT staff details or unknown selections
            StaleWriteConflictError: The request already moved past this role
        """
        return await self._approve.execute(
            record, session, comment, stage_details, list(returnable_selections)
        )

    async def reject(
        self,
        session: SessionContext,
        record: WorkflowStatusRecord,
        comment: str,
    ) -> WorkflowStatusRecord:
        """Reject ``record``; the comment is mandatory."""
        return await self._reject.execute(record, session, comment)

    async def mark_returned(
        self,
        record: WorkflowStatusRecord,
        serial_numbers: Iterable[str],
        remarks: Optional[str] = None,
    ) -> MarkReturnedResult:
        return await self.ledger.mark_returned(record, serial_numbers, remarks)

    async def add_item(self, record: WorkflowStatusRecord, item: ReturnableItem) -> WorkflowStatusRecord:
        return await self.ledger.add_item(record, item)
