"""HTTP client for the gate-pass workflow backend.

The backend exposes one route family per acting role (``/verify``,
``/dispatch``, ``/receive``) with ``pending``/``approved``/``rejected``
listings and ``approve``/``reject`` actions. Requesters list their own
requests through ``/requests/{serviceNo}``.
"""

from typing import Any, Dict, List, Optional, Sequence

import httpx

from gatepass.core.base_http_client import BaseHttpClient
from gatepass.core.exceptions import APIClientError, NotFoundError, StaleWriteConflictError
from gatepass.core.status_codec import (
    parse_status_document,
    parse_status_documents,
    serialize_returnable_item,
    serialize_staff_assignment,
)
from gatepass.schemas.view import ListScope, ViewRole
from gatepass.schemas.workflow import ReturnableItem, Stage, StaffAssignment, WorkflowStatusRecord
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)

ROLE_PREFIXES: Dict[ViewRole, str] = {
    ViewRole.VERIFIER: "/verify",
    ViewRole.LOADER: "/dispatch",
    ViewRole.RECEIVER: "/receive",
}

STAGE_LISTINGS: Dict[Stage, str] = {
    Stage.APPROVED: "approved",
    Stage.REJECTED: "rejected",
}

# Which pending stage each role's "pending" listing returns
ROLE_PENDING_STAGE: Dict[ViewRole, Stage] = {
    ViewRole.VERIFIER: Stage.AWAITING_VERIFICATION,
    ViewRole.LOADER: Stage.AWAITING_RECEIPT,
    ViewRole.RECEIVER: Stage.AWAITING_RECEIPT,
}


class WorkflowBackendClient(BaseHttpClient):
    """Workflow backend bound to the route family of one role."""

    def __init__(
        self,
        base_url: str,
        role: ViewRole = ViewRole.RECEIVER,
        token: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else None
        super().__init__(
            base_url,
            headers=headers,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=transport,
        )
        self.role = role
        self.token = token

    def with_role(self, role: ViewRole) -> "WorkflowBackendClient":
        """Same backend, routed for another role."""
        return WorkflowBackendClient(
            self.base_url,
            role=role,
            token=self.token,
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            transport=self.transport,
        )

    @property
    def prefix(self) -> str:
        # Requesters act on nothing; their reads still go through /requests
        return ROLE_PREFIXES.get(self.role, "/receive")

    async def list_by_stage(self, stage: Stage, scope: ListScope) -> List[WorkflowStatusRecord]:
        """List the records the role's listing for ``stage`` returns.

        Role listings are keyed on that role's own decision, not on the global
        stage: ``/verify/approved`` holds requests the verifier passed on that
        are still awaiting dispatch. Records are returned as listed and the
        view places them per role. A role's ``pending`` listing only backs the
        pending stage that role acts on; any other pending stage returns nothing.
        """
        if scope.role == ViewRole.REQUESTER:
            return await self._list_own_requests(stage, scope)

        prefix = ROLE_PREFIXES[scope.role]
        if stage in STAGE_LISTINGS:
            listing = STAGE_LISTINGS[stage]
        elif ROLE_PENDING_STAGE[scope.role] == stage:
            listing = "pending"
        else:
            return []

        params = {"serviceNo": scope.service_no} if scope.service_no else None
        body = await self.call_api(f"{prefix}/{listing}", params=params)
        records = parse_status_documents(body)
        LOGGER.debug(
            f"Listed {len(records)} record(s)",
            extra={"role": scope.role.value, "listing": listing},
        )
        return records

    async def _list_own_requests(self, stage: Stage, scope: ListScope) -> List[WorkflowStatusRecord]:
        if not scope.service_no:
            return []
        try:
            body = await self.call_api(f"/requests/{scope.service_no}")
        except NotFoundError:
            return []
        return [record for record in parse_status_documents(body) if record.stage == stage]

    def _updated_record(self, body: Any, reference_number: str) -> WorkflowStatusRecord:
        doc = body
        if isinstance(body, dict):
            doc = body.get("updatedStatus") or body.get("status") or body
        if not isinstance(doc, dict):
            raise APIClientError(f"Backend returned no status document for {reference_number}")
        try:
            return parse_status_document(doc)
        except ValueError as e:
            raise APIClientError(f"Unreadable status document for {reference_number}", original_error=e)

    async def approve(
        self,
        reference_number: str,
        comment: str,
        stage_details: Optional[StaffAssignment],
        actor_id: str,
        returnable_selections: Sequence[str],
    ) -> WorkflowStatusRecord:
        payload: Dict[str, Any] = {"comment": comment, "userServiceNumber": actor_id}

        details = serialize_staff_assignment(stage_details)
        if details is not None:
            if self.role == ViewRole.RECEIVER:
                details["unloadingLocation"] = details.pop("loadingLocation")
                payload["unloadingDetails"] = details
            else:
                payload["loadingDetails"] = details

        if returnable_selections:
            payload["returnableItems"] = [
                {"serialNo": serial, "returned": False} for serial in returnable_selections
            ]

        try:
            body = await self.call_api(f"{self.prefix}/{reference_number}/approve", method="PUT", payload=payload)
        except NotFoundError as e:
            # The action routes only match records still pending for this role
            raise StaleWriteConflictError(
                f"{reference_number} is no longer pending for {self.role.value}",
                reference_number=reference_number,
                original_error=e,
            )
        return self._updated_record(body, reference_number)

    async def reject(self, reference_number: str, comment: str) -> WorkflowStatusRecord:
        try:
            body = await self.call_api(
                f"{self.prefix}/{reference_number}/reject", method="PUT", payload={"comment": comment}
            )
        except NotFoundError as e:
            raise StaleWriteConflictError(
                f"{reference_number} is no longer pending for {self.role.value}",
                reference_number=reference_number,
                original_error=e,
            )
        return self._updated_record(body, reference_number)

    async def mark_returned(
        self,
        reference_number: str,
        serial_numbers: Sequence[str],
        remarks: Optional[str] = None,
    ) -> int:
        payload: Dict[str, Any] = {"serialNumbers": list(serial_numbers)}
        if remarks:
            payload["remarks"] = remarks
        body = await self.call_api(f"/receive/{reference_number}/mark-returned", method="PUT", payload=payload)
        if not isinstance(body, dict) or "updatedCount" not in body:
            raise APIClientError(f"Backend did not report an updated count for {reference_number}")
        return int(body["updatedCount"])

    async def add_item(self, reference_number: str, item: ReturnableItem) -> None:
        await self.call_api(
            f"/receive/{reference_number}/items", method="POST", payload=serialize_returnable_item(item)
        )
