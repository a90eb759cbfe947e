"""Workflow status schemas for gate-pass requests.

A ``WorkflowStatusRecord`` is the unit of truth for one gate pass at one point
in time. The backend may return several records for the same reference number
in one fetch; the reconciler decides which one is authoritative.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Interpret naive datetimes as UTC so every timestamp is comparable."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Stage(str, Enum):
    """Workflow position of a gate-pass request."""

    AWAITING_VERIFICATION = "awaiting_verification"
    AWAITING_RECEIPT = "awaiting_receipt"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def rank(self) -> int:
        return _STAGE_RANKS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.APPROVED, Stage.REJECTED)

    @classmethod
    def from_status_code(cls, code: int) -> "Stage":
        """Map a backend numeric request status (1-13) to a stage."""
        try:
            return _STATUS_CODE_STAGES[int(code)]
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"Unknown request status code: {code!r}")


_STAGE_RANKS: Dict[Stage, int] = {
    Stage.AWAITING_VERIFICATION: 0,
    Stage.AWAITING_RECEIPT: 1,
    Stage.APPROVED: 2,
    Stage.REJECTED: 2,
}

# 1-2 executive, 4-6 verifier, 7-9 dispatch, 10-12 receiver, 13 canceled
_STATUS_CODE_STAGES: Dict[int, Stage] = {
    1: Stage.AWAITING_VERIFICATION,
    2: Stage.AWAITING_VERIFICATION,
    3: Stage.REJECTED,
    4: Stage.AWAITING_VERIFICATION,
    5: Stage.AWAITING_RECEIPT,
    6: Stage.REJECTED,
    7: Stage.AWAITING_RECEIPT,
    8: Stage.AWAITING_RECEIPT,
    9: Stage.REJECTED,
    10: Stage.AWAITING_RECEIPT,
    11: Stage.APPROVED,
    12: Stage.REJECTED,
    13: Stage.REJECTED,
}


class StaffType(str, Enum):
    SLT = "SLT"
    NON_SLT = "Non-SLT"


class ReturnState(str, Enum):
    RETURNABLE = "returnable"
    RETURNED = "returned"


class ExternalPartyDetails(BaseModel):
    """Details of a non-SLT party as typed into the request."""

    name: Optional[str] = None
    company: Optional[str] = None
    nic: Optional[str] = None
    contact_no: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not any((self.name, self.company, self.nic, self.contact_no, self.email))

    def missing_required(self) -> List[str]:
        """Fields a non-SLT staff member must supply before approval."""
        return [
            field
            for field, value in (("name", self.name), ("nic", self.nic), ("contact_no", self.contact_no))
            if not (value or "").strip()
        ]


class StaffAssignment(BaseModel):
    """Loading or unloading staff for one side of the transfer."""

    location: Optional[str] = None
    time: Optional[datetime] = None
    staff_type: StaffType = StaffType.SLT
    staff_service_no: Optional[str] = None
    external_staff: Optional[ExternalPartyDetails] = None

    @field_validator("time")
    @classmethod
    def normalize_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class TransportDetails(BaseModel):
    transport_method: Optional[str] = None
    transporter_type: StaffType = StaffType.SLT
    transporter_service_no: Optional[str] = None
    external_transporter: Optional[ExternalPartyDetails] = None
    vehicle_number: Optional[str] = None
    vehicle_model: Optional[str] = None


class GatePassItem(BaseModel):
    serial_number: str
    item_code: Optional[str] = None
    description: str = ""
    category: str = ""
    quantity: int = 1


class ReturnableItem(BaseModel):
    """A serialized asset that must eventually be given back."""

    serial_number: str = Field(..., min_length=1)
    name: str = ""
    category: str = ""
    model: str = ""
    quantity: int = Field(default=1, ge=1)
    return_state: ReturnState = ReturnState.RETURNABLE
    returned_at: Optional[datetime] = None
    expected_return_date: Optional[date] = None
    remarks: Optional[str] = None

    @field_validator("returned_at")
    @classmethod
    def normalize_returned_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def is_returned(self) -> bool:
        return self.return_state == ReturnState.RETURNED


class RejectionInfo(BaseModel):
    """Who rejected a request, from which branch, when and at which level."""

    rejected_by: Optional[str] = None
    rejected_by_service_no: Optional[str] = None
    rejected_by_branch: Optional[str] = None
    rejected_at: Optional[datetime] = None
    level: Optional[int] = Field(None, ge=1, le=4)

    @field_validator("rejected_at")
    @classmethod
    def normalize_rejected_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class RequestSnapshot(BaseModel):
    """The request document as it stood when the status record was written."""

    sender_service_no: Optional[str] = None
    receiver_service_no: Optional[str] = None
    out_location: str = ""
    in_location: str = ""
    items: List[GatePassItem] = Field(default_factory=list)
    returnable_items: List[ReturnableItem] = Field(default_factory=list)
    transport: Optional[TransportDetails] = None
    loading: Optional[StaffAssignment] = None
    unloading: Optional[StaffAssignment] = None

    # Non-SLT destination
    is_non_slt_place: bool = False
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_nic: Optional[str] = None
    receiver_contact: Optional[str] = None

    show: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def unique_returnable_serials(self) -> "RequestSnapshot":
        seen = set()
        for item in self.returnable_items:
            if item.serial_number in seen:
                raise ValueError(f"Duplicate returnable serial number: {item.serial_number}")
            seen.add(item.serial_number)
        return self

    @property
    def receiver_details(self) -> ExternalPartyDetails:
        return ExternalPartyDetails(
            name=self.receiver_name,
            company=self.company_name,
            nic=self.receiver_nic,
            contact_no=self.receiver_contact,
        )


class WorkflowStatusRecord(BaseModel):
    """One workflow-status event for a gate pass."""

    reference_number: str = Field(..., min_length=1)
    stage: Stage
    snapshot: RequestSnapshot = Field(default_factory=RequestSnapshot)
    comment: Optional[str] = None
    stage_changed_at: Optional[datetime] = None
    rejection: Optional[RejectionInfo] = None
    verify_officer_service_no: Optional[str] = None
    receive_officer_service_no: Optional[str] = None

    # Raw backend codes: request status 1-13, per-step decisions 1 pending, 2 approved, 3 rejected
    status_code: Optional[int] = None
    verify_officer_status: Optional[int] = None
    dispatch_status: Optional[int] = None
    receive_officer_status: Optional[int] = None

    @field_validator("stage_changed_at")
    @classmethod
    def normalize_stage_changed_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def returnable_item(self, serial_number: str) -> Optional[ReturnableItem]:
        for item in self.snapshot.returnable_items:
            if item.serial_number == serial_number:
                return item
        return None

    def with_returnable_items(self, items: List[ReturnableItem]) -> "WorkflowStatusRecord":
        """Copy of this record with the returnable-item list replaced."""
        snapshot = self.snapshot.model_copy(update={"returnable_items": list(items)})
        return self.model_copy(update={"snapshot": snapshot})
