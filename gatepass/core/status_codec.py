"""Mapping between backend status documents and workflow records.

The backend stores one status document per workflow event with the request
document nested under ``request``; requester listings return bare request
documents. Stages are encoded as numeric request status codes.
"""

from typing import Any, Dict, List, Optional

from gatepass.schemas.workflow import (
    ExternalPartyDetails,
    GatePassItem,
    RejectionInfo,
    RequestSnapshot,
    ReturnableItem,
    ReturnState,
    StaffAssignment,
    StaffType,
    Stage,
    TransportDetails,
    WorkflowStatusRecord,
)
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _first(doc: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        if doc.get(key):
            return str(doc[key]).strip()
    return None


def _code(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _staff_type(value: Any) -> StaffType:
    return StaffType.NON_SLT if str(value or "").strip().lower() in ("non-slt", "non_slt", "nonslt") else StaffType.SLT


def _external(doc: Dict[str, Any], prefix: str, contact_key: str) -> Optional[ExternalPartyDetails]:
    details = ExternalPartyDetails(
        name=doc.get(f"{prefix}Name"),
        company=doc.get(f"{prefix}Company"),
        nic=doc.get(f"{prefix}NIC"),
        contact_no=doc.get(f"{prefix}{contact_key}"),
        email=doc.get(f"{prefix}Email"),
    )
    return None if details.is_empty else details


def _staff_assignment(doc: Optional[Dict[str, Any]]) -> Optional[StaffAssignment]:
    if not doc:
        return None
    return StaffAssignment(
        location=doc.get("loadingLocation"),
        time=doc.get("loadingTime"),
        staff_type=_staff_type(doc.get("staffType")),
        staff_service_no=doc.get("staffServiceNo"),
        external_staff=_external(doc, "nonSLTStaff", "Contact"),
    )


def _transport(doc: Optional[Dict[str, Any]]) -> Optional[TransportDetails]:
    if not doc:
        return None
    return TransportDetails(
        transport_method=doc.get("transportMethod"),
        transporter_type=_staff_type(doc.get("transporterType")),
        transporter_service_no=doc.get("transporterServiceNo"),
        external_transporter=_external(doc, "nonSLTTransporter", "Phone"),
        vehicle_number=doc.get("vehicleNumber"),
        vehicle_model=doc.get("vehicleModel"),
    )


def _date_part(value: Any) -> Optional[str]:
    # Backend dates may carry a time component
    return str(value)[:10] if value else None


def _serial(doc: Dict[str, Any]) -> str:
    return str(doc.get("serialNumber") or doc.get("serialNo") or "").strip()


def _returnable_items(docs: List[Dict[str, Any]]) -> List[ReturnableItem]:
    """Parse returnable items; the last entry per serial number wins."""
    by_serial: Dict[str, ReturnableItem] = {}
    for doc in docs or []:
        serial = _serial(doc)
        if not serial:
            continue
        returned = bool(doc.get("returned")) or doc.get("status") == ReturnState.RETURNED.value
        if serial in by_serial:
            LOGGER.debug("Duplicate returnable serial in backend document", extra={"serial_number": serial})
        by_serial[serial] = ReturnableItem(
            serial_number=serial,
            name=doc.get("itemName") or doc.get("itemDescription") or "",
            category=doc.get("itemCategory") or "",
            model=doc.get("itemModel") or "",
            quantity=max(1, int(doc.get("itemQuantity") or 1)),
            return_state=ReturnState.RETURNED if returned else ReturnState.RETURNABLE,
            returned_at=doc.get("returnedDate"),
            expected_return_date=_date_part(doc.get("returnDate")),
            remarks=doc.get("remarks") or doc.get("returnRemarks"),
        )
    return list(by_serial.values())


def parse_request_document(doc: Dict[str, Any]) -> RequestSnapshot:
    return RequestSnapshot(
        sender_service_no=doc.get("employeeServiceNo"),
        receiver_service_no=doc.get("receiverServiceNo"),
        out_location=doc.get("outLocation") or "",
        in_location=doc.get("inLocation") or "",
        items=[
            GatePassItem(
                serial_number=_serial(item),
                item_code=item.get("itemCode"),
                description=item.get("itemDescription") or item.get("itemName") or "",
                category=item.get("itemCategory") or "",
                quantity=int(item.get("itemQuantity") or 1),
            )
            for item in doc.get("items") or []
            if _serial(item)
        ],
        returnable_items=_returnable_items(doc.get("returnableItems") or []),
        transport=_transport(doc.get("transport")),
        loading=_staff_assignment(doc.get("loading")),
        unloading=_staff_assignment(doc.get("unLoading")),
        is_non_slt_place=bool(doc.get("isNonSltPlace")),
        company_name=doc.get("companyName"),
        company_address=doc.get("companyAddress"),
        receiver_name=doc.get("receiverName"),
        receiver_nic=doc.get("receiverNIC"),
        receiver_contact=doc.get("receiverContact"),
        show=doc.get("show") is not False,
        created_at=doc.get("createdAt"),
        updated_at=doc.get("updatedAt"),
    )


def _stage(doc: Dict[str, Any], request: Dict[str, Any]) -> Stage:
    if doc.get("stage"):
        return Stage(doc["stage"])
    if doc.get("afterStatus") is not None:
        return Stage.from_status_code(doc["afterStatus"])
    if request.get("status") is not None:
        return Stage.from_status_code(request["status"])
    raise ValueError(f"Status document for {doc.get('referenceNumber')} carries no stage")


def parse_status_document(doc: Dict[str, Any]) -> WorkflowStatusRecord:
    """Build a workflow record from a status (or bare request) document.

    Raises:
        ValueError: The document has no reference number or no stage
    """
    request = doc.get("request") if isinstance(doc.get("request"), dict) else None
    nested = request is not None
    request = request if nested else doc

    after_status = doc.get("afterStatus")

    rejection = None
    if doc.get("rejectedBy") or doc.get("rejectedAt"):
        rejection = RejectionInfo(
            rejected_by=doc.get("rejectedBy"),
            rejected_by_service_no=doc.get("rejectedByServiceNo"),
            rejected_by_branch=doc.get("rejectedByBranch"),
            rejected_at=doc.get("rejectedAt"),
            level=doc.get("rejectionLevel"),
        )

    return WorkflowStatusRecord(
        reference_number=doc.get("referenceNumber") or request.get("referenceNumber") or "",
        stage=_stage(doc, request),
        snapshot=parse_request_document(request),
        comment=doc.get("comment"),
        stage_changed_at=doc.get("stageChangedAt") or (doc.get("updatedAt") if nested else None),
        rejection=rejection,
        verify_officer_service_no=_first(doc, "verifyOfficerServiceNo", "verifyOfficerServiceNumber"),
        receive_officer_service_no=_first(
            doc, "recieveOfficerServiceNo", "recieveOfficerServiceNumber", "receiveOfficerServiceNo"
        ),
        status_code=_code(request.get("status") if after_status is None else after_status),
        verify_officer_status=_code(doc.get("verifyOfficerStatus")),
        dispatch_status=_code(doc.get("pleaderStatus")),
        receive_officer_status=_code(_first(doc, "recieveOfficerStatus", "receiveOfficerStatus")),
    )


def parse_status_documents(docs: Any) -> List[WorkflowStatusRecord]:
    """Parse a list response, skipping documents that cannot be mapped."""
    records = []
    for doc in docs if isinstance(docs, list) else []:
        if not isinstance(doc, dict):
            continue
        try:
            records.append(parse_status_document(doc))
        except ValueError as e:
            LOGGER.warning(
                f"Skipping unparseable status document: {e}",
                extra={"reference_number": doc.get("referenceNumber")},
            )
    return records


def serialize_staff_assignment(assignment: Optional[StaffAssignment]) -> Optional[Dict[str, Any]]:
    if assignment is None:
        return None
    external = assignment.external_staff or ExternalPartyDetails()
    return {
        "loadingLocation": assignment.location,
        "loadingTime": assignment.time.isoformat() if assignment.time else None,
        "staffType": assignment.staff_type.value,
        "staffServiceNo": assignment.staff_service_no,
        "nonSLTStaffName": external.name,
        "nonSLTStaffCompany": external.company,
        "nonSLTStaffNIC": external.nic,
        "nonSLTStaffContact": external.contact_no,
        "nonSLTStaffEmail": external.email,
    }


def serialize_returnable_item(item: ReturnableItem) -> Dict[str, Any]:
    return {
        "serialNo": item.serial_number,
        "itemName": item.name,
        "itemCategory": item.category,
        "itemModel": item.model,
        "itemQuantity": item.quantity,
        "returnDate": item.expected_return_date.isoformat() if item.expected_return_date else None,
    }
