"""Identity enrichment of reconciled status records.

For every party role present on a record the pipeline settles on exactly one
profile, walking a fixed fallback chain:

1. the signed-in user (no remote call, seeds the identity cache)
2. external parties: details embedded in the request snapshot
3. internal parties: identity directory, then ERP, then a sentinel profile

Enrichment never raises. A party that cannot be resolved is shown with a
sentinel profile instead of being dropped.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, Sequence

from gatepass.schemas.enriched import EnrichedRecord, PartyRole
from gatepass.schemas.profile import (
    EXTERNAL_DETAILS_IN_SNAPSHOT,
    UNKNOWN_FIELD,
    PartyKind,
    Profile,
    ProfileSource,
    ResolvedParty,
)
from gatepass.schemas.workflow import (
    ExternalPartyDetails,
    StaffAssignment,
    StaffType,
    WorkflowStatusRecord,
)
from gatepass.services.classification import classify
from gatepass.services.identity import IdentityResolver, ResolveMode
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)

ErpLookup = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]

NON_SLT_DESIGNATION = "Non-SLT"


class PartySlot(NamedTuple):
    """What the record says about one party before any lookup."""

    identifier: str
    embedded: Optional[ExternalPartyDetails]
    marked_non_slt: bool


def _text(value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    return text or UNKNOWN_FIELD


def _unwrap_erp_payload(raw: Any) -> Optional[Dict[str, Any]]:
    """ERP responses arrive as ``{"data": {"data": [employee]}}`` or bare."""
    current = raw
    for _ in range(3):
        if isinstance(current, list):
            current = current[0] if current else None
        elif isinstance(current, dict) and "data" in current:
            current = current["data"]
        else:
            break
    if isinstance(current, list):
        current = current[0] if current else None
    return current if isinstance(current, dict) and current else None


def profile_from_erp_employee(raw: Any, identifier: str) -> Optional[Profile]:
    """Map a raw ERP employee record into profile shape.

    Args:
        raw: ERP payload (bare employee dict or the nested response envelope)
        identifier: Service number the lookup was made for

    Returns:
        Profile, or None when the payload holds no employee
    """
    employee = _unwrap_erp_payload(raw)
    if employee is None:
        return None

    name = employee.get("employeeName")
    if not name:
        parts = [
            employee.get("employeeTitle"),
            employee.get("employeeFirstName"),
            employee.get("employeeSurname"),
        ]
        name = " ".join(str(p).strip() for p in parts if p and str(p).strip())

    return Profile(
        identifier=str(employee.get("employeeNumber") or employee.get("employeeNo") or identifier),
        display_name=_text(name),
        section=_text(employee.get("empSection")),
        group=_text(employee.get("empGroup")),
        designation=_text(employee.get("designation")),
        contact_no=_text(employee.get("mobileNo")),
        email=employee.get("email") or None,
    )


def profile_from_snapshot(identifier: str, details: Optional[ExternalPartyDetails]) -> Profile:
    """Build an external party's profile from the details typed into the request."""
    if details is None or details.is_empty:
        return Profile(
            identifier=identifier or UNKNOWN_FIELD,
            display_name=EXTERNAL_DETAILS_IN_SNAPSHOT,
            designation=NON_SLT_DESIGNATION,
        )
    return Profile(
        identifier=identifier or details.nic or UNKNOWN_FIELD,
        display_name=_text(details.name),
        section=_text(details.company),
        designation=NON_SLT_DESIGNATION,
        contact_no=_text(details.contact_no),
        email=details.email or None,
    )


def _staff_slot(assignment: Optional[StaffAssignment]) -> Optional[PartySlot]:
    if assignment is None:
        return None
    identifier = assignment.staff_service_no or ""
    embedded = assignment.external_staff
    if not identifier and (embedded is None or embedded.is_empty):
        return None
    return PartySlot(identifier, embedded, assignment.staff_type == StaffType.NON_SLT)


def party_slots(record: WorkflowStatusRecord) -> Dict[PartyRole, PartySlot]:
    """Collect the party roles present on a record."""
    snapshot = record.snapshot
    slots: Dict[PartyRole, PartySlot] = {}

    if snapshot.sender_service_no:
        slots[PartyRole.SENDER] = PartySlot(snapshot.sender_service_no, None, False)

    receiver_details = snapshot.receiver_details
    if snapshot.receiver_service_no or snapshot.is_non_slt_place or not receiver_details.is_empty:
        slots[PartyRole.RECEIVER] = PartySlot(
            snapshot.receiver_service_no or "",
            receiver_details,
            snapshot.is_non_slt_place,
        )

    loading = _staff_slot(snapshot.loading)
    if loading is not None:
        slots[PartyRole.LOADING_STAFF] = loading

    receiving = _staff_slot(snapshot.unloading)
    if receiving is None and record.receive_officer_service_no:
        receiving = PartySlot(record.receive_officer_service_no, None, False)
    if receiving is not None:
        slots[PartyRole.RECEIVING_STAFF] = receiving

    transport = snapshot.transport
    if transport is not None:
        embedded = transport.external_transporter
        if transport.transporter_service_no or (embedded is not None and not embedded.is_empty):
            slots[PartyRole.TRANSPORTER] = PartySlot(
                transport.transporter_service_no or "",
                embedded,
                transport.transporter_type == StaffType.NON_SLT,
            )

    return slots


class EnrichmentPipeline:
    """Resolves every party on a status record into a profile.

    Attributes:
        resolver: Shared identity resolver (directory lookups and cache)
        erp_lookup: Optional ERP employee lookup used when the directory misses
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        erp_lookup: Optional[ErpLookup] = None,
        erp_timeout: Optional[float] = None,
    ):
        """Initialize the pipeline.

        Args:
            resolver: Identity resolver backed by the directory lookup
            erp_lookup: Async ERP lookup returning a raw employee record or None
            erp_timeout: Seconds before an ERP lookup is abandoned
        """
        self.resolver = resolver
        self.erp_lookup = erp_lookup
        self.erp_timeout = erp_timeout

    async def enrich(self, record: WorkflowStatusRecord, current_user: Profile) -> EnrichedRecord:
        """Resolve all party roles of one record concurrently.

        Args:
            record: Reconciled status record
            current_user: Profile of the signed-in user

        Returns:
            EnrichedRecord once every role has settled
        """
        slots = party_slots(record)
        roles = list(slots)
        settled = await asyncio.gather(
            *(self._settle(role, slots[role], record.reference_number, current_user) for role in roles)
        )
        return EnrichedRecord(record=record, parties=dict(zip(roles, settled)))

    async def enrich_all(
        self,
        records: Sequence[WorkflowStatusRecord],
        current_user: Profile,
    ) -> List[EnrichedRecord]:
        """Enrich a reconciled list concurrently, preserving its order."""
        return list(await asyncio.gather(*(self.enrich(record, current_user) for record in records)))

    async def _settle(
        self,
        role: PartyRole,
        slot: PartySlot,
        reference_number: str,
        current_user: Profile,
    ) -> ResolvedParty:
        try:
            return await self._resolve_party(slot, current_user)
        except Exception as e:
            LOGGER.warning(
                f"Party resolution failed, using sentinel profile: {e}",
                extra={"reference_number": reference_number, "role": role.value},
            )
            return ResolvedParty(
                identifier=slot.identifier,
                profile=Profile.sentinel(slot.identifier or UNKNOWN_FIELD),
                is_external_party=classify(slot.identifier) == PartyKind.EXTERNAL,
                source=ProfileSource.SENTINEL,
            )

    async def _resolve_party(self, slot: PartySlot, current_user: Profile) -> ResolvedParty:
        identifier = slot.identifier

        if identifier and identifier == current_user.identifier:
            self.resolver.seed(current_user)
            return ResolvedParty(
                identifier=identifier,
                profile=current_user,
                is_external_party=False,
                source=ProfileSource.SESSION,
            )

        if slot.marked_non_slt or classify(identifier) == PartyKind.EXTERNAL:
            return ResolvedParty(
                identifier=identifier,
                profile=profile_from_snapshot(identifier, slot.embedded),
                is_external_party=True,
                source=ProfileSource.SNAPSHOT,
            )

        profile = await self.resolver.resolve(identifier, ResolveMode.CACHE_FIRST)
        if profile is not None:
            return ResolvedParty(
                identifier=identifier,
                profile=profile,
                is_external_party=False,
                source=ProfileSource.DIRECTORY,
            )

        profile = await self._lookup_erp(identifier)
        if profile is not None:
            return ResolvedParty(
                identifier=identifier,
                profile=profile,
                is_external_party=False,
                source=ProfileSource.ERP,
            )

        LOGGER.warning("Identity unresolved, using sentinel profile", extra={"identifier": identifier})
        return ResolvedParty(
            identifier=identifier,
            profile=Profile.sentinel(identifier),
            is_external_party=False,
            source=ProfileSource.SENTINEL,
        )

    async def _lookup_erp(self, identifier: str) -> Optional[Profile]:
        if self.erp_lookup is None:
            return None
        try:
            if self.erp_timeout is not None:
                raw = await asyncio.wait_for(self.erp_lookup(identifier), self.erp_timeout)
            else:
                raw = await self.erp_lookup(identifier)
        except asyncio.TimeoutError:
            LOGGER.warning("ERP lookup timed out", extra={"identifier": identifier})
            return None
        except Exception as e:
            LOGGER.warning(f"ERP lookup failed: {e}", extra={"identifier": identifier})
            return None

        return profile_from_erp_employee(raw, identifier) if raw else None
