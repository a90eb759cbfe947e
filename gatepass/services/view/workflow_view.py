"""Per-role, per-tab projection of enriched records.

Pure functions only: projecting performs no I/O, so the same input always
yields the same view.

Tab membership is decided per role. A request the verifier approved stays on
the verifier's Approved tab while it waits for dispatch and receipt, so the
global stage alone cannot place it; the backend's per-step decision codes do.
"""

from datetime import datetime, time, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional

from gatepass.schemas.enriched import EnrichedRecord
from gatepass.schemas.view import CompanyType, SessionContext, ViewFilters, ViewRole, ViewTab
from gatepass.schemas.workflow import Stage, WorkflowStatusRecord
from gatepass.services.reconciliation import effective_timestamp

# Which pending stage each role acts on
PENDING_STAGES_BY_ROLE: Dict[ViewRole, FrozenSet[Stage]] = {
    ViewRole.REQUESTER: frozenset({Stage.AWAITING_VERIFICATION, Stage.AWAITING_RECEIPT}),
    ViewRole.VERIFIER: frozenset({Stage.AWAITING_VERIFICATION}),
    ViewRole.LOADER: frozenset({Stage.AWAITING_RECEIPT}),
    ViewRole.RECEIVER: frozenset({Stage.AWAITING_RECEIPT}),
}

STEP_DECISION_TABS: Dict[int, ViewTab] = {
    1: ViewTab.PENDING,
    2: ViewTab.APPROVED,
    3: ViewTab.REJECTED,
}

# Request status codes from dispatch onwards, seen from the loader's step
DISPATCH_STATUS_TABS: Dict[int, ViewTab] = {
    7: ViewTab.PENDING,
    8: ViewTab.APPROVED,
    9: ViewTab.REJECTED,
    10: ViewTab.APPROVED,
    11: ViewTab.APPROVED,
    12: ViewTab.REJECTED,
}


def _tab_from_stage(stage: Stage, role: ViewRole) -> Optional[ViewTab]:
    if stage in PENDING_STAGES_BY_ROLE[role]:
        return ViewTab.PENDING
    if stage == Stage.APPROVED:
        return ViewTab.APPROVED
    if stage == Stage.REJECTED:
        return ViewTab.REJECTED
    if role == ViewRole.VERIFIER:
        # Past verification and not rejected
        return ViewTab.APPROVED
    return None


def tab_for(record: WorkflowStatusRecord, role: ViewRole) -> Optional[ViewTab]:
    """The tab a record belongs on for one role, or None when it is not theirs yet.

    The role's own step decision wins when the backend recorded one. A step
    approved by this role but rejected further along moves to Rejected.
    Records without step codes fall back to the global stage.
    """
    if role == ViewRole.VERIFIER:
        decision = STEP_DECISION_TABS.get(record.verify_officer_status)
    elif role == ViewRole.LOADER:
        decision = STEP_DECISION_TABS.get(record.dispatch_status)
        if decision is None:
            decision = DISPATCH_STATUS_TABS.get(record.status_code)
    elif role == ViewRole.RECEIVER:
        decision = STEP_DECISION_TABS.get(record.receive_officer_status)
    else:
        decision = None

    if decision is None:
        return _tab_from_stage(record.stage, role)
    if decision == ViewTab.APPROVED and record.stage == Stage.REJECTED:
        return ViewTab.REJECTED
    return decision


def is_actionable_by(record: WorkflowStatusRecord, role: ViewRole) -> bool:
    return role != ViewRole.REQUESTER and not record.is_terminal and tab_for(record, role) == ViewTab.PENDING


def counterpart_branch(item: EnrichedRecord, role: ViewRole) -> Optional[str]:
    """The branch a role's authority is checked against.

    Verifiers act for the sending branch. Loaders dispatch to their own
    branch and receivers receive into it, so both are checked against the
    destination.
    """
    snapshot = item.record.snapshot
    if role in (ViewRole.LOADER, ViewRole.RECEIVER):
        return snapshot.in_location
    return snapshot.out_location


def is_visible(item: EnrichedRecord, viewer: SessionContext) -> bool:
    snapshot = item.record.snapshot
    if not snapshot.show:
        return False
    if viewer.role == ViewRole.REQUESTER:
        return snapshot.sender_service_no == viewer.service_no
    return viewer.can_see_branch(counterpart_branch(item, viewer.role))


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def matches_filters(item: EnrichedRecord, filters: ViewFilters) -> bool:
    """Apply the free-text, location, company-type and date filters (AND)."""
    snapshot = item.record.snapshot

    term = filters.search_term.strip().lower()
    if term:
        sender_name = item.sender.profile.display_name if item.sender else None
        if not (_contains(item.reference_number, term) or _contains(sender_name, term)):
            return False

    location = filters.location.strip().lower()
    if location:
        if not (
            _contains(snapshot.in_location, location)
            or _contains(snapshot.out_location, location)
            or _contains(snapshot.company_name, location)
        ):
            return False

    if filters.company_type == CompanyType.SLT and snapshot.is_non_slt_place:
        return False
    if filters.company_type == CompanyType.NON_SLT and not snapshot.is_non_slt_place:
        return False

    if filters.date_from or filters.date_to:
        timestamp = effective_timestamp(item.record)
        if filters.date_from and timestamp < datetime.combine(filters.date_from, time.min, timezone.utc):
            return False
        if filters.date_to and timestamp > datetime.combine(filters.date_to, time.max, timezone.utc):
            return False

    return True


def project(
    enriched_records: Iterable[EnrichedRecord],
    viewer: SessionContext,
    tab: ViewTab,
    filters: Optional[ViewFilters] = None,
) -> List[EnrichedRecord]:
    """Project enriched records into the list one role sees on one tab.

    Args:
        enriched_records: Records from one complete reconciliation pass
        viewer: Signed-in user, carrying role and branch authority
        tab: Pending, approved or rejected
        filters: Optional conjunctive filters

    Returns:
        Matching records, newest first
    """
    filters = filters or ViewFilters()

    visible = [
        item
        for item in enriched_records
        if tab_for(item.record, viewer.role) == tab
        and is_visible(item, viewer)
        and matches_filters(item, filters)
    ]
    return sorted(
        visible,
        key=lambda item: (effective_timestamp(item.record), item.reference_number),
        reverse=True,
    )
