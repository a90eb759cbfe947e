from .enriched import EnrichedRecord, PartyRole
from .profile import Profile, PartyKind, ProfileSource, ResolvedParty
from .view import CompanyType, ListScope, SessionContext, ViewFilters, ViewRole, ViewTab
from .workflow import (
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

__all__ = [
    "CompanyType",
    "EnrichedRecord",
    "ExternalPartyDetails",
    "GatePassItem",
    "ListScope",
    "PartyKind",
    "PartyRole",
    "Profile",
    "ProfileSource",
    "RejectionInfo",
    "RequestSnapshot",
    "ResolvedParty",
    "ReturnableItem",
    "ReturnState",
    "SessionContext",
    "StaffAssignment",
    "StaffType",
    "Stage",
    "TransportDetails",
    "ViewFilters",
    "ViewRole",
    "ViewTab",
    "WorkflowStatusRecord",
]
