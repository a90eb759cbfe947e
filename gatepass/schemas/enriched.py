"""Identity-enriched view records."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gatepass.schemas.profile import ResolvedParty
from gatepass.schemas.workflow import WorkflowStatusRecord


class PartyRole(str, Enum):
    SENDER = "sender"
    RECEIVER = "receiver"
    LOADING_STAFF = "loading_staff"
    RECEIVING_STAFF = "receiving_staff"
    TRANSPORTER = "transporter"


class EnrichedRecord(BaseModel):
    """A reconciled status record with a resolved profile for every party present.

    Built fresh on every reconciliation pass and never persisted.
    """

    model_config = ConfigDict(frozen=True)

    record: WorkflowStatusRecord
    parties: Dict[PartyRole, ResolvedParty] = Field(default_factory=dict)

    @property
    def reference_number(self) -> str:
        return self.record.reference_number

    def party(self, role: PartyRole) -> Optional[ResolvedParty]:
        return self.parties.get(role)

    @property
    def sender(self) -> Optional[ResolvedParty]:
        return self.parties.get(PartyRole.SENDER)

    @property
    def receiver(self) -> Optional[ResolvedParty]:
        return self.parties.get(PartyRole.RECEIVER)

    @property
    def loading_staff(self) -> Optional[ResolvedParty]:
        return self.parties.get(PartyRole.LOADING_STAFF)

    @property
    def receiving_staff(self) -> Optional[ResolvedParty]:
        return self.parties.get(PartyRole.RECEIVING_STAFF)

    @property
    def degraded_roles(self) -> List[PartyRole]:
        """Roles that fell back to a sentinel profile."""
        return [role for role, party in self.parties.items() if party.is_degraded]
