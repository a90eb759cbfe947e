"""Identity profile schemas.

A profile is what the view shows for one party on a gate pass. Profiles are
frozen: a refresh replaces a cached profile wholesale, never field by field.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_FIELD = "N/A"
EXTERNAL_DETAILS_IN_SNAPSHOT = "External (details in snapshot)"


class PartyKind(str, Enum):
    """Whether a party identifier belongs to an SLT employee or not."""

    INTERNAL = "internal"
    EXTERNAL = "external"


class ProfileSource(str, Enum):
    """Where a resolved profile came from."""

    SESSION = "session"
    DIRECTORY = "directory"
    ERP = "erp"
    SNAPSHOT = "snapshot"
    SENTINEL = "sentinel"


class Profile(BaseModel):
    """Enriched identity data for one party."""

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Service number or external identifier")
    display_name: str = Field(default=UNKNOWN_FIELD, description="Name shown in the view")
    section: str = Field(default=UNKNOWN_FIELD, description="Organisational section")
    group: str = Field(default=UNKNOWN_FIELD, description="Organisational group")
    designation: str = Field(default=UNKNOWN_FIELD, description="Job designation")
    contact_no: str = Field(default=UNKNOWN_FIELD, description="Contact phone number")
    email: Optional[str] = Field(None, description="E-mail address, when known")

    @classmethod
    def sentinel(cls, identifier: str) -> "Profile":
        """Placeholder used when a real lookup cannot be completed."""
        return cls(identifier=identifier)

    @property
    def is_placeholder(self) -> bool:
        return (
            self.display_name == UNKNOWN_FIELD
            and self.section == UNKNOWN_FIELD
            and self.designation == UNKNOWN_FIELD
        )


class ResolvedParty(BaseModel):
    """A profile attached to one party role of a gate pass."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    profile: Profile
    is_external_party: bool
    source: ProfileSource

    @property
    def is_degraded(self) -> bool:
        return self.source == ProfileSource.SENTINEL
