"""Schemas describing who is looking at a view and how it is filtered."""

from datetime import date
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gatepass.schemas.profile import Profile


class ViewRole(str, Enum):
    """The workflow role a view is rendered for."""

    REQUESTER = "requester"
    VERIFIER = "verifier"
    LOADER = "loader"
    RECEIVER = "receiver"


class ViewTab(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CompanyType(str, Enum):
    ALL = "all"
    SLT = "slt"
    NON_SLT = "non_slt"


class SessionContext(BaseModel):
    """The authenticated user as supplied by the hosting session."""

    model_config = ConfigDict(frozen=True)

    profile: Profile
    role: ViewRole
    branches: FrozenSet[str] = Field(default_factory=frozenset)
    all_branches: bool = Field(default=False, description="Super-admin override of branch scoping")

    @property
    def service_no(self) -> str:
        return self.profile.identifier

    def can_see_branch(self, branch: Optional[str]) -> bool:
        if self.all_branches:
            return True
        return bool(branch) and branch in self.branches


class ListScope(BaseModel):
    """Scope passed to the backend when listing status records."""

    model_config = ConfigDict(frozen=True)

    role: ViewRole
    service_no: Optional[str] = Field(None, description="None lists every branch")

    @classmethod
    def for_session(cls, session: SessionContext) -> "ListScope":
        return cls(role=session.role, service_no=None if session.all_branches else session.service_no)


class ViewFilters(BaseModel):
    """Conjunctive filters applied after stage and visibility scoping."""

    search_term: str = ""
    location: str = ""
    company_type: CompanyType = CompanyType.ALL
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @model_validator(mode="after")
    def check_date_range(self) -> "ViewFilters":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self
