"""
Ticketing Contract Model

A contract is the policy envelope of its tickets:
- demands: allowed (demand type, issue type, software type) triples
- software: allowed (template, versions, type) catalog entries

Read-only for ticket validation.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class TicketingUserRole(str, Enum):
    ADMINISTRATOR = "administrator"
    SUPPORTER = "supporter"
    USER = "user"


class Demand(BaseModel):
    """
    Allowed demand of a contract.

    issue_type is matched against the ticket severity,
    software_type against the ticket software criticality.
    """
    demand_type: str
    issue_type: str
    software_type: str

    # SLA targets, copied onto the times of matching tickets
    response_time: Optional[int] = None
    workaround_time: Optional[int] = None
    correction_time: Optional[int] = None

    def sla_targets(self) -> dict:
        return {
            "response_sla": self.response_time,
            "workaround_sla": self.workaround_time,
            "correction_sla": self.correction_time,
        }


class ContractSoftware(BaseModel):
    """Software catalog entry of a contract."""
    template: UUID
    type: str  # criticality
    versions: List[str] = Field(default_factory=list)


class Contract(BaseModel):
    id: UUID = Field(default_factory=uuid4)

    title: str
    organization: Optional[UUID] = None
    default_support_manager: Optional[UUID] = None

    demands: List[Demand] = Field(default_factory=list)
    software: List[ContractSoftware] = Field(default_factory=list)

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


# =============================================================================
# SUPPORTING MODELS
# =============================================================================

class Software(BaseModel):
    """Software template."""
    id: UUID = Field(default_factory=uuid4)

    name: str
    category: Optional[str] = None
    versions: List[str] = Field(default_factory=list)


class TicketingUser(BaseModel):
    """User of the ticketing module."""
    id: UUID = Field(default_factory=uuid4)

    email: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None

    role: TicketingUserRole = TicketingUserRole.USER

    @property
    def display_name(self) -> str:
        parts = [self.firstname, self.lastname]
        return " ".join(p for p in parts if p) or self.email
