"""
Ticketing Ticket Model

Core principles:
1. Ticket = support request bound to a contract
2. Contract, creation and id are IMMUTABLE after create
3. State drives SLA time tracking (response, suspend)
4. Every mutation with a changeset feeds the activity timeline
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from .contract import TicketingUser


# =============================================================================
# ENUMS
# =============================================================================

class TicketState(str, Enum):
    NEW = "New"
    IN_PROGRESS = "In progress"
    AWAITING = "Awaiting"
    AWAITING_INFORMATION = "Awaiting information"
    AWAITING_VALIDATION = "Awaiting validation"
    CLOSED = "Closed"
    ABANDONED = "Abandoned"

    @classmethod
    def validate(cls, value) -> bool:
        """True if value names a known state."""
        return isinstance(value, str) and value in cls._value2member_map_

    @classmethod
    def is_suspended(cls, value) -> bool:
        """Awaiting* states pause the SLA clocks."""
        return value in SUSPENDED_STATES

    @classmethod
    def open_states(cls) -> List["TicketState"]:
        return [
            cls.NEW,
            cls.IN_PROGRESS,
            cls.AWAITING,
            cls.AWAITING_INFORMATION,
            cls.AWAITING_VALIDATION,
        ]


SUSPENDED_STATES = frozenset({
    TicketState.AWAITING,
    TicketState.AWAITING_INFORMATION,
    TicketState.AWAITING_VALIDATION,
})

# Entering one of these from a working state also stamps suspended_at
FINAL_STATES = frozenset({TicketState.CLOSED, TicketState.ABANDONED})


class TicketAction(str, Enum):
    UPDATE_STATE = "updateState"
    SET = "set"
    UNSET = "unset"


class SettableTime(str, Enum):
    WORKAROUND = "workaround"
    CORRECTION = "correction"

    @property
    def display_name(self) -> str:
        return f"{self.value} time"


class ActivityVerb(str, Enum):
    UPDATE = "update"
    SET = "set"
    UNSET = "unset"


class TicketPopulation(str, Enum):
    """Reference fields a caller may ask the store to expand."""
    CONTRACT = "contract"
    REQUESTER = "requester"
    SUPPORT_MANAGER = "supportManager"
    SUPPORT_TECHNICIANS = "supportTechnicians"
    SOFTWARE_TEMPLATE = "software.template"


DEFAULT_POPULATIONS = [
    TicketPopulation.CONTRACT,
    TicketPopulation.REQUESTER,
    TicketPopulation.SUPPORT_MANAGER,
    TicketPopulation.SUPPORT_TECHNICIANS,
    TicketPopulation.SOFTWARE_TEMPLATE,
]


# =============================================================================
# CORE MODELS
# =============================================================================

class TicketSoftware(BaseModel):
    """Software concerned by a ticket, one entry of the contract catalog."""
    template: UUID
    version: str
    criticality: str


class TicketTimes(BaseModel):
    """
    SLA times, all in minutes.

    Derived from state transitions and time flags, never
    supplied by a client. The *_sla targets come from the
    contract demand the ticket falls under.
    """
    response: Optional[int] = None
    suspend: Optional[int] = None
    suspended_at: Optional[datetime] = None
    workaround: Optional[int] = None
    correction: Optional[int] = None

    response_sla: Optional[int] = None
    workaround_sla: Optional[int] = None
    correction_sla: Optional[int] = None


class Ticket(BaseModel):
    """
    The core ticket entity.

    Classification (demand_type, severity, software.criticality) must
    match one demand of the owning contract.
    """
    id: UUID = Field(default_factory=uuid4)
    contract: UUID

    title: str
    description: str
    environment: Optional[str] = None
    demand_type: str
    severity: Optional[str] = None
    software: Optional[TicketSoftware] = None

    # Actors
    requester: Optional[UUID] = None
    support_manager: Optional[UUID] = None
    support_technicians: List[UUID] = Field(default_factory=list)

    state: TicketState = TicketState.NEW
    times: Optional[TicketTimes] = Field(default_factory=TicketTimes)

    attachments: List[UUID] = Field(default_factory=list)

    # Timestamps
    creation: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TicketPatch(BaseModel):
    """
    Partial update of a ticket ($set semantics).

    Only fields explicitly set are applied; contract, state and
    creation are not patchable. times is set by the service only.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    environment: Optional[str] = None
    demand_type: Optional[str] = None
    severity: Optional[str] = None
    software: Optional[TicketSoftware] = None
    requester: Optional[UUID] = None
    support_manager: Optional[UUID] = None
    support_technicians: Optional[List[UUID]] = None
    times: Optional[TicketTimes] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "TicketPatch":
        fields = {
            k: v for k, v in payload.items()
            if k in cls.model_fields and k != "times"
        }
        # An empty software object removes the software
        if "software" in fields and not fields["software"]:
            fields["software"] = None
        return cls(**fields)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# =============================================================================
# ACTIVITY
# =============================================================================

class ChangesetEntry(BaseModel):
    """One field-level diff of a mutation."""
    model_config = ConfigDict(populate_by_name=True)

    key: str
    display_name: str
    from_: Optional[Any] = Field(default=None, alias="from")
    to: Optional[Any] = None

    def as_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class TicketUpdatedEvent(BaseModel):
    """Published on every mutation with a non-empty changeset."""
    actor: TicketingUser
    ticket_id: UUID
    verb: ActivityVerb
    changeset: List[ChangesetEntry]


class ActivityActor(BaseModel):
    object_type: str = "user"
    id: UUID
    display_name: str


class ActivityObject(BaseModel):
    object_type: str = "ticket"
    id: UUID


class TimelineEntry(BaseModel):
    """Activity stored for a ticket (consumer of TicketUpdatedEvent)."""
    model_config = ConfigDict(populate_by_name=True)

    id: UUID = Field(default_factory=uuid4)
    verb: ActivityVerb
    actor: ActivityActor
    object_: ActivityObject = Field(alias="object")
    changeset: List[ChangesetEntry] = Field(default_factory=list)
    published: datetime = Field(default_factory=datetime.utcnow)

    def as_dict(self) -> dict:
        data = self.model_dump(by_alias=True, mode="json", exclude={"changeset"})
        data["changeset"] = [entry.as_dict() for entry in self.changeset]
        return data
