"""
Ticketing Models

Contracts + Tickets + Activity timeline
"""

from .contract import (
    # Enums
    TicketingUserRole,

    # Contract policy
    Contract,
    ContractSoftware,
    Demand,

    # Supporting models
    Software,
    TicketingUser,
)
from .ticket import (
    # Enums
    TicketState,
    TicketAction,
    SettableTime,
    ActivityVerb,
    TicketPopulation,
    DEFAULT_POPULATIONS,

    # Core models
    Ticket,
    TicketSoftware,
    TicketTimes,
    TicketPatch,

    # Activity
    ChangesetEntry,
    TicketUpdatedEvent,
    ActivityActor,
    ActivityObject,
    TimelineEntry,
)

__all__ = [
    "TicketingUserRole", "TicketState", "TicketAction", "SettableTime",
    "ActivityVerb", "TicketPopulation", "DEFAULT_POPULATIONS",
    "Contract", "ContractSoftware", "Demand", "Software", "TicketingUser",
    "Ticket", "TicketSoftware", "TicketTimes", "TicketPatch",
    "ChangesetEntry", "TicketUpdatedEvent", "ActivityActor", "ActivityObject",
    "TimelineEntry",
]
