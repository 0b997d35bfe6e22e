"""
Ticketing Services

Core business logic for ticket management.
"""

from .errors import (
    TicketingError,
    ValidationError,
    NotFoundError,
    AuthorizationError,
    PersistenceError,
    EventPublishError,
)
from .contract_rules import ContractRules
from .validation import TicketValidator, software_change
from .state import TicketStateMachine
from .store import TicketStore
from .events import EventBus, Topic
from .timeline import TimelineListener, TimelineService
from .ticket import TicketService, TicketGuard

__all__ = [
    # Errors
    "TicketingError", "ValidationError", "NotFoundError", "AuthorizationError",
    "PersistenceError", "EventPublishError",

    # Contract catalogs
    "ContractRules",

    # Validation and changesets
    "TicketValidator", "software_change",

    # State and SLA times
    "TicketStateMachine",

    # Persistence
    "TicketStore",

    # Events and timeline
    "EventBus", "Topic", "TimelineListener", "TimelineService",

    # Entry point
    "TicketService", "TicketGuard",
]
