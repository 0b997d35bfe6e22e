"""
Ticketing errors.

Every error carries the human-readable reason sent back to the
caller and the HTTP status class it maps to.
"""


class TicketingError(Exception):
    """Base of all ticketing errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TicketingError):
    """Input malformed or incompatible with the contract."""
    status_code = 400


class NotFoundError(TicketingError):
    """Ticket, contract or referenced user absent."""
    status_code = 404


class AuthorizationError(TicketingError):
    """Role or ownership mismatch."""
    status_code = 403


class PersistenceError(TicketingError):
    """Store failure."""
    pass


class EventPublishError(TicketingError):
    """Raised by the event bus when a subscriber fails."""
    pass
