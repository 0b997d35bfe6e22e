"""
Ticketing State Service

Ticket lifecycle and SLA time tracking.

States: New → In progress ⇄ Awaiting* → Closed / Abandoned

Time accounting (minutes, rounded half away from zero):
- response: time to first "In progress", minus suspended time
- suspended_at: stamped when a working ticket stops
- suspend: accumulated suspended time, never reset
- workaround / correction: flags set on top of the state
"""

import logging
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from ..models.ticket import (
    FINAL_STATES,
    SettableTime,
    Ticket,
    TicketState,
    TicketTimes,
)
from .errors import ValidationError

logger = logging.getLogger("ticket_state")


def round_minutes(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def minutes_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier) / timedelta(minutes=1)


class TicketStateMachine:
    """
    Governs state transitions and derives SLA times.

    Every method mutates the given ticket and persists it through
    the store, except no-op transitions which are not persisted.
    """

    def __init__(self, store, now: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.now = now or datetime.utcnow

    async def update_state(self, ticket: Ticket, state: TicketState) -> Ticket:
        """
        Move ticket to state, updating its SLA times.

        Raises ValidationError when moving a ticket back to New.
        """
        if ticket.state == state:
            return ticket

        if state == TicketState.NEW:
            raise ValidationError("change state of ticket to New is not supported")

        if ticket.times is None:
            ticket.times = TicketTimes()
        times = ticket.times
        now = self.now()

        if state == TicketState.IN_PROGRESS:
            if times.response is None:
                times.response = self._elapsed(ticket, now)

            # TODO: confirm with product whether this should test the previous
            # state; as written it never fires for "In progress".
            if TicketState.is_suspended(state):
                times.suspend = (times.suspend or 0) + round_minutes(
                    minutes_between(now, times.suspended_at)
                )
        elif (
            (TicketState.is_suspended(state) or state in FINAL_STATES)
            and not TicketState.is_suspended(ticket.state)
        ):
            times.suspended_at = now

        logger.info("ticket %s: %s -> %s", ticket.id, ticket.state.value, TicketState(state).value)
        ticket.state = TicketState(state)

        return await self.store.save(ticket)

    async def set_workaround_time(self, ticket: Ticket, enabled: bool) -> Ticket:
        return await self._set_time(ticket, SettableTime.WORKAROUND, enabled)

    async def set_correction_time(self, ticket: Ticket, enabled: bool) -> Ticket:
        return await self._set_time(ticket, SettableTime.CORRECTION, enabled)

    async def set_time(self, ticket: Ticket, field: SettableTime, enabled: bool) -> Ticket:
        return await self._set_time(ticket, field, enabled)

    async def _set_time(self, ticket: Ticket, field: SettableTime, enabled: bool) -> Ticket:
        if ticket.times is None:
            ticket.times = TicketTimes()

        value = self._elapsed(ticket, self.now()) if enabled else None
        setattr(ticket.times, field.value, value)
        logger.info("ticket %s: %s = %s", ticket.id, field.display_name, value)

        return await self.store.save(ticket)

    def _elapsed(self, ticket: Ticket, now: datetime) -> int:
        """Minutes since creation, suspended time excluded."""
        suspend = ticket.times.suspend or 0
        return round_minutes(minutes_between(now, ticket.creation) - suspend)
