"""
In-memory repositories.

Document-store semantics: stored documents are copies, so callers
only observe their own mutations after save/update.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from ..models.ticket import Ticket, TimelineEntry


class InMemoryRepository:
    """Documents keyed by id."""

    def __init__(self):
        self._items: Dict[UUID, Any] = {}

    async def add(self, item):
        self._items[item.id] = item.model_copy(deep=True)
        return item.model_copy(deep=True)

    async def get(self, item_id: UUID):
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def save(self, item):
        return await self.add(item)


class InMemoryUserRepository(InMemoryRepository):
    """TicketingUser documents."""


class InMemoryContractRepository(InMemoryRepository):
    """Contract documents."""


class InMemorySoftwareRepository(InMemoryRepository):
    """Software template documents."""


class InMemoryTicketRepository(InMemoryRepository):

    async def save(self, ticket: Ticket) -> Ticket:
        ticket.updated_at = datetime.utcnow()
        return await self.add(ticket)

    async def update(self, ticket_id: UUID, changes: dict) -> Optional[Ticket]:
        """Apply changes ($set) and return the updated ticket."""
        current = self._items.get(ticket_id)
        if current is None:
            return None

        data = current.model_dump()
        data.update(changes)
        data["updated_at"] = datetime.utcnow()
        self._items[ticket_id] = Ticket.model_validate(data)
        return await self.get(ticket_id)

    async def find(
        self,
        states: Optional[List[str]] = None,
        any_of: Optional[Dict[str, Any]] = None,
        offset: int = 0,
        limit: int = 50
    ) -> List[Ticket]:
        """
        Tickets in states (if given) matching any of the field filters
        (if given), most recently updated first.
        """
        tickets = list(self._items.values())

        if states is not None:
            tickets = [t for t in tickets if t.state in states]

        if any_of:
            tickets = [t for t in tickets if self._matches_any(t, any_of)]

        tickets.sort(key=lambda t: t.updated_at, reverse=True)
        return [t.model_copy(deep=True) for t in tickets[offset:offset + limit]]

    @staticmethod
    def _matches_any(ticket: Ticket, filters: Dict[str, Any]) -> bool:
        for field, value in filters.items():
            current = getattr(ticket, field)
            if isinstance(current, list):
                if value in current:
                    return True
            elif current == value:
                return True
        return False


class InMemoryTimelineRepository:

    def __init__(self):
        self._entries: List[TimelineEntry] = []

    async def add(self, entry: TimelineEntry) -> TimelineEntry:
        self._entries.append(entry.model_copy(deep=True))
        return entry

    async def get_for_ticket(
        self,
        ticket_id: UUID,
        offset: int = 0,
        limit: int = 50
    ) -> Tuple[List[TimelineEntry], int]:
        """Entries of a ticket, newest first, with the total count."""
        entries = [e for e in self._entries if e.object_.id == ticket_id]
        entries.sort(key=lambda e: e.published, reverse=True)
        return entries[offset:offset + limit], len(entries)
