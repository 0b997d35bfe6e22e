"""
Ticketing Timeline Service

Activity feed of tickets.

The core never writes the timeline directly: it publishes
TicketUpdatedEvent, and the listener below turns each event into
a timeline entry, then re-publishes it as a notification.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from ..config import Settings, get_settings
from ..models.ticket import (
    ActivityActor,
    ActivityObject,
    TicketUpdatedEvent,
    TimelineEntry,
)
from .events import EventBus, Topic
from .store import to_int

logger = logging.getLogger("ticket_timeline")


class TimelineListener:
    """
    Stores a timeline entry for every ticket update event.

    Failures are logged and never reach the publisher.
    """

    def __init__(self, timeline_repo, event_bus: EventBus):
        self.timeline_repo = timeline_repo
        self.event_bus = event_bus

    def register(self) -> None:
        self.event_bus.subscribe(Topic.TICKET_UPDATED, self.handle)

    async def handle(self, event: TicketUpdatedEvent) -> Optional[TimelineEntry]:
        entry = TimelineEntry(
            verb=event.verb,
            actor=ActivityActor(id=event.actor.id, display_name=event.actor.display_name),
            object_=ActivityObject(id=event.ticket_id),
            changeset=event.changeset
        )

        try:
            stored = await self.timeline_repo.add(entry)
            await self.event_bus.publish(Topic.TICKET_NOTIFICATION, stored)
        except Exception:
            logger.exception("Error while creating timeline entry for ticket %s", event.ticket_id)
            return None

        logger.debug("timeline entry %s has been saved", stored.id)
        return stored


class TimelineService:
    """
    Read side of the ticket timeline.
    """

    def __init__(self, timeline_repo, settings: Optional[Settings] = None):
        self.timeline_repo = timeline_repo
        self.settings = settings or get_settings()

    async def list_activities(
        self,
        ticket_id: UUID,
        offset=None,
        limit=None
    ) -> Tuple[List[TimelineEntry], int]:
        """
        Get activities of a ticket, newest first, with the total count.
        """
        return await self.timeline_repo.get_for_ticket(
            ticket_id,
            offset=to_int(offset, self.settings.default_offset),
            limit=to_int(limit, self.settings.default_limit)
        )
