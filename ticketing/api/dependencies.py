"""
Service wiring for the API.

The container builds repositories and services once per app; the
dependencies below hand them to the endpoints.
"""

from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from ..config import Settings, get_settings
from ..models.contract import TicketingUser
from ..repositories import (
    InMemoryContractRepository,
    InMemorySoftwareRepository,
    InMemoryTicketRepository,
    InMemoryTimelineRepository,
    InMemoryUserRepository,
)
from ..services import (
    EventBus,
    TicketService,
    TicketStateMachine,
    TicketStore,
    TicketValidator,
    TimelineListener,
    TimelineService,
)


class Container:
    """Repositories and services of one application."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.settings = settings or get_settings()

        self.user_repo = InMemoryUserRepository()
        self.contract_repo = InMemoryContractRepository()
        self.software_repo = InMemorySoftwareRepository()
        self.ticket_repo = InMemoryTicketRepository()
        self.timeline_repo = InMemoryTimelineRepository()

        self.event_bus = EventBus()
        self.store = TicketStore(
            self.ticket_repo,
            self.contract_repo,
            self.user_repo,
            self.software_repo,
            settings=self.settings
        )
        self.validator = TicketValidator(self.user_repo, self.software_repo, settings=self.settings)
        self.state_machine = TicketStateMachine(self.store, now=now)
        self.tickets = TicketService(
            self.store,
            self.contract_repo,
            self.validator,
            self.state_machine,
            self.event_bus
        )
        self.timeline = TimelineService(self.timeline_repo, settings=self.settings)

        self.timeline_listener = TimelineListener(self.timeline_repo, self.event_bus)
        self.timeline_listener.register()


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    container: Container = Depends(get_container)
) -> TicketingUser:
    """Acting user, identified upstream by the X-User-Id header."""
    try:
        user_id = UUID(x_user_id) if x_user_id else None
    except ValueError:
        user_id = None

    user = await container.user_repo.get(user_id) if user_id else None
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user
