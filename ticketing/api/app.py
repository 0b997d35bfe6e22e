"""
Ticketing API

FastAPI application with:
- Ticket create / list / get
- Ticket update: basic fields, state, workaround/correction time
- Ticket activities (timeline)
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Body, Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from ..models.contract import TicketingUser
from ..services.errors import TicketingError
from .dependencies import Container, get_actor, get_container

logger = logging.getLogger("ticketing_api")

STATUS_MESSAGES = {
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    500: "Server Error",
}


# =============================================================================
# APP SETUP
# =============================================================================

def create_app(container: Optional[Container] = None) -> FastAPI:
    container = container or Container()
    logging.basicConfig(level=container.settings.log_level)

    app = FastAPI(
        title="Ticketing Engine",
        description="Contract-bound tickets with state machine and SLA time tracking",
        version="0.1.0"
    )
    app.state.container = container

    @app.exception_handler(TicketingError)
    async def ticketing_error_handler(request: Request, exc: TicketingError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.status_code,
                    "message": STATUS_MESSAGES.get(exc.status_code, "Error"),
                    "details": exc.message
                }
            }
        )

    register_routes(app)
    return app


# =============================================================================
# ENDPOINTS
# =============================================================================

def register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "ticketing-engine",
            "version": "0.1.0"
        }

    @app.post("/tickets", status_code=status.HTTP_201_CREATED)
    async def create_ticket(
        payload: Dict[str, Any] = Body(...),
        actor: TicketingUser = Depends(get_actor),
        container: Container = Depends(get_container)
    ):
        """
        Create a ticket.

        The acting user is the requester.
        """
        return await container.tickets.create_ticket(actor, payload)

    @app.get("/tickets")
    async def list_tickets(
        response: Response,
        state: Optional[str] = None,
        scope: Optional[str] = None,
        offset: Optional[str] = None,
        limit: Optional[str] = None,
        actor: TicketingUser = Depends(get_actor),
        container: Container = Depends(get_container)
    ):
        """
        List tickets, most recently updated first.
        """
        tickets = await container.tickets.list_tickets(
            actor, state=state, scope=scope, offset=offset, limit=limit
        )
        response.headers[container.settings.items_count_header] = str(len(tickets))
        return tickets

    @app.get("/tickets/{ticket_id}")
    async def get_ticket(
        ticket_id: UUID,
        actor: TicketingUser = Depends(get_actor),
        container: Container = Depends(get_container)
    ):
        return await container.tickets.get_ticket(actor, ticket_id)

    @app.post("/tickets/{ticket_id}")
    async def update_ticket(
        request: Request,
        ticket_id: UUID,
        action: Optional[str] = None,
        field: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = Body(default=None),
        actor: TicketingUser = Depends(get_actor),
        container: Container = Depends(get_container)
    ):
        """
        Update a ticket.

        ?action=updateState with {"state": ...}
        ?action=set|unset&field=workaround|correction
        no action: basic fields
        """
        return await container.tickets.update_ticket(
            actor,
            ticket_id,
            payload or {},
            action=action,
            field=field,
            method=request.method
        )

    @app.get("/tickets/{ticket_id}/activities")
    async def get_activities(
        response: Response,
        ticket_id: UUID,
        offset: Optional[str] = None,
        limit: Optional[str] = None,
        actor: TicketingUser = Depends(get_actor),
        container: Container = Depends(get_container)
    ):
        """
        Get the ticket timeline, newest first.
        """
        await container.tickets.get_ticket(actor, ticket_id)
        entries, total = await container.timeline.list_activities(
            ticket_id, offset=offset, limit=limit
        )
        response.headers[container.settings.items_count_header] = str(total)
        return [entry.as_dict() for entry in entries]


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
