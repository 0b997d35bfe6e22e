"""
Ticketing Ticket Service

Entry point of every ticket request:

    authorize → validate → mutate (store or state machine) → publish

A mutation publishes one TicketUpdatedEvent when its changeset is
not empty. Publishing is fire-and-forget: a failure is logged and
the mutation stands.
"""

import logging
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError as ModelValidationError

from ..models.contract import Contract, TicketingUser, TicketingUserRole
from ..models.ticket import (
    DEFAULT_POPULATIONS,
    ActivityVerb,
    ChangesetEntry,
    Ticket,
    TicketAction,
    TicketPatch,
    TicketState,
    TicketTimes,
    TicketUpdatedEvent,
)
from .contract_rules import parse_id
from .errors import (
    AuthorizationError,
    EventPublishError,
    NotFoundError,
    ValidationError,
)
from .events import EventBus, Topic
from .state import TicketStateMachine
from .store import TicketStore
from .validation import TicketValidator

logger = logging.getLogger("ticket_service")

SCOPE_MINE = "mine"
STATE_OPEN = "open"


class TicketGuard:
    """
    Role checks, run before any validation.

    - administrator: everything
    - supporter: create, list, read; update tickets they support
    - user: create, read own tickets
    """

    def require_create(self, actor: TicketingUser) -> None:
        """Every role may open a ticket."""
        return None

    def require_list(self, actor: TicketingUser) -> None:
        if actor.role == TicketingUserRole.USER:
            raise AuthorizationError("User does not have permission to list tickets")

    def require_read(self, actor: TicketingUser, ticket: Ticket) -> None:
        if actor.role == TicketingUserRole.USER and ticket.requester != actor.id:
            raise AuthorizationError(
                f"User does not have permission to read ticket: {ticket.id}"
            )

    def require_update(
        self,
        actor: TicketingUser,
        ticket: Ticket,
        contract: Contract
    ) -> None:
        if actor.role == TicketingUserRole.ADMINISTRATOR:
            return

        if actor.role == TicketingUserRole.SUPPORTER and (
            actor.id == ticket.support_manager
            or actor.id == contract.default_support_manager
            or actor.id in ticket.support_technicians
        ):
            return

        raise AuthorizationError(
            f"User does not have permission to edit ticket: {ticket.id}"
        )


class TicketService:
    """
    Orchestrates ticket requests over validator, store and state machine.
    """

    def __init__(
        self,
        store: TicketStore,
        contract_repo,
        validator: TicketValidator,
        state_machine: TicketStateMachine,
        event_bus: EventBus,
        guard: Optional[TicketGuard] = None
    ):
        self.store = store
        self.contract_repo = contract_repo
        self.validator = validator
        self.state_machine = state_machine
        self.event_bus = event_bus
        self.guard = guard or TicketGuard()

    async def create_ticket(self, actor: TicketingUser, payload: dict) -> dict:
        """
        Create a ticket in the payload's contract.

        The actor becomes the requester, the contract's default
        support manager the support manager.
        """
        self.guard.require_create(actor)

        if not payload.get("contract"):
            raise ValidationError("contract is required")

        contract_id = parse_id(payload["contract"])
        if contract_id is None:
            raise ValidationError("contract is invalid")

        contract = await self.contract_repo.get(contract_id)
        if not contract:
            raise NotFoundError("contract not found")

        demand = self.validator.validate_creation(payload, contract)

        try:
            ticket = Ticket(
                contract=contract.id,
                title=payload["title"],
                demand_type=payload["demand_type"],
                severity=payload.get("severity"),
                software=payload.get("software") or None,
                description=payload["description"],
                environment=payload.get("environment"),
                attachments=payload.get("attachments") or [],
                requester=actor.id,
                support_manager=contract.default_support_manager,
                times=TicketTimes(**demand.sla_targets()),
                creation=self.state_machine.now()
            )
        except ModelValidationError as exc:
            raise ValidationError(f"ticket is invalid: {exc.errors()[0]['msg']}") from exc

        return await self.store.create(ticket, populations=DEFAULT_POPULATIONS)

    async def list_tickets(
        self,
        actor: TicketingUser,
        state: Optional[str] = None,
        scope: Optional[str] = None,
        offset=None,
        limit=None
    ) -> List[dict]:
        """
        List tickets.

        state "open" means every state but Closed/Abandoned; scope
        "mine" keeps tickets the actor requested or supports.
        """
        self.guard.require_list(actor)

        states = None
        if state == STATE_OPEN:
            states = [s.value for s in TicketState.open_states()]
        elif state:
            states = [state]

        actor_id = actor.id if scope == SCOPE_MINE else None

        return await self.store.list(
            states=states,
            requester=actor_id,
            support_manager=actor_id,
            support_technician=actor_id,
            offset=offset,
            limit=limit,
            populations=DEFAULT_POPULATIONS
        )

    async def get_ticket(self, actor: TicketingUser, ticket_id: UUID) -> dict:
        ticket = await self._load_ticket(ticket_id)
        self.guard.require_read(actor, ticket)

        return await self.store.populate(ticket, DEFAULT_POPULATIONS)

    async def update_ticket(
        self,
        actor: TicketingUser,
        ticket_id: UUID,
        payload: dict,
        action: Optional[str] = None,
        field: Optional[str] = None,
        method: str = "POST"
    ) -> dict:
        """
        Update a ticket.

        Without action: basic fields. With action: updateState,
        or set/unset of the workaround/correction time named by field.
        """
        ticket = await self._load_ticket(ticket_id)
        contract = await self.contract_repo.get(ticket.contract)
        if not contract:
            raise NotFoundError("contract not found")

        self.guard.require_update(actor, ticket, contract)

        ticket_action = self.validator.validate_action(action)
        verb = ActivityVerb.UPDATE

        if ticket_action is None:
            changeset = await self.validator.validate_update(payload, ticket, contract, method)
            try:
                patch = TicketPatch.from_payload(payload)
            except ModelValidationError as exc:
                raise ValidationError(f"ticket is invalid: {exc.errors()[0]['msg']}") from exc

            demand = self.validator.demand_for(payload, ticket, contract)
            times = (ticket.times or TicketTimes()).model_copy(update=demand.sla_targets())
            patch = patch.model_copy(update={"times": times})

            updated = await self.store.update_by_id(ticket.id, patch)
            if updated is None:
                raise NotFoundError("Ticket not found")

        elif ticket_action == TicketAction.UPDATE_STATE:
            state = self.validator.validate_state(payload)
            previous = ticket.state
            updated = await self.state_machine.update_state(ticket, state)
            changeset = []
            if previous != state:
                changeset.append(ChangesetEntry(
                    key="state",
                    display_name="state",
                    from_=previous.value,
                    to=state.value
                ))

        else:
            settable = self.validator.validate_time_action(ticket_action, field, ticket)
            updated = await self.state_machine.set_time(
                ticket, settable, ticket_action == TicketAction.SET
            )
            verb = ActivityVerb(ticket_action.value)
            changeset = [ChangesetEntry(key=settable.value, display_name=settable.display_name)]

        if changeset:
            await self._publish(TicketUpdatedEvent(
                actor=actor,
                ticket_id=updated.id,
                verb=verb,
                changeset=changeset
            ))

        return await self.store.populate(updated, DEFAULT_POPULATIONS)

    async def _load_ticket(self, ticket_id: UUID) -> Ticket:
        ticket = await self.store.get_by_id(ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found")
        return ticket

    async def _publish(self, event: TicketUpdatedEvent) -> None:
        try:
            await self.event_bus.publish(Topic.TICKET_UPDATED, event)
        except EventPublishError as exc:
            logger.error("ticket %s update not published: %s", event.ticket_id, exc)
