"""
Ticketing Store

Create / list / get / update over tickets, with reference
population (join) on demand.
"""

import logging
from typing import Any, List, Optional, Sequence, Union
from uuid import UUID

from ..config import Settings, get_settings
from ..models.ticket import Ticket, TicketPatch, TicketPopulation, TicketState
from .errors import PersistenceError

logger = logging.getLogger("ticket_store")


def to_int(value: Any, default: int) -> int:
    """value as int; default when absent, not numeric or not positive."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class TicketStore:
    """
    Persistence front of the ticket entity.

    Methods taking populations return the populated ticket as a
    dict (references replaced by the referenced documents),
    otherwise the Ticket itself.
    """

    def __init__(
        self,
        ticket_repo,
        contract_repo,
        user_repo,
        software_repo,
        settings: Optional[Settings] = None
    ):
        self.ticket_repo = ticket_repo
        self.contract_repo = contract_repo
        self.user_repo = user_repo
        self.software_repo = software_repo
        self.settings = settings or get_settings()

    async def create(
        self,
        ticket: Ticket,
        populations: Optional[Sequence[TicketPopulation]] = None
    ) -> Union[Ticket, dict]:
        created = await self._call(self.ticket_repo.add, ticket)
        logger.info("ticket %s created in contract %s", created.id, created.contract)

        if populations:
            return await self.populate(created, populations)
        return created

    async def list(
        self,
        states: Optional[List[str]] = None,
        requester: Optional[UUID] = None,
        support_manager: Optional[UUID] = None,
        support_technician: Optional[UUID] = None,
        offset: Any = None,
        limit: Any = None,
        populations: Optional[Sequence[TicketPopulation]] = None
    ) -> List[Union[Ticket, dict]]:
        """
        List tickets, most recently updated first.

        Unknown states are dropped; if none is left nothing matches.
        Role filters (requester, support manager, support technician)
        match if ANY of them matches.
        """
        valid_states = None
        if states:
            valid_states = [TicketState(s) for s in states if TicketState.validate(s)]
            if not valid_states:
                return []

        any_of = {}
        if requester:
            any_of["requester"] = requester
        if support_manager:
            any_of["support_manager"] = support_manager
        if support_technician:
            any_of["support_technicians"] = support_technician

        tickets = await self._call(
            self.ticket_repo.find,
            states=valid_states,
            any_of=any_of,
            offset=to_int(offset, self.settings.default_offset),
            limit=to_int(limit, self.settings.default_limit)
        )

        if populations:
            return [await self.populate(t, populations) for t in tickets]
        return tickets

    async def get_by_id(
        self,
        ticket_id: UUID,
        populations: Optional[Sequence[TicketPopulation]] = None
    ) -> Union[Ticket, dict, None]:
        ticket = await self._call(self.ticket_repo.get, ticket_id)

        if ticket and populations:
            return await self.populate(ticket, populations)
        return ticket

    async def update_by_id(self, ticket_id: UUID, patch: TicketPatch) -> Optional[Ticket]:
        """
        Merge the patch into the ticket.

        Returns the updated ticket, None if no ticket has this id.
        """
        return await self._call(self.ticket_repo.update, ticket_id, patch.changes())

    async def save(self, ticket: Ticket) -> Ticket:
        return await self._call(self.ticket_repo.save, ticket)

    async def populate(
        self,
        ticket: Ticket,
        populations: Sequence[TicketPopulation]
    ) -> dict:
        """Ticket as dict with the requested references expanded."""
        data = ticket.model_dump(mode="json")

        for population in populations:
            population = TicketPopulation(population)

            if population == TicketPopulation.CONTRACT:
                data["contract"] = await self._expand(self.contract_repo, ticket.contract)
            elif population == TicketPopulation.REQUESTER:
                data["requester"] = await self._expand_user(ticket.requester)
            elif population == TicketPopulation.SUPPORT_MANAGER:
                data["support_manager"] = await self._expand_user(ticket.support_manager)
            elif population == TicketPopulation.SUPPORT_TECHNICIANS:
                data["support_technicians"] = [
                    await self._expand_user(user_id) for user_id in ticket.support_technicians
                ]
            elif population == TicketPopulation.SOFTWARE_TEMPLATE and ticket.software:
                data["software"]["template"] = await self._expand(
                    self.software_repo, ticket.software.template
                )

        return data

    async def _expand_user(self, user_id: Optional[UUID]):
        user = await self._call(self.user_repo.get, user_id) if user_id else None
        if user is None:
            return str(user_id) if user_id else None
        return {
            "id": str(user.id),
            "firstname": user.firstname,
            "lastname": user.lastname,
        }

    async def _expand(self, repo, item_id: Optional[UUID]):
        item = await self._call(repo.get, item_id) if item_id else None
        if item is None:
            return str(item_id) if item_id else None
        return item.model_dump(mode="json")

    async def _call(self, method, *args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except Exception as exc:
            logger.error("ticket store failure in %s: %s", method.__name__, exc)
            raise PersistenceError("Ticket store failure") from exc
