"""
Ticketing Validation Service

Gate for every ticket create/update:
1. Structural checks (required fields, formats)
2. Relational checks (referenced users exist)
3. Contract checks (software catalog, demand triple)

The first failing check wins. On success an update also yields
the changeset consumed by the activity timeline.
"""

import asyncio
import logging
from typing import Dict, List, Optional
from uuid import UUID

from ..config import Settings, get_settings
from ..models.contract import Contract, Demand
from ..models.ticket import (
    ChangesetEntry,
    SettableTime,
    Ticket,
    TicketAction,
    TicketSoftware,
    TicketState,
)
from .contract_rules import ContractRules, parse_id
from .errors import NotFoundError, ValidationError

logger = logging.getLogger("ticket_validation")


# Fields diffed on basic update, with their display names
TRACKED_FIELDS = {
    "title": "title",
    "description": "description",
    "environment": "environment",
    "demand_type": "demand type",
    "severity": "severity",
}


def parse_ids(values) -> Optional[List[UUID]]:
    if not isinstance(values, list):
        return None
    ids = [parse_id(value) for value in values]
    if any(i is None for i in ids):
        return None
    return ids


def format_software(name: str, version: str, criticality: str) -> str:
    return f"{name} {version} - ({criticality})"


def software_change(
    current: Optional[TicketSoftware],
    proposed: Optional[dict],
    template_names: Dict[str, str]
) -> Optional[ChangesetEntry]:
    """
    Diff of the software field.

    template_names maps template ids (as str) to display names,
    for both the current and the proposed template.
    """
    current_label = ""
    if current:
        current_label = format_software(
            template_names.get(str(current.template), ""),
            current.version,
            current.criticality
        )

    if not proposed:
        if not current:
            return None
        return ChangesetEntry(key="software", display_name="software", from_=current_label)

    template_id = parse_id(proposed["template"])
    if not current or template_id != current.template:
        name = template_names.get(str(template_id), "")
    elif (
        proposed["version"] == current.version
        and proposed["criticality"] == current.criticality
    ):
        return None
    else:
        # Same template: keep the current display name
        name = template_names.get(str(current.template), "")

    return ChangesetEntry(
        key="software",
        display_name="software",
        from_=current_label,
        to=format_software(name, proposed["version"], proposed["criticality"])
    )


class TicketValidator:
    """
    Validates ticket payloads against structure, users and contract.

    Payloads are plain mappings as received from the client, so
    "key present but empty" can be told apart from "key absent".
    """

    def __init__(
        self,
        user_repo,
        software_repo,
        settings: Optional[Settings] = None
    ):
        self.user_repo = user_repo
        self.software_repo = software_repo
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Create / update
    # -------------------------------------------------------------------------

    def validate_creation(self, payload: dict, contract: Contract) -> Demand:
        """
        Validate a new ticket against its contract.

        Returns the contract demand the ticket falls under.
        """
        if not payload.get("title"):
            raise self._reject("title is required")

        if not payload.get("demand_type"):
            raise self._reject("demand_type is required")

        if not payload.get("description"):
            raise self._reject("description is required")

        attachments = payload.get("attachments")
        if attachments and parse_ids(attachments) is None:
            raise self._reject("attachments are invalid")

        self._validate_basic_info(payload)
        return self._validate_classification(payload, None, contract)

    async def validate_update(
        self,
        payload: dict,
        ticket: Ticket,
        contract: Contract,
        method: str = "POST"
    ) -> List[ChangesetEntry]:
        """
        Validate a basic update of ticket and build its changeset.

        Actor changes (requester, support manager, technicians) are only
        recorded for update methods.
        """
        self._validate_basic_info(payload)

        track_actors = method.upper() in self.settings.update_methods
        changeset = []
        changeset.extend(await self._validate_requester(payload, ticket, track_actors))
        changeset.extend(await self._validate_support_manager(payload, ticket, track_actors))
        changeset.extend(await self._validate_support_technicians(payload, ticket, track_actors))

        self._validate_classification(payload, ticket, contract)

        for key, display_name in TRACKED_FIELDS.items():
            if key in payload and payload[key] != getattr(ticket, key):
                changeset.append(ChangesetEntry(
                    key=key,
                    display_name=display_name,
                    from_=getattr(ticket, key),
                    to=payload[key]
                ))

        if "software" in payload:
            proposed = payload["software"] or None
            names = await self._template_names(ticket.software, proposed)
            entry = software_change(ticket.software, proposed, names)
            if entry:
                changeset.append(entry)

        return changeset

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def validate_action(self, action: Optional[str]) -> Optional[TicketAction]:
        if not action:
            return None
        if action not in TicketAction._value2member_map_:
            raise self._reject(f"Action {action} is not supported")
        return TicketAction(action)

    def validate_state(self, payload: dict) -> TicketState:
        state = payload.get("state")

        if not state:
            raise self._reject("state is required")

        if not TicketState.validate(state):
            raise self._reject("state is invalid")

        return TicketState(state)

    def validate_time_action(
        self,
        action: TicketAction,
        field: Optional[str],
        ticket: Ticket
    ) -> SettableTime:
        if field not in SettableTime._value2member_map_:
            raise self._reject(f"{field} time is not able to set")

        settable = SettableTime(field)
        if action == TicketAction.SET and ticket.times and getattr(ticket.times, settable.value) is not None:
            raise self._reject(f"Field {field} already set")

        return settable

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _validate_basic_info(self, payload: dict) -> None:
        for key in ("title", "demand_type", "description", "requester", "support_manager"):
            if key in payload and not payload[key]:
                raise self._reject(f"{key} is required")

        description = payload.get("description")
        min_length = self.settings.description_min_length
        if description and (not isinstance(description, str) or len(description) < min_length):
            raise self._reject(
                f"description must be a string with minimum length of {min_length}"
            )

        environment = payload.get("environment")
        if environment is not None and not isinstance(environment, str):
            raise self._reject("environment must be a string")

        software = payload.get("software")
        if software:
            if (
                not isinstance(software, dict)
                or not software.get("template")
                or not software.get("version")
                or not software.get("criticality")
                or parse_id(software["template"]) is None
            ):
                raise self._reject(
                    "software is invalid: template, version and criticality are required"
                )

    def _validate_classification(
        self,
        payload: dict,
        ticket: Optional[Ticket],
        contract: Contract
    ) -> Demand:
        software = payload.get("software")

        if software:
            if not ContractRules(contract).matches_software(
                software["template"], software["version"], software["criticality"]
            ):
                raise self._reject(
                    "The pair (software template, software version) is not supported"
                )

        demand = self.demand_for(payload, ticket, contract)
        if demand is None:
            raise self._reject(
                "The triple (demand_type, severity, software criticality) is not supported"
            )
        return demand

    def demand_for(
        self,
        payload: dict,
        ticket: Optional[Ticket],
        contract: Contract
    ) -> Optional[Demand]:
        """
        Contract demand matching the payload, completed by the ticket.
        """
        software = payload.get("software")
        demand_type = payload.get("demand_type") or (ticket.demand_type if ticket else None)
        severity = payload.get("severity") or (ticket.severity if ticket else None)
        if software and software.get("criticality"):
            criticality = software["criticality"]
        else:
            # Falls back to the current severity, not the current software
            criticality = ticket.severity if ticket else None

        return ContractRules(contract).find_demand(demand_type, severity, criticality)

    async def _validate_requester(
        self,
        payload: dict,
        ticket: Ticket,
        track: bool
    ) -> List[ChangesetEntry]:
        return await self._validate_actor(
            payload, ticket, track, key="requester", display_name="requester"
        )

    async def _validate_support_manager(
        self,
        payload: dict,
        ticket: Ticket,
        track: bool
    ) -> List[ChangesetEntry]:
        return await self._validate_actor(
            payload, ticket, track, key="support_manager", display_name="support manager"
        )

    async def _validate_actor(
        self,
        payload: dict,
        ticket: Ticket,
        track: bool,
        key: str,
        display_name: str
    ) -> List[ChangesetEntry]:
        if not payload.get(key):
            return []

        user_id = parse_id(payload[key])
        if user_id is None:
            raise self._reject(f"{key} is invalid")

        user = await self.user_repo.get(user_id)
        if not user:
            raise NotFoundError(f"{key} not found")

        current_id = getattr(ticket, key)
        if not track or current_id == user_id:
            return []

        current = await self.user_repo.get(current_id) if current_id else None
        return [ChangesetEntry(
            key=key,
            display_name=display_name,
            from_=current.display_name if current else "",
            to=user.display_name
        )]

    async def _validate_support_technicians(
        self,
        payload: dict,
        ticket: Ticket,
        track: bool
    ) -> List[ChangesetEntry]:
        if payload.get("support_technicians") is None:
            return []

        user_ids = parse_ids(payload["support_technicians"])
        if not user_ids:
            raise self._reject("support_technicians is invalid")

        users = await asyncio.gather(*(self.user_repo.get(i) for i in user_ids))
        not_found = [str(i) for i, user in zip(user_ids, users) if not user]
        if not_found:
            raise NotFoundError(f"support_technicians {','.join(not_found)} are not found")

        if not track or set(user_ids) == set(ticket.support_technicians):
            return []

        current = await asyncio.gather(
            *(self.user_repo.get(i) for i in ticket.support_technicians)
        )
        return [ChangesetEntry(
            key="support_technicians",
            display_name="support technicians",
            from_=", ".join(u.display_name for u in current if u),
            to=", ".join(u.display_name for u in users)
        )]

    async def _template_names(
        self,
        current: Optional[TicketSoftware],
        proposed: Optional[dict]
    ) -> Dict[str, str]:
        template_ids = set()
        if current:
            template_ids.add(current.template)
        if proposed:
            template_ids.add(parse_id(proposed["template"]))

        names = {}
        for template_id in template_ids:
            software = await self.software_repo.get(template_id)
            if software:
                names[str(template_id)] = software.name
        return names

    def _reject(self, message: str) -> ValidationError:
        logger.debug("ticket rejected: %s", message)
        return ValidationError(message)
