"""
Ticketing Contract Rules

Lookups over the contract catalogs. Pure: the contract is never
mutated and results only depend on the contract and the triple.
"""

from typing import Optional
from uuid import UUID

from ..models.contract import Contract, Demand


def parse_id(value) -> Optional[UUID]:
    """UUID from value, None if it is not a valid identifier."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


class ContractRules:
    """
    Answers "is this classification allowed by the contract?".

    Matching is existential over small catalogs, so a linear
    scan is enough and catalog order does not matter.
    """

    def __init__(self, contract: Contract):
        self.contract = contract

    def find_demand(
        self,
        demand_type: Optional[str],
        severity: Optional[str],
        software_criticality: Optional[str]
    ) -> Optional[Demand]:
        """
        First demand with the same demand type, issue type (severity)
        and software type (criticality), None if there is none.

        An empty criticality (ticket created without software)
        only matches on demand type and severity.
        """
        for demand in self.contract.demands:
            if demand.demand_type != demand_type:
                continue
            if demand.issue_type != severity:
                continue
            if software_criticality and demand.software_type != software_criticality:
                continue
            return demand
        return None

    def matches_demand(
        self,
        demand_type: Optional[str],
        severity: Optional[str],
        software_criticality: Optional[str]
    ) -> bool:
        return self.find_demand(demand_type, severity, software_criticality) is not None

    def matches_software(
        self,
        template,
        version: Optional[str],
        criticality: Optional[str]
    ) -> bool:
        """
        True if some catalog entry has the same template, lists the
        version and has the criticality as type.

        template may be a UUID or any string spelling of one.
        """
        template_id = parse_id(template)
        if template_id is None:
            return False

        return any(
            item.template == template_id
            and version in item.versions
            and item.type == criticality
            for item in self.contract.software
        )
