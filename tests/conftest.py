from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from ticketing.api.dependencies import Container
from ticketing.config import Settings
from ticketing.models import (
    Contract,
    ContractSoftware,
    Demand,
    Software,
    Ticket,
    TicketingUser,
    TicketingUserRole,
    TicketSoftware,
)

DESCRIPTION = "f" + "o" * 49  # minimum length


class FrozenClock:
    """Clock for the state machine, moved by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 9, 0, 0))


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def container(settings, clock):
    return Container(settings=settings, now=clock)


def build_world():
    admin = TicketingUser(
        email="admin@tic.org", firstname="Ada", lastname="Admin",
        role=TicketingUserRole.ADMINISTRATOR
    )
    supporter = TicketingUser(
        email="supporter@tic.org", firstname="Sam", lastname="Support",
        role=TicketingUserRole.SUPPORTER
    )
    custom_supporter = TicketingUser(
        email="custom@tic.org", firstname="Cus", lastname="Tom",
        role=TicketingUserRole.SUPPORTER
    )
    user1 = TicketingUser(email="user1@tic.org", firstname="Una", lastname="User")

    software = Software(name="software", category="category", versions=["1", "2", "3"])
    other_software = Software(name="other", category="category", versions=["1", "2"])

    demand1 = Demand(
        demand_type="Info1", software_type="Normal1", issue_type="Blocking1",
        response_time=1, workaround_time=2, correction_time=3
    )
    demand2 = Demand(
        demand_type="Info2", software_type="Normal2", issue_type="Blocking2",
        response_time=10, workaround_time=20, correction_time=30
    )

    contract = Contract(
        title="contract",
        default_support_manager=supporter.id,
        demands=[demand1, demand2],
        software=[
            ContractSoftware(template=software.id, type="Normal1", versions=software.versions),
            ContractSoftware(template=software.id, type="Normal2", versions=software.versions),
            ContractSoftware(template=other_software.id, type="Normal1", versions=["1", "2"]),
        ]
    )

    return SimpleNamespace(
        admin=admin,
        supporter=supporter,
        custom_supporter=custom_supporter,
        user1=user1,
        software=software,
        other_software=other_software,
        demand1=demand1,
        demand2=demand2,
        contract=contract,
    )


async def seed(container, world):
    for user in (world.admin, world.supporter, world.custom_supporter, world.user1):
        await container.user_repo.add(user)
    await container.software_repo.add(world.software)
    await container.software_repo.add(world.other_software)
    await container.contract_repo.add(world.contract)


@pytest.fixture
async def world(container):
    world = build_world()
    await seed(container, world)
    return world


def make_ticket(world, clock=None, **overrides) -> Ticket:
    fields = dict(
        contract=world.contract.id,
        title="ticket 1",
        demand_type="Info1",
        severity="Blocking1",
        software=TicketSoftware(template=world.software.id, version="1", criticality="Normal1"),
        description=DESCRIPTION,
        requester=world.user1.id,
        support_manager=world.custom_supporter.id,
        support_technicians=[world.custom_supporter.id],
    )
    if clock is not None:
        fields["creation"] = clock.now
    fields.update(overrides)
    return Ticket(**fields)


@pytest.fixture
async def ticket(container, world, clock):
    return await container.ticket_repo.add(make_ticket(world, clock))
