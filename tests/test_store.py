from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from conftest import make_ticket
from ticketing.models import TicketPatch, TicketPopulation, TicketState
from ticketing.services import PersistenceError, TicketStore
from ticketing.services.store import to_int


@pytest.fixture
def store(container):
    return container.store


async def add_tickets(container, world, *specs):
    """Add tickets (state, updated minutes ago, overrides) to the repository."""
    tickets = []
    now = datetime.utcnow()
    for state, minutes_ago, overrides in specs:
        ticket = make_ticket(world, state=state, **overrides)
        ticket = await container.ticket_repo.add(ticket)
        container.ticket_repo._items[ticket.id].updated_at = now - timedelta(minutes=minutes_ago)
        tickets.append(ticket)
    return tickets


class TestToInt:

    @pytest.mark.parametrize("value,expected", [
        (None, 50),
        ("abc", 50),
        ("", 50),
        (0, 50),
        ("-5", 50),
        (-1, 50),
        ("20", 20),
        (5, 5),
    ])
    def test_defaults(self, value, expected):
        assert to_int(value, 50) == expected


class TestCreateAndGet:

    async def test_round_trip(self, store, world):
        ticket = make_ticket(world, environment="staging")

        created = await store.create(ticket)
        found = await store.get_by_id(created.id)

        for field in ("demand_type", "severity", "software", "title", "description", "environment"):
            assert getattr(found, field) == getattr(ticket, field)
        assert found.state == TicketState.NEW

    async def test_create_with_populations(self, store, world):
        ticket = make_ticket(world)

        created = await store.create(ticket, populations=[
            TicketPopulation.CONTRACT,
            TicketPopulation.SUPPORT_MANAGER,
            TicketPopulation.SOFTWARE_TEMPLATE,
        ])

        assert created["contract"]["title"] == "contract"
        assert created["support_manager"] == {
            "id": str(world.custom_supporter.id),
            "firstname": "Cus",
            "lastname": "Tom",
        }
        assert created["software"]["template"]["name"] == "software"
        assert created["requester"] == str(world.user1.id)

    async def test_get_missing(self, store):
        assert await store.get_by_id(uuid4()) is None


class TestList:

    async def test_unknown_states_only_skip_the_query(self, container, world, monkeypatch):
        async def find(**kwargs):
            raise AssertionError("store queried")

        monkeypatch.setattr(container.ticket_repo, "find", find)

        assert await container.store.list(states=["bogus-state"]) == []

    async def test_unknown_states_are_dropped(self, container, store, world):
        awaiting, _ = await add_tickets(
            container, world,
            (TicketState.AWAITING, 1, {}),
            (TicketState.CLOSED, 2, {}),
        )

        tickets = await store.list(states=["bogus-state", "Awaiting"])

        assert [t.id for t in tickets] == [awaiting.id]

    async def test_most_recently_updated_first(self, container, store, world):
        old, recent, middle = await add_tickets(
            container, world,
            (TicketState.NEW, 30, {}),
            (TicketState.NEW, 1, {}),
            (TicketState.NEW, 10, {}),
        )

        tickets = await store.list()

        assert [t.id for t in tickets] == [recent.id, middle.id, old.id]

    async def test_role_filters_are_combined_with_or(self, container, store, world):
        requested, managed, supported, _ = await add_tickets(
            container, world,
            (TicketState.NEW, 1, {"requester": world.admin.id}),
            (TicketState.NEW, 2, {"support_manager": world.admin.id}),
            (TicketState.NEW, 3, {"support_technicians": [world.supporter.id, world.admin.id]}),
            (TicketState.NEW, 4, {}),
        )

        tickets = await store.list(
            requester=world.admin.id,
            support_manager=world.admin.id,
            support_technician=world.admin.id
        )

        assert [t.id for t in tickets] == [requested.id, managed.id, supported.id]

    async def test_states_and_roles(self, container, store, world):
        await add_tickets(
            container, world,
            (TicketState.CLOSED, 1, {"requester": world.admin.id}),
            (TicketState.NEW, 2, {}),
        )

        assert await store.list(states=["Closed"], requester=world.supporter.id) == []

    async def test_offset_and_limit(self, container, store, world):
        tickets = await add_tickets(
            container, world, *[(TicketState.NEW, minutes, {}) for minutes in range(5)]
        )

        page = await store.list(offset="1", limit=2)

        assert [t.id for t in page] == [tickets[1].id, tickets[2].id]

    async def test_non_numeric_paging_uses_defaults(self, container, store, world):
        await add_tickets(container, world, *[(TicketState.NEW, m, {}) for m in range(3)])

        assert len(await store.list(offset="x", limit="y")) == 3

    async def test_negative_paging_uses_defaults(self, container, store, world):
        tickets = await add_tickets(container, world, *[(TicketState.NEW, m, {}) for m in range(3)])

        page = await store.list(offset="-1", limit=-2)

        assert [t.id for t in page] == [t.id for t in tickets]


class TestUpdateById:

    async def test_merges_patch(self, store, ticket):
        patch = TicketPatch.from_payload({"title": "modified", "environment": "prod"})

        updated = await store.update_by_id(ticket.id, patch)

        assert updated.title == "modified"
        assert updated.environment == "prod"
        assert updated.description == ticket.description
        assert updated.contract == ticket.contract

    async def test_empty_software_removes_it(self, store, ticket):
        updated = await store.update_by_id(ticket.id, TicketPatch.from_payload({"software": {}}))

        assert updated.software is None

    async def test_not_found(self, store):
        assert await store.update_by_id(uuid4(), TicketPatch(title="x")) is None


class TestPersistenceFailure:

    async def test_repository_errors_are_wrapped(self, container, world):
        class BrokenRepository:
            async def get(self, ticket_id):
                raise ConnectionError("database is gone")

        store = TicketStore(
            BrokenRepository(), container.contract_repo, container.user_repo,
            container.software_repo
        )

        with pytest.raises(PersistenceError):
            await store.get_by_id(uuid4())
