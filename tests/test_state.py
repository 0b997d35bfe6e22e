from datetime import timedelta

import pytest

from conftest import make_ticket
from ticketing.models import TicketState, TicketTimes
from ticketing.services import TicketStateMachine, ValidationError
from ticketing.services.state import round_minutes


class RecordingStore:
    """Store double counting saves."""

    def __init__(self):
        self.saved = []

    async def save(self, ticket):
        self.saved.append(ticket.model_copy(deep=True))
        return ticket


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def machine(store, clock):
    return TicketStateMachine(store, now=clock)


@pytest.fixture
def new_ticket(world, clock):
    return make_ticket(world, clock)


class TestRoundMinutes:

    @pytest.mark.parametrize("value,expected", [
        (0.4, 0),
        (0.5, 1),
        (1.5, 2),
        (2.5, 3),
        (-0.4, 0),
        (-1.5, -2),
    ])
    def test_rounds_half_away_from_zero(self, value, expected):
        assert round_minutes(value) == expected


class TestUpdateState:

    async def test_same_state_is_noop(self, machine, store, new_ticket):
        result = await machine.update_state(new_ticket, TicketState.NEW)

        assert result is new_ticket
        assert store.saved == []

    async def test_back_to_new_is_rejected(self, machine, store, world, clock):
        ticket = make_ticket(world, clock, state=TicketState.IN_PROGRESS)

        with pytest.raises(ValidationError, match="change state of ticket to New is not supported"):
            await machine.update_state(ticket, TicketState.NEW)
        assert store.saved == []

    async def test_in_progress_sets_response_time(self, machine, store, new_ticket, clock):
        clock.advance(minutes=42, seconds=20)

        result = await machine.update_state(new_ticket, TicketState.IN_PROGRESS)

        assert result.state == TicketState.IN_PROGRESS
        assert result.times.response == 42
        assert len(store.saved) == 1

    async def test_response_time_excludes_suspended_time(self, machine, world, clock):
        ticket = make_ticket(world, clock, times=TicketTimes(suspend=10))
        clock.advance(minutes=30)

        result = await machine.update_state(ticket, TicketState.IN_PROGRESS)

        assert result.times.response == 20

    async def test_response_time_is_kept(self, machine, world, clock):
        ticket = make_ticket(
            world, clock, state=TicketState.AWAITING, times=TicketTimes(response=5)
        )
        clock.advance(hours=3)

        result = await machine.update_state(ticket, TicketState.IN_PROGRESS)

        assert result.times.response == 5

    async def test_missing_times_are_created(self, machine, world, clock):
        ticket = make_ticket(world, clock, times=None)

        result = await machine.update_state(ticket, TicketState.AWAITING)

        assert result.times.suspended_at == clock.now

    @pytest.mark.parametrize("state", [
        TicketState.AWAITING,
        TicketState.AWAITING_INFORMATION,
        TicketState.AWAITING_VALIDATION,
        TicketState.CLOSED,
        TicketState.ABANDONED,
    ])
    async def test_stopping_a_working_ticket_stamps_suspended_at(self, machine, world, clock, state):
        ticket = make_ticket(world, clock, state=TicketState.IN_PROGRESS)
        clock.advance(minutes=7)

        result = await machine.update_state(ticket, state)

        assert result.state == state
        assert result.times.suspended_at == clock.now

    async def test_between_suspended_states_keeps_suspended_at(self, machine, world, clock):
        suspended_at = clock.now
        ticket = make_ticket(
            world, clock, state=TicketState.AWAITING,
            times=TicketTimes(suspended_at=suspended_at)
        )
        clock.advance(minutes=15)

        result = await machine.update_state(ticket, TicketState.AWAITING_VALIDATION)

        assert result.times.suspended_at == suspended_at

    async def test_closing_a_suspended_ticket_keeps_suspended_at(self, machine, world, clock):
        suspended_at = clock.now
        ticket = make_ticket(
            world, clock, state=TicketState.AWAITING_INFORMATION,
            times=TicketTimes(suspended_at=suspended_at)
        )
        clock.advance(minutes=15)

        result = await machine.update_state(ticket, TicketState.CLOSED)

        assert result.times.suspended_at == suspended_at

    async def test_resuming_does_not_accumulate_suspend(self, machine, world, clock):
        # The accumulation branch is guarded by the target state being
        # suspended, which "In progress" never is.
        ticket = make_ticket(
            world, clock, state=TicketState.AWAITING,
            times=TicketTimes(suspended_at=clock.now, suspend=4)
        )
        clock.advance(minutes=25)

        result = await machine.update_state(ticket, TicketState.IN_PROGRESS)

        assert result.times.suspend == 4
        assert result.times.response == 21

    async def test_suspend_never_decreases(self, machine, world, clock):
        ticket = make_ticket(world, clock, times=TicketTimes(suspend=3))
        seen = [ticket.times.suspend]

        for state in (
            TicketState.IN_PROGRESS,
            TicketState.AWAITING,
            TicketState.IN_PROGRESS,
            TicketState.AWAITING_INFORMATION,
            TicketState.CLOSED,
            TicketState.IN_PROGRESS,
        ):
            clock.advance(minutes=11)
            ticket = await machine.update_state(ticket, state)
            seen.append(ticket.times.suspend or 0)

        assert seen == sorted(seen)


class TestTimeFlags:

    async def test_set_workaround_time(self, machine, store, new_ticket, clock):
        clock.advance(minutes=90)

        result = await machine.set_workaround_time(new_ticket, True)

        assert result.times.workaround == 90
        assert len(store.saved) == 1

    async def test_set_then_unset_workaround_time(self, machine, new_ticket, clock):
        clock.advance(minutes=10)
        ticket = await machine.set_workaround_time(new_ticket, True)

        ticket = await machine.set_workaround_time(ticket, False)

        assert ticket.times.workaround is None

    async def test_set_correction_time_excludes_suspend(self, machine, world, clock):
        ticket = make_ticket(world, clock, times=TicketTimes(suspend=30))
        clock.advance(hours=2)

        result = await machine.set_correction_time(ticket, True)

        assert result.times.correction == 90
        assert result.times.workaround is None

    async def test_setting_again_recomputes(self, machine, new_ticket, clock):
        clock.advance(minutes=10)
        ticket = await machine.set_correction_time(new_ticket, True)
        clock.advance(minutes=5)

        ticket = await machine.set_correction_time(ticket, True)

        assert ticket.times.correction == 15

    async def test_creation_is_untouched(self, machine, new_ticket, clock):
        creation = new_ticket.creation
        clock.advance(minutes=10)

        ticket = await machine.update_state(new_ticket, TicketState.IN_PROGRESS)
        ticket = await machine.set_workaround_time(ticket, True)

        assert ticket.creation == creation
        assert ticket.creation + timedelta(minutes=10) == clock.now
