"""Structural invariants hold across long random sequences of intents."""
import random

import pytest

from shuttle import engine, history as hist, roster, store
from shuttle.errors import InvariantViolation
from shuttle.intents import (
    AddPlayer,
    AssignToCourt,
    CompleteGame,
    CreatePlannedGame,
    DeletePlannedGame,
    MarkBenched,
    PairPlayers,
    Redo,
    RemoveFromCourt,
    RestorePlayer,
    RotatePairing,
    SendPlannedGame,
    SetPlannedSlot,
    SettlePlannedGames,
    StartSession,
    SubstitutePlayer,
    Undo,
)
from shuttle.invariants import check_invariants
from shuttle.models import Court, Location, create_initial_state


def random_intent(rng, state):
    players = list(state.players) or [1]
    courts = list(state.courts) or [1]
    plans = [b.id for b in store.planned_games(state)] or [state.next_block_id]
    pid = rng.choice(players)
    court = rng.choice(courts)
    choice = rng.randrange(16)

    if choice == 0:
        return AddPlayer()
    if choice in (1, 2, 3):
        return AssignToCourt(player_id=pid, court_number=court)
    if choice == 4:
        return RemoveFromCourt(player_id=pid)
    if choice == 5:
        ids = state.courts[court].player_ids if court in state.courts else ()
        if len(ids) == 4:
            shuffled = list(ids)
            rng.shuffle(shuffled)
            return CompleteGame(court_number=court, winning_pair=tuple(shuffled[:2]),
                                losing_pair=tuple(shuffled[2:]))
        return RotatePairing(court_number=court)
    if choice == 6:
        return PairPlayers(court_number=court, first_id=pid, second_id=rng.choice(players))
    if choice == 7:
        return SubstitutePlayer(outgoing_id=pid, incoming_id=rng.choice(players), court_number=court)
    if choice == 8:
        return MarkBenched(player_id=pid, location=rng.choice([Location.RESTING, Location.LEFT]))
    if choice == 9:
        return RestorePlayer(player_id=pid)
    if choice == 10:
        return CreatePlannedGame()
    if choice == 11:
        return SetPlannedSlot(block_id=rng.choice(plans), slot_index=rng.randrange(4),
                              player_id=rng.choice(players + [None]))
    if choice == 12:
        return rng.choice([DeletePlannedGame(block_id=rng.choice(plans)),
                           SendPlannedGame(block_id=rng.choice(plans))])
    if choice == 13:
        return SettlePlannedGames()
    if choice == 14:
        return Undo()
    return Redo()


@pytest.mark.parametrize("seed", range(20))
def test_random_walk_preserves_invariants(seed):
    rng = random.Random(seed)
    h = engine.dispatch(hist.start(create_initial_state()), StartSession(court_count=3, player_count=10), now=0)

    for step in range(300):
        intent = random_intent(rng, h.present)
        h = engine.dispatch(h, intent, now=step)
        check_invariants(h.present)
        for snapshot in h.past:
            assert snapshot.config.session_started


def test_detects_player_in_two_places():
    state = roster.start_session(create_initial_state(), 1, 4)
    court = Court(number=1, player_ids=(1,))
    broken = store.with_court(state, court)

    with pytest.raises(InvariantViolation):
        check_invariants(broken)


def test_detects_open_block_of_four():
    state = roster.start_session(create_initial_state(), 1, 4)
    broken = store.with_block(state, state.blocks[1].model_copy(update={"closed": False}))

    with pytest.raises(InvariantViolation):
        check_invariants(broken)


def test_detects_start_time_on_partial_court():
    state = roster.start_session(create_initial_state(), 1, 4)
    broken = store.with_court(state, Court(number=1, start_time=5))

    with pytest.raises(InvariantViolation):
        check_invariants(broken)


def test_invariant_violation_is_an_assertion():
    assert issubclass(InvariantViolation, AssertionError)


def test_shared_display_order_detected():
    state = roster.start_session(create_initial_state(), 1, 8)
    state = engine.apply(state, AssignToCourt(player_id=1, court_number=1))
    clash = state.blocks[1].model_copy(update={"id": 2, "player_ids": (1,), "closed": False})
    state = state.model_copy(update={
        "blocks": {**state.blocks, 2: clash},
        "next_block_id": 3,
    })

    with pytest.raises(InvariantViolation, match="share display order"):
        check_invariants(state)
