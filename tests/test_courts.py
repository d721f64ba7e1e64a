"""Tests for court assignment, removal, substitution and pairings."""
import pytest

from shuttle import courts, engine, games, planned, roster, store
from shuttle.errors import CapacityExceeded, InvalidState, NotFound
from shuttle.intents import AssignToCourt, PairPlayers, RemoveFromCourt, RotatePairing
from shuttle.invariants import check_invariants
from shuttle.models import BlockType, Location, PlayerState, create_initial_state


def fill_court(state, court_number, player_ids, now=50):
    for pid in player_ids:
        state = courts.assign_to_court(state, pid, court_number, now=now)
    return state


@pytest.fixture
def first_game():
    """Two courts, eight players, players 1-4 on court 1."""
    state = roster.start_session(create_initial_state(), 2, 8, now=0)
    return fill_court(state, 1, [1, 2, 3, 4])


def test_fill_court_starts_game(first_game):
    state = first_game

    court = state.courts[1]
    assert court.player_ids == (1, 2, 3, 4)
    assert court.start_time == 50
    assert court.pairing_index == 0
    assert state.blocks[1].player_ids == (5, 6, 7, 8)
    for pid in (1, 2, 3, 4):
        assert state.statuses[pid].location == Location.COURT
        assert state.statuses[pid].court_number == 1
        assert state.statuses[pid].queue_block_id is None

    pairing = courts.current_pairing(court)
    assert pairing.pair1 == (1, 2)
    assert pairing.pair2 == (3, 4)
    check_invariants(state)


def test_partial_court_has_no_start_time():
    state = roster.start_session(create_initial_state(), 1, 4)
    state = fill_court(state, 1, [1, 2, 3])

    assert state.courts[1].start_time is None
    assert courts.current_pairing(state.courts[1]) is None


def test_assign_to_full_court_rejected(first_game):
    with pytest.raises(CapacityExceeded):
        courts.assign_to_court(first_game, 5, 1)

    after = engine.apply(first_game, AssignToCourt(player_id=5, court_number=1))
    assert after is first_game


def test_assign_unknown_ids_rejected(first_game):
    with pytest.raises(NotFound):
        courts.assign_to_court(first_game, 99, 2)
    with pytest.raises(NotFound):
        courts.assign_to_court(first_game, 5, 9)


def test_assign_player_already_on_court_rejected(first_game):
    with pytest.raises(InvalidState):
        courts.assign_to_court(first_game, 1, 2)


def test_remove_returns_player_to_game_ended_block(first_game):
    state = games.complete_game(first_game, 1, (1, 2), (3, 4), now=60)
    state = fill_court(state, 1, [5, 6, 7, 8], now=70)
    assert 1 not in state.blocks

    state = courts.assign_to_court(state, 1, 2, now=80)
    assert state.blocks[2].player_ids == (2, 3, 4)

    state = courts.remove_from_court(state, 1, now=90)

    block = state.blocks[2]
    assert block.type == BlockType.GAME_ENDED
    assert block.player_ids == (1, 2, 3, 4)
    assert block.source_court == 1
    assert block.closed is True
    status = state.statuses[1]
    assert status.location == Location.QUEUE
    assert status.queue_block_id == 2
    assert status.state == PlayerState.WINNER
    assert state.courts[2].player_ids == ()
    check_invariants(state)


def test_remove_rebuilds_deleted_block():
    state = roster.start_session(create_initial_state(), 2, 4)
    state = fill_court(state, 1, [1, 2, 3, 4])
    assert state.blocks == {}

    state = courts.remove_from_court(state, 2)

    block = state.blocks[1]
    assert block.type == BlockType.NEW_PLAYERS
    assert block.player_ids == (2,)
    assert block.display_order == 0
    assert block.closed is False
    assert state.courts[1].player_ids == (1, 3, 4)
    assert state.courts[1].start_time is None

    state = courts.remove_from_court(state, 3)
    assert set(state.blocks[1].player_ids) == {2, 3}
    assert list(state.blocks) == [1]
    check_invariants(state)


def test_remove_into_full_block_falls_back_to_returning():
    state = roster.start_session(create_initial_state(), 2, 3)
    state = courts.assign_to_court(state, 1, 1)
    state = roster.add_player(state)
    state = roster.add_player(state)
    assert state.blocks[1].player_ids == (2, 3, 4, 5)

    state = courts.remove_from_court(state, 1, now=5)

    assert state.blocks[1].player_ids == (2, 3, 4, 5)
    block = state.blocks[2]
    assert block.type == BlockType.RETURNING
    assert block.player_ids == (1,)
    assert block.source_court == 1
    assert block.display_order == 1
    assert state.statuses[1].state == PlayerState.WAITING
    check_invariants(state)


def test_remove_player_not_on_court(first_game):
    with pytest.raises(InvalidState):
        courts.remove_from_court(first_game, 5)
    assert engine.apply(first_game, RemoveFromCourt(player_id=5)) is first_game


def test_substitution_keeps_slot_and_clock():
    state = roster.start_session(create_initial_state(), 2, 6)
    state = fill_court(state, 1, [1, 2, 3, 4])

    state = courts.substitute_player(state, 2, 5, 1, now=70)

    court = state.courts[1]
    assert court.player_ids == (1, 5, 3, 4)
    assert court.start_time == 50
    assert state.blocks[1].player_ids == (6,)

    block = state.blocks[2]
    assert block.type == BlockType.SUBSTITUTED
    assert block.player_ids == (2,)
    assert block.source_court == 1
    assert block.display_order == 1
    assert state.statuses[2].state == PlayerState.WAITING
    assert state.statuses[5].location == Location.COURT
    check_invariants(state)

    state = courts.remove_from_court(state, 5, now=80)
    block = state.blocks[3]
    assert block.type == BlockType.RETURNING
    assert block.player_ids == (5,)
    assert block.source_court == 1
    assert state.courts[1].start_time is None
    check_invariants(state)


def test_substitution_rejections(first_game):
    with pytest.raises(InvalidState):
        courts.substitute_player(first_game, 5, 6, 1)
    with pytest.raises(InvalidState):
        courts.substitute_player(first_game, 1, 2, 1)


def test_priority_court_prefers_partial_courts():
    state = roster.start_session(create_initial_state(), 3, 8)
    assert courts.priority_court(state) == 1

    state = courts.assign_to_court(state, 1, 2)
    assert courts.priority_court(state) == 2

    state = fill_court(state, 2, [2, 3, 4])
    assert courts.priority_court(state) == 1

    state = fill_court(state, 1, [5, 6, 7, 8])
    assert courts.priority_court(state) == 3


def test_priority_court_none_when_all_full():
    state = roster.start_session(create_initial_state(), 1, 4)
    state = fill_court(state, 1, [1, 2, 3, 4])
    assert courts.priority_court(state) is None


def test_generate_pairings():
    pairings = courts.generate_pairings((1, 2, 3, 4))
    assert [(p.pair1, p.pair2) for p in pairings] == [
        ((1, 2), (3, 4)),
        ((1, 3), (2, 4)),
        ((1, 4), (2, 3)),
    ]
    assert courts.generate_pairings((1, 2, 3)) == []


def test_rotate_pairing_wraps(first_game):
    state = first_game
    for expected in (1, 2, 0):
        state = courts.rotate_pairing(state, 1)
        assert state.courts[1].pairing_index == expected


def test_rotate_pairing_needs_full_court(first_game):
    assert engine.apply(first_game, RotatePairing(court_number=2)) is first_game


def test_pair_players(first_game):
    state = courts.pair_players(first_game, 1, 1, 3)
    assert state.courts[1].pairing_index == 1

    state = courts.pair_players(state, 1, 2, 3)
    assert state.courts[1].pairing_index == 2
    assert courts.current_pairing(state.courts[1]).pair2 == (2, 3)

    with pytest.raises(InvalidState):
        courts.pair_players(state, 1, 1, 4)
    with pytest.raises(InvalidState):
        courts.pair_players(state, 1, 1, 5)
    assert engine.apply(state, PairPlayers(court_number=1, first_id=2, second_id=3)) is state


def test_send_planned_game():
    state = roster.start_session(create_initial_state(), 2, 8)
    state, block_id = planned.create(state)
    for slot, pid in enumerate([3, 4, 5, 6]):
        state = planned.fill_slot(state, block_id, slot, pid)

    state = courts.send_planned_game(state, block_id, now=30)

    assert block_id not in state.blocks
    assert state.courts[1].player_ids == (3, 4, 5, 6)
    assert state.courts[1].start_time == 30
    assert state.blocks[1].player_ids == (1, 2, 7, 8)
    check_invariants(state)


def test_assignment_releases_player_from_plan():
    state = roster.start_session(create_initial_state(), 2, 8)
    state, block_id = planned.create(state)
    state = planned.fill_slot(state, block_id, 0, 1)
    state = planned.fill_slot(state, block_id, 1, 2)

    state = courts.assign_to_court(state, 1, 1)

    assert state.blocks[block_id].player_ids == (None, 2, None, None)
    check_invariants(state)


def test_rebuilt_block_keeps_its_place_ahead_of_newer_blocks():
    state = roster.start_session(create_initial_state(), 1, 1)
    state = courts.assign_to_court(state, 1, 1)
    assert state.blocks == {}

    state = roster.add_player(state)
    state = courts.remove_from_court(state, 1)

    assert state.blocks[1].display_order == 0
    assert state.blocks[2].display_order == 1
    assert [b.id for b in store.ordered_blocks(state)] == [1, 2]
    assert state.next_display_order == 2
    check_invariants(state)
