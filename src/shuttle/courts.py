"""
Court Assignment Engine.

Moves players between the queue (or bench) and court slots, picks the
priority court, and manages doubles pairing rotation. Slot order on a court
is click order and seeds the pairings.
"""
import logging
from typing import Optional

from shuttle import planned, queue, store
from shuttle.errors import CapacityExceeded, InvalidState
from shuttle.models import (
    COURT_CAPACITY,
    BlockType,
    Court,
    Location,
    Pairing,
    PlayerState,
    SessionState,
)

logger = logging.getLogger("shuttle.courts")


# ---------- Pairings ----------

def generate_pairings(player_ids) -> list[Pairing]:
    """The three doubles splits of four players: ab|cd, ac|bd, ad|bc."""
    if player_ids is None or len(player_ids) != COURT_CAPACITY:
        return []
    a, b, c, d = player_ids
    return [
        Pairing(pair1=(a, b), pair2=(c, d)),
        Pairing(pair1=(a, c), pair2=(b, d)),
        Pairing(pair1=(a, d), pair2=(b, c)),
    ]


def current_pairing(court: Court) -> Optional[Pairing]:
    pairings = generate_pairings(court.player_ids)
    if not pairings:
        return None
    return pairings[court.pairing_index % len(pairings)]


def rotate_pairing(state: SessionState, court_number) -> SessionState:
    court = store.get_court(state, court_number)
    if not court.is_full:
        raise InvalidState(f"Court {court_number} needs four players to rotate pairings")
    index = (court.pairing_index + 1) % 3
    logger.debug(f"Court {court_number} pairing {court.pairing_index} -> {index}")
    return store.with_court(state, court.model_copy(update={"pairing_index": index}))


def pair_players(state: SessionState, court_number, first_id, second_id) -> SessionState:
    """Jump to whichever pairing makes the two given players partners."""
    court = store.get_court(state, court_number)
    if not court.is_full:
        raise InvalidState(f"Court {court_number} needs four players to pick a pairing")
    if first_id == second_id or first_id not in court.player_ids or second_id not in court.player_ids:
        raise InvalidState(f"Players {first_id} and {second_id} cannot be paired on court {court_number}")

    for index, pairing in enumerate(generate_pairings(court.player_ids)):
        if {first_id, second_id} in (set(pairing.pair1), set(pairing.pair2)):
            if index == court.pairing_index:
                raise InvalidState(f"Players {first_id} and {second_id} are already partners")
            return store.with_court(state, court.model_copy(update={"pairing_index": index}))
    raise InvalidState("No pairing matches")  # unreachable for four distinct players


# ---------- Priority ----------

def priority_court(state: SessionState) -> Optional[int]:
    """
    Court the next queued player should go to.

    Partially filled courts come first so games start as soon as possible,
    then the first empty court; None when every court is full.
    """
    numbers = sorted(state.courts)
    for number in numbers:
        if 0 < len(state.courts[number].player_ids) < COURT_CAPACITY:
            return number
    for number in numbers:
        if not state.courts[number].player_ids:
            return number
    return None


# ---------- Assignment ----------

def assign_to_court(state: SessionState, player_id, court_number, now: int = 0) -> SessionState:
    """
    Put a queued or benched player into the next slot of a court.

    The block the player leaves is remembered on their status so that a
    later ``remove_from_court`` can return them to it, or rebuild it if it
    was deleted. Filling the fourth slot starts the game clock.
    """
    status = store.get_status(state, player_id)
    court = store.get_court(state, court_number)
    if len(court.player_ids) >= COURT_CAPACITY:
        raise CapacityExceeded(f"Court {court_number} is full")
    if status.location == Location.COURT:
        raise InvalidState(f"Player {player_id} is already on court {status.court_number}")

    state, previous = queue.take_out_of_queue(state, player_id)
    state = planned.release_player(state, player_id)

    ids = court.player_ids + (player_id,)
    full = len(ids) == COURT_CAPACITY
    state = store.with_court(state, court.model_copy(update={
        "player_ids": ids,
        "start_time": now if full else None,
    }))
    state = store.with_status(state, player_id, status.model_copy(update={
        "location": Location.COURT,
        "court_number": court_number,
        "queue_block_id": None,
        "previous_block": previous,
    }))
    logger.debug(f"Player {player_id} -> court {court_number} ({len(ids)}/{COURT_CAPACITY})")
    return state


def vacate(state: SessionState, player_id) -> tuple[SessionState, int]:
    """Pull a player off their court without placing them anywhere."""
    status = store.get_status(state, player_id)
    if status.location != Location.COURT:
        raise InvalidState(f"Player {player_id} is not on a court")
    court = store.get_court(state, status.court_number)
    ids = tuple(pid for pid in court.player_ids if pid != player_id)
    # The game never completed
    state = store.with_court(state, court.model_copy(update={"player_ids": ids, "start_time": None}))
    return state, court.number


def remove_from_court(state: SessionState, player_id, now: int = 0) -> SessionState:
    """
    Return a player from their court to the queue.

    Reinsertion preference: the block they came from if it still exists and
    has room, a rebuilt copy of that block if it was deleted, otherwise a
    Returning block.
    """
    status = store.get_status(state, player_id)
    state, court_number = vacate(state, player_id)

    block_id = None
    shape = status.previous_block
    if shape is not None:
        rejoined = queue.rejoin_block(state, shape, player_id)
        if rejoined is None:
            rejoined = queue.reconstitute_block(state, shape, player_id)
        if rejoined is not None:
            state, block_id = rejoined, shape.id

    if block_id is None:
        state, block_id = queue.enqueue(
            state, [player_id], BlockType.RETURNING, source_court=court_number,
            now=now, player_state=status.state,
        )
    else:
        state = store.with_status(state, player_id, status.model_copy(update={
            "location": Location.QUEUE,
            "court_number": None,
            "queue_block_id": block_id,
            "previous_block": None,
        }))
    logger.debug(f"Player {player_id} left court {court_number} for block {block_id}")
    return state


def substitute_player(state: SessionState, outgoing_id, incoming_id, court_number, now: int = 0) -> SessionState:
    """
    Swap a player on court for one off court, mid-game.

    The incoming player takes the outgoing player's slot so the pairing is
    kept and the game clock keeps running. The outgoing player joins a
    Substituted block tagged with the court.
    """
    court = store.get_court(state, court_number)
    if outgoing_id not in court.player_ids:
        raise InvalidState(f"Player {outgoing_id} is not on court {court_number}")
    incoming = store.get_status(state, incoming_id)
    if incoming.location == Location.COURT:
        raise InvalidState(f"Player {incoming_id} is already on court {incoming.court_number}")

    state, _ = queue.take_out_of_queue(state, incoming_id)
    state = planned.release_player(state, incoming_id)

    ids = tuple(incoming_id if pid == outgoing_id else pid for pid in court.player_ids)
    state = store.with_court(state, court.model_copy(update={"player_ids": ids}))
    state, _ = queue.enqueue(
        state, [outgoing_id], BlockType.SUBSTITUTED, source_court=court_number,
        now=now, player_state=PlayerState.WAITING,
    )
    # Substituted-in players have no block to go back to; removal falls back to Returning
    state = store.with_status(state, incoming_id, incoming.model_copy(update={
        "location": Location.COURT,
        "court_number": court_number,
        "queue_block_id": None,
        "previous_block": None,
    }))
    logger.debug(f"Court {court_number}: player {incoming_id} in for {outgoing_id}")
    return state


def send_planned_game(state: SessionState, block_id, now: int = 0) -> SessionState:
    """Assign all four members of a ready planned game to the first free court."""
    block = planned.require_sendable(state, block_id)
    court_number = store.first_empty_court(state)
    for pid in block.members:
        state = assign_to_court(state, pid, court_number, now=now)
    logger.info(f"Planned game {block_id} sent to court {court_number}")
    return state
