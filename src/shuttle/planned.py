"""
Planned Game Manager.

A planned game is a queue block with four addressable slots that an
operator fills with specific players, independent of arrival order.

Lifecycle:
    create (all slots empty, floats to the top of the queue)
    -> slots filled one at a time, the selection cursor advancing each time
    -> closed when all four are filled
    -> positioned by ``settle`` once the settle delay has passed
    -> consumed when its players are sent to a court

An all-empty planned game is never kept: clearing the last slot deletes the
block, and the reducer garbage-collects untouched empty planned games on
the next unrelated mutation.
"""
import logging
from typing import Optional

from shuttle import store
from shuttle.errors import CapacityExceeded, InvalidState, NotFound
from shuttle.models import (
    BENCH_LOCATIONS,
    PLANNED_SLOTS,
    BlockType,
    Location,
    QueueBlock,
    SessionState,
    SlotSelection,
)

logger = logging.getLogger("shuttle.planned")

WAITING_FOR_PLAYERS = "Waiting for players to finish..."
WAITING_FOR_COURT = "Waiting for court to be available..."
NOT_FULL = "Planned game needs four players"


def _check_slot(slot_index):
    if not isinstance(slot_index, int) or not 0 <= slot_index < PLANNED_SLOTS:
        raise InvalidState(f"Slot {slot_index} is out of range")


def _next_empty_slot(player_ids, after: int) -> Optional[int]:
    for offset in range(1, PLANNED_SLOTS + 1):
        index = (after + offset) % PLANNED_SLOTS
        if player_ids[index] is None:
            return index
    return None


def is_empty(block: QueueBlock) -> bool:
    return block.is_planned and all(pid is None for pid in block.player_ids)


def is_transient(state: SessionState) -> bool:
    """True when the state holds an all-empty planned game awaiting collection."""
    return any(is_empty(block) for block in store.planned_games(state))


def create(state: SessionState, now: int = 0):
    """Allocate an empty planned game and point the selection cursor at slot 0."""
    state, block_id = store.allocate_block_id(state)
    block = QueueBlock(
        id=block_id,
        type=BlockType.PLANNED_GAME,
        player_ids=(None,) * PLANNED_SLOTS,
        timestamp=now,
        closed=False,
        display_order=None,
    )
    state = store.with_block(state, block)
    logger.debug(f"Created planned game {block_id}")
    return state.model_copy(update={"selection": SlotSelection(block_id=block_id, slot_index=0)}), block_id


def fill_slot(state: SessionState, block_id, slot_index, player_id) -> SessionState:
    """
    Stage a player into one slot of a planned game.

    Raises:
        NotFound: block, or player, does not exist
        CapacityExceeded: the slot is already taken
        InvalidState: player already in this game, staged in another
            planned game, or benched
    """
    block = store.get_planned_game(state, block_id)
    _check_slot(slot_index)
    status = store.get_status(state, player_id)

    if block.player_ids[slot_index] is not None:
        raise CapacityExceeded(f"Slot {slot_index} of planned game {block_id} is taken")
    if player_id in block.player_ids:
        raise InvalidState(f"Player {player_id} is already in planned game {block_id}")
    other = store.planned_game_of(state, player_id)
    if other is not None:
        raise InvalidState(f"Player {player_id} is already in planned game {other.id}")
    if status.location in BENCH_LOCATIONS:
        raise InvalidState(f"Player {player_id} is benched")

    ids = list(block.player_ids)
    ids[slot_index] = player_id
    full = all(pid is not None for pid in ids)
    block = block.model_copy(update={"player_ids": tuple(ids), "closed": full})
    state = store.with_block(state, block)

    next_slot = None if full else _next_empty_slot(ids, slot_index)
    selection = SlotSelection(block_id=block_id, slot_index=next_slot) if next_slot is not None else None
    if full:
        logger.info(f"Planned game {block_id} is full: {list(block.player_ids)}")
    return state.model_copy(update={"selection": selection})


def clear_slot(state: SessionState, block_id, slot_index) -> SessionState:
    """Empty one slot; reopens the game, or deletes it once no slot is filled."""
    block = store.get_planned_game(state, block_id)
    _check_slot(slot_index)
    if block.player_ids[slot_index] is None:
        raise InvalidState(f"Slot {slot_index} of planned game {block_id} is already empty")

    ids = list(block.player_ids)
    ids[slot_index] = None
    if all(pid is None for pid in ids):
        logger.debug(f"Planned game {block_id} has no players left, deleting it")
        return store.without_block(state, block_id)

    block = block.model_copy(update={
        "player_ids": tuple(ids),
        "closed": False,
        "display_order": None,
        "deferred": False,
    })
    return store.with_block(state, block)


def set_slot(state: SessionState, block_id, slot_index, player_id) -> SessionState:
    if player_id is None:
        return clear_slot(state, block_id, slot_index)
    return fill_slot(state, block_id, slot_index, player_id)


def delete(state: SessionState, block_id) -> SessionState:
    store.get_planned_game(state, block_id)
    logger.debug(f"Deleting planned game {block_id}")
    return store.without_block(state, block_id)


def select_slot(state: SessionState, block_id, slot_index=0) -> SessionState:
    """Move the selection cursor; ``block_id=None`` leaves selection mode."""
    if block_id is None:
        if state.selection is None:
            return state
        return state.model_copy(update={"selection": None})
    store.get_planned_game(state, block_id)
    _check_slot(slot_index)
    selection = SlotSelection(block_id=block_id, slot_index=slot_index)
    if state.selection == selection:
        return state
    return state.model_copy(update={"selection": selection})


def release_player(state: SessionState, player_id) -> SessionState:
    """Remove a player from whichever planned game holds them, if any."""
    block = store.planned_game_of(state, player_id)
    if block is None:
        return state
    return clear_slot(state, block.id, block.player_ids.index(player_id))


def prune_empty(state: SessionState, keep=None) -> SessionState:
    """Drop all-empty planned games other than ``keep``."""
    for block in store.planned_games(state):
        if block.id != keep and is_empty(block):
            logger.debug(f"Collecting empty planned game {block.id}")
            state = store.without_block(state, block.id)
    return state


# ---------- Positioning ----------

def compute_position(state: SessionState, block: QueueBlock) -> tuple[float, bool]:
    """
    Queue position for a full planned game.

    If any member is on a court the game goes to the very back; otherwise it
    sits just behind whichever member is furthest back in the queue.

    Returns:
        (display_order, deferred) tuple
    """
    members = block.members
    if any(store.court_of(state, pid) is not None for pid in members):
        return (store.max_display_order(state) or 0) + 0.5, True

    furthest = None
    for pid in members:
        status = state.statuses.get(pid)
        if status is None or status.location != Location.QUEUE:
            continue
        member_block = state.blocks.get(status.queue_block_id)
        if member_block is None:
            continue
        order = member_block.display_order or 0
        furthest = order if furthest is None else max(furthest, order)
    if furthest is None:
        return 0, False
    return furthest + 0.5, False


def _needs_position(state: SessionState, block: QueueBlock) -> bool:
    if not block.closed:
        return False
    if block.display_order is None:
        return True
    return block.deferred and not any(store.court_of(state, pid) is not None for pid in block.members)


def needs_settle(state: SessionState) -> bool:
    return any(_needs_position(state, b) for b in store.planned_games(state))


def settle(state: SessionState) -> SessionState:
    """
    Position every full planned game that is waiting for one.

    Reads the state it is given, so callers run it after the settle delay
    against the then-current state. Returns the input unchanged when there
    is nothing to do.
    """
    for block in store.planned_games(state):
        if not _needs_position(state, block):
            continue
        order, deferred = compute_position(state, block)
        logger.info(f"Planned game {block.id} positioned at {order}{' (deferred)' if deferred else ''}")
        state = store.with_block(state, block.model_copy(update={"display_order": order, "deferred": deferred}))
    return state


def push_back_playing(state: SessionState) -> SessionState:
    """Send positioned planned games with a member still on court to the back."""
    for block in store.planned_games(state):
        if not block.closed or block.display_order is None:
            continue
        if any(store.court_of(state, pid) is not None for pid in block.members):
            order = (store.max_display_order(state) or 0) + 0.5
            logger.debug(f"Planned game {block.id} has a member on court, moving to {order}")
            state = store.with_block(state, block.model_copy(update={"display_order": order, "deferred": True}))
    return state


# ---------- Promotion ----------

def send_blocker(state: SessionState, block_id) -> Optional[str]:
    """Reason the planned game cannot go to a court yet, or None if it can."""
    block = state.blocks.get(block_id)
    if block is None or not block.is_planned:
        return f"Planned game {block_id} not found"
    if len(block.members) < PLANNED_SLOTS:
        return NOT_FULL
    for pid in block.members:
        status = state.statuses.get(pid)
        if status is None or status.location != Location.QUEUE:
            return WAITING_FOR_PLAYERS
    if store.first_empty_court(state) is None:
        return WAITING_FOR_COURT
    return None


def can_send_to_court(state: SessionState, block_id) -> bool:
    return send_blocker(state, block_id) is None


def require_sendable(state: SessionState, block_id) -> QueueBlock:
    reason = send_blocker(state, block_id)
    if reason is None:
        return state.blocks[block_id]
    if reason == WAITING_FOR_COURT:
        raise CapacityExceeded(reason)
    if block_id not in state.blocks:
        raise NotFound(reason)
    raise InvalidState(reason)
