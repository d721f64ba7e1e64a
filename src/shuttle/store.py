"""Entity Store selectors and functional-update helpers.

Helpers return new maps/states and never touch their inputs.
"""
from typing import Optional

from shuttle.errors import NotFound
from shuttle.models import (
    Court,
    Location,
    Player,
    PlayerStatus,
    QueueBlock,
    SessionState,
)


# ---------- Lookups ----------

def get_player(state: SessionState, player_id) -> Player:
    player = state.players.get(player_id)
    if player is None:
        raise NotFound(f"Player {player_id} not found")
    return player


def get_status(state: SessionState, player_id) -> PlayerStatus:
    get_player(state, player_id)
    return state.statuses[player_id]


def get_court(state: SessionState, court_number) -> Court:
    court = state.courts.get(court_number)
    if court is None:
        raise NotFound(f"Court {court_number} not found")
    return court


def get_block(state: SessionState, block_id) -> QueueBlock:
    block = state.blocks.get(block_id)
    if block is None:
        raise NotFound(f"Queue block {block_id} not found")
    return block


def get_planned_game(state: SessionState, block_id) -> QueueBlock:
    block = get_block(state, block_id)
    if not block.is_planned:
        raise NotFound(f"Queue block {block_id} is not a planned game")
    return block


def court_of(state: SessionState, player_id) -> Optional[int]:
    """Court number the player is currently on, if any."""
    status = state.statuses.get(player_id)
    if status is not None and status.location == Location.COURT:
        return status.court_number
    return None


def planned_games(state: SessionState) -> list[QueueBlock]:
    return [b for b in state.blocks.values() if b.is_planned]


def regular_blocks(state: SessionState) -> list[QueueBlock]:
    return [b for b in state.blocks.values() if not b.is_planned]


def planned_game_of(state: SessionState, player_id) -> Optional[QueueBlock]:
    """Planned game the player is staged into, if any."""
    for block in planned_games(state):
        if player_id in block.player_ids:
            return block
    return None


def max_display_order(state: SessionState) -> Optional[float]:
    """Highest display order among non-planned blocks, or None if there are none."""
    orders = [b.display_order or 0 for b in regular_blocks(state)]
    return max(orders) if orders else None


def _sort_key(block: QueueBlock):
    # Open/unpositioned planned games float to the top
    order = -1 if block.display_order is None else block.display_order
    return (order, block.id)


def ordered_blocks(state: SessionState) -> list[QueueBlock]:
    """All queue blocks front to back."""
    return sorted(state.blocks.values(), key=_sort_key)


def queued_player_ids(state: SessionState) -> list[int]:
    """Queued players front to back, skipping planned games."""
    result = []
    for block in ordered_blocks(state):
        if not block.is_planned:
            result.extend(block.members)
    return result


# ---------- Functional updates ----------

def with_block(state: SessionState, block: QueueBlock) -> SessionState:
    return state.model_copy(update={"blocks": {**state.blocks, block.id: block}})


def without_block(state: SessionState, block_id) -> SessionState:
    blocks = dict(state.blocks)
    blocks.pop(block_id, None)
    update = {"blocks": blocks}
    if state.selection is not None and state.selection.block_id == block_id:
        update["selection"] = None
    return state.model_copy(update=update)


def with_court(state: SessionState, court: Court) -> SessionState:
    return state.model_copy(update={"courts": {**state.courts, court.number: court}})


def with_status(state: SessionState, player_id, status: PlayerStatus) -> SessionState:
    return state.model_copy(update={"statuses": {**state.statuses, player_id: status}})


def with_statuses(state: SessionState, statuses: dict) -> SessionState:
    return state.model_copy(update={"statuses": {**state.statuses, **statuses}})


def allocate_block_id(state: SessionState) -> tuple[SessionState, int]:
    """Reserve the next monotonic block id."""
    block_id = state.next_block_id
    return state.model_copy(update={"next_block_id": block_id + 1}), block_id


def allocate_display_order(state: SessionState) -> tuple[SessionState, int]:
    """Reserve the next queue position; positions are never handed out twice."""
    order = state.next_display_order
    return state.model_copy(update={"next_display_order": order + 1}), order


def first_empty_court(state: SessionState) -> Optional[int]:
    """Lowest-numbered court with all four slots free."""
    for number in sorted(state.courts):
        if not state.courts[number].player_ids:
            return number
    return None
