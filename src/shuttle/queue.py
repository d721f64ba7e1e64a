"""
Queue Block Manager.

Owns creation, growth and closure of queue blocks. A block is a cohort of
players grouped by origin; it closes the moment it holds four players, and
blocks for a finished game are closed from the start so a game's four
participants always travel together.
"""
import logging
from typing import Optional

from shuttle import store
from shuttle.errors import InvalidState
from shuttle.models import (
    COURT_CAPACITY,
    BlockType,
    Location,
    PlayerState,
    PlayerStatus,
    QueueBlock,
    SessionState,
)

logger = logging.getLogger("shuttle.queue")


def _find_open_block(state: SessionState, kind: BlockType, source_court, incoming: int) -> Optional[QueueBlock]:
    for block in store.ordered_blocks(state):
        if block.is_planned or block.closed:
            continue
        if block.type != kind or block.source_court != source_court:
            continue
        if len(block.player_ids) + incoming <= COURT_CAPACITY:
            return block
    return None


def enqueue(state: SessionState, player_ids, kind: BlockType, source_court=None,
            now: int = 0, player_state: Optional[PlayerState] = None):
    """
    Put players into the queue, joining an open block of the same origin if
    one has room, otherwise opening a new block at the back.

    Args:
        state: Current session state
        player_ids: Ids to enqueue, in order
        kind: Origin of the cohort
        source_court: Court the players came from (None for arrivals)
        now: Timestamp for a newly created block
        player_state: Value for each player's ``PlayerStatus.state``

    Returns:
        (new_state, block_id) tuple
    """
    player_ids = tuple(player_ids)
    if not player_ids:
        raise InvalidState("Nothing to enqueue")
    if kind == BlockType.PLANNED_GAME:
        raise InvalidState("Planned games are not filled through the queue")

    target = None
    if kind != BlockType.GAME_ENDED:
        target = _find_open_block(state, kind, source_court, len(player_ids))

    if target is not None:
        ids = target.player_ids + player_ids
        block = target.model_copy(update={
            "player_ids": ids,
            "closed": len(ids) >= COURT_CAPACITY,
        })
        logger.debug(f"Appended {list(player_ids)} to block {block.id} ({kind.value})")
    else:
        state, display_order = store.allocate_display_order(state)
        state, block_id = store.allocate_block_id(state)
        block = QueueBlock(
            id=block_id,
            type=kind,
            player_ids=player_ids,
            source_court=source_court,
            timestamp=now,
            closed=kind == BlockType.GAME_ENDED or len(player_ids) >= COURT_CAPACITY,
            display_order=display_order,
        )
        logger.debug(f"Created block {block.id} ({kind.value}) at order {display_order} with {list(player_ids)}")

    state = store.with_block(state, block)
    statuses = {
        pid: PlayerStatus(location=Location.QUEUE, queue_block_id=block.id, state=player_state)
        for pid in player_ids
    }
    return store.with_statuses(state, statuses), block.id


def remove_player(state: SessionState, block_id, player_id) -> SessionState:
    """
    Take a player out of a regular queue block, deleting the block once empty.

    The player's status is left for the caller to overwrite.
    """
    block = store.get_block(state, block_id)
    if block.is_planned:
        raise InvalidState(f"Block {block_id} is a planned game")
    if player_id not in block.player_ids:
        raise InvalidState(f"Player {player_id} is not in block {block_id}")

    remaining = tuple(pid for pid in block.player_ids if pid != player_id)
    if not remaining:
        logger.debug(f"Block {block_id} is empty, removing it")
        return store.without_block(state, block_id)
    return store.with_block(state, block.model_copy(update={"player_ids": remaining}))


def rejoin_block(state: SessionState, shape: QueueBlock, player_id) -> Optional[SessionState]:
    """
    Put a player back into the block they were taken from, at their old
    position, as long as the block still exists and has not filled up since.

    ``shape`` is the block as it was just before the player left it.
    Returns None when the player cannot rejoin.
    """
    block = state.blocks.get(shape.id)
    if block is None or block.is_planned:
        return None
    if len(block.player_ids) >= max(COURT_CAPACITY, len(shape.player_ids)):
        return None
    ids = list(block.player_ids)
    position = shape.player_ids.index(player_id) if player_id in shape.player_ids else len(ids)
    ids.insert(min(position, len(ids)), player_id)
    closed = block.closed or len(ids) >= COURT_CAPACITY
    return store.with_block(state, block.model_copy(update={"player_ids": tuple(ids), "closed": closed}))


def reconstitute_block(state: SessionState, shape: QueueBlock, player_id) -> Optional[SessionState]:
    """Recreate a deleted block from its remembered shape with a single player."""
    if shape.id in state.blocks:
        return None
    block = shape.model_copy(update={
        "player_ids": (player_id,),
        "closed": shape.type == BlockType.GAME_ENDED,
    })
    logger.debug(f"Reconstituted block {block.id} ({block.type.value}) for player {player_id}")
    return store.with_block(state, block)


def take_out_of_queue(state: SessionState, player_id) -> tuple[SessionState, Optional[QueueBlock]]:
    """
    Remove a player from whatever regular block holds them.

    Returns the new state and the block as it was before removal (None if the
    player was not queued).
    """
    status = store.get_status(state, player_id)
    if status.location != Location.QUEUE or status.queue_block_id is None:
        return state, None
    block = store.get_block(state, status.queue_block_id)
    return remove_player(state, block.id, player_id), block
