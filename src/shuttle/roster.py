"""Session lifecycle and player operations."""
import logging

from shuttle import courts, planned, queue, store
from shuttle.errors import InvalidState
from shuttle.models import (
    BENCH_LOCATIONS,
    BlockType,
    Court,
    Location,
    Player,
    PlayerState,
    SessionConfig,
    SessionState,
    create_initial_state,
)

logger = logging.getLogger("shuttle.roster")


def default_name(player_id) -> str:
    return f"Player #{player_id}"


def start_session(state: SessionState, court_count, player_count, now: int = 0) -> SessionState:
    """
    Start a fresh session: ``court_count`` empty courts and one NewPlayers
    block holding ``player_count`` new players.

    Whatever was in ``state`` is discarded.
    """
    if court_count < 1:
        raise InvalidState("A session needs at least one court")
    if player_count < 0:
        raise InvalidState("Player count cannot be negative")

    fresh = create_initial_state().model_copy(update={
        "config": SessionConfig(court_count=court_count, session_started=True),
        "courts": {n: Court(number=n) for n in range(1, court_count + 1)},
        "players": {
            pid: Player(id=pid, name=default_name(pid), created_at=now)
            for pid in range(1, player_count + 1)
        },
    })
    if player_count:
        fresh, _ = queue.enqueue(fresh, range(1, player_count + 1), BlockType.NEW_PLAYERS, now=now,
                                 player_state=PlayerState.WAITING)
    logger.info(f"Session started with {court_count} courts and {player_count} players")
    return fresh


def reset_session(state: SessionState) -> SessionState:
    logger.info("Session reset")
    return create_initial_state()


def add_player(state: SessionState, now: int = 0) -> SessionState:
    """Create the next sequential player and queue them as a new arrival."""
    if not state.config.session_started:
        raise InvalidState("No session in progress")
    player_id = max(state.players, default=0) + 1
    player = Player(id=player_id, name=default_name(player_id), created_at=now)
    state = state.model_copy(update={"players": {**state.players, player_id: player}})
    state, block_id = queue.enqueue(state, [player_id], BlockType.NEW_PLAYERS, now=now,
                                    player_state=PlayerState.WAITING)
    logger.debug(f"Added player {player_id} to block {block_id}")
    return state


def rename_player(state: SessionState, player_id, name) -> SessionState:
    player = store.get_player(state, player_id)
    name = (name or "").strip()
    if not name:
        raise InvalidState("Player name cannot be empty")
    if name == player.name:
        return state
    return state.model_copy(update={
        "players": {**state.players, player_id: player.model_copy(update={"name": name})},
    })


def bulk_rename_players(state: SessionState, names: dict) -> SessionState:
    """Rename several players at once; unknown ids and blank names are skipped."""
    players = dict(state.players)
    changed = False
    for player_id, name in names.items():
        player = players.get(player_id)
        name = (name or "").strip()
        if player is None or not name or name == player.name:
            continue
        players[player_id] = player.model_copy(update={"name": name})
        changed = True
    if not changed:
        return state
    return state.model_copy(update={"players": players})


def mark_benched(state: SessionState, player_id, location: Location) -> SessionState:
    """
    Take a player out of rotation as Resting or Left.

    The player is pulled off their court or out of their queue block and
    out of any planned game.
    """
    if location not in BENCH_LOCATIONS:
        raise InvalidState(f"{location} is not a bench location")
    status = store.get_status(state, player_id)
    if status.location == location:
        raise InvalidState(f"Player {player_id} is already {location.value}")

    if status.location == Location.COURT:
        state, _ = courts.vacate(state, player_id)
    else:
        state, _ = queue.take_out_of_queue(state, player_id)
    state = planned.release_player(state, player_id)
    state = store.with_status(state, player_id, status.model_copy(update={
        "location": location,
        "court_number": None,
        "queue_block_id": None,
        "state": None,
        "previous_block": None,
    }))
    logger.info(f"Player {player_id} marked {location.value}")
    return state


def restore_player(state: SessionState, player_id, now: int = 0) -> SessionState:
    """Bring a benched player back into the queue in a Returning block."""
    status = store.get_status(state, player_id)
    if status.location not in BENCH_LOCATIONS:
        raise InvalidState(f"Player {player_id} is not benched")
    state, block_id = queue.enqueue(
        state, [player_id], BlockType.RETURNING, now=now, player_state=PlayerState.WAITING,
    )
    logger.info(f"Player {player_id} restored to block {block_id}")
    return state
