"""
Game Completion Engine.

Resolves a finished doubles game on a full court: clears the court and puts
all four players back in the queue as a single closed GameEnded block.
"""
import logging

from shuttle import planned, queue, store
from shuttle.errors import InvalidState
from shuttle.models import BlockType, PlayerState, SessionState

logger = logging.getLogger("shuttle.games")


def _check_pair(pair, name):
    if pair is None or len(pair) != 2 or pair[0] == pair[1]:
        raise InvalidState(f"{name} must be two different players")


def complete_game(state: SessionState, court_number, winning_pair, losing_pair, now: int = 0) -> SessionState:
    """
    Record the result of the game on ``court_number``.

    Args:
        state: Current session state
        court_number: Court whose game finished
        winning_pair: The two winners' ids
        losing_pair: The two losers' ids
        now: Timestamp for the new queue block

    Returns:
        New state with the court cleared, one closed GameEnded block holding
        winners then losers, and each player's status tagged Winner/Loser.

    Raises:
        InvalidState: court not full, or the pairs do not match its players.
            A second submission for an already cleared court lands here.
    """
    court = store.get_court(state, court_number)
    if not court.is_full:
        raise InvalidState(f"Court {court_number} does not have a game in progress")
    _check_pair(winning_pair, "Winning pair")
    _check_pair(losing_pair, "Losing pair")
    players = tuple(winning_pair) + tuple(losing_pair)
    if set(players) != set(court.player_ids) or len(set(players)) != 4:
        raise InvalidState(f"Pairs {list(winning_pair)} / {list(losing_pair)} do not match court {court_number}")

    state = store.with_court(state, court.model_copy(update={
        "player_ids": (),
        "pairing_index": 0,
        "start_time": None,
    }))
    state, block_id = queue.enqueue(state, players, BlockType.GAME_ENDED, source_court=court_number, now=now)

    statuses = {}
    for pid in players:
        result = PlayerState.WINNER if pid in winning_pair else PlayerState.LOSER
        statuses[pid] = state.statuses[pid].model_copy(update={"state": result})
    state = store.with_statuses(state, statuses)

    state = planned.push_back_playing(state)
    logger.info(f"Court {court_number} finished: {list(winning_pair)} beat {list(losing_pair)} (block {block_id})")
    return state
