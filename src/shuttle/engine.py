"""
Engine reducer.

``apply(state, intent)`` is the single entry point for state transitions:
it returns a new snapshot, or the very same object when the intent is
rejected. ``dispatch(history, intent)`` wraps it with undo/redo.
"""
import logging
import time
from typing import Optional

from shuttle import courts, games, history as hist, planned, roster
from shuttle.errors import EngineError
from shuttle.intents import HISTORY_RESETS, is_undoable
from shuttle.models import SessionState

logger = logging.getLogger("shuttle.engine")


def _collect_garbage(state: SessionState, intent) -> SessionState:
    """Drop untouched empty planned games other than the one the intent targets."""
    if not is_undoable(intent):
        return state
    keep = intent.block_id if intent.type in ("set_planned_slot", "delete_planned_game") else None
    return planned.prune_empty(state, keep=keep)


def _transition(state: SessionState, intent, now: int) -> SessionState:
    if intent.type == "start_session":
        return roster.start_session(state, intent.court_count, intent.player_count, now=now)
    elif intent.type == "reset_session":
        return roster.reset_session(state)
    elif intent.type == "add_player":
        return roster.add_player(state, now=now)
    elif intent.type == "rename_player":
        return roster.rename_player(state, intent.player_id, intent.name)
    elif intent.type == "bulk_rename_players":
        return roster.bulk_rename_players(state, intent.names)
    elif intent.type == "mark_benched":
        return roster.mark_benched(state, intent.player_id, intent.location)
    elif intent.type == "restore_player":
        return roster.restore_player(state, intent.player_id, now=now)
    elif intent.type == "assign_to_court":
        return courts.assign_to_court(state, intent.player_id, intent.court_number, now=now)
    elif intent.type == "remove_from_court":
        return courts.remove_from_court(state, intent.player_id, now=now)
    elif intent.type == "rotate_pairing":
        return courts.rotate_pairing(state, intent.court_number)
    elif intent.type == "pair_players":
        return courts.pair_players(state, intent.court_number, intent.first_id, intent.second_id)
    elif intent.type == "complete_game":
        return games.complete_game(state, intent.court_number, intent.winning_pair, intent.losing_pair, now=now)
    elif intent.type == "substitute_player":
        return courts.substitute_player(state, intent.outgoing_id, intent.incoming_id, intent.court_number, now=now)
    elif intent.type == "create_planned_game":
        state, _ = planned.create(state, now=now)
        return state
    elif intent.type == "set_planned_slot":
        return planned.set_slot(state, intent.block_id, intent.slot_index, intent.player_id)
    elif intent.type == "delete_planned_game":
        return planned.delete(state, intent.block_id)
    elif intent.type == "send_planned_game":
        return courts.send_planned_game(state, intent.block_id, now=now)
    elif intent.type == "select_planned_slot":
        return planned.select_slot(state, intent.block_id, intent.slot_index)
    elif intent.type == "settle_planned_games":
        return planned.settle(state)
    raise ValueError(f"Intent {intent.type} is not a state transition")


def apply(state: SessionState, intent, now: Optional[int] = None) -> SessionState:
    """
    Apply one intent to a snapshot.

    Args:
        state: Current snapshot
        intent: Any intent model except Undo/Redo
        now: Timestamp for anything the transition stamps (defaults to now)

    Returns:
        The new snapshot, or ``state`` itself if a precondition failed
    """
    if now is None:
        now = int(time.time())
    try:
        return _transition(_collect_garbage(state, intent), intent, now)
    except EngineError as e:
        logger.debug(f"Rejected {intent.type}: {type(e).__name__}: {e}")
        return state


def validate(state: SessionState, intent, now: Optional[int] = None) -> Optional[EngineError]:
    """Why ``intent`` would be rejected against ``state``, or None if it would apply."""
    if intent.type in ("undo", "redo"):
        return None
    try:
        _transition(_collect_garbage(state, intent), intent, int(time.time()) if now is None else now)
    except EngineError as e:
        return e
    return None


def dispatch(history: hist.History, intent, now: Optional[int] = None,
             limit: int = hist.MAX_HISTORY) -> hist.History:
    """
    Apply an intent with undo/redo bookkeeping.

    Undoable intents that change the state push the previous present onto
    the past; session start/reset wipe history; everything else only
    replaces the present. Returns ``history`` itself when nothing changed.
    """
    if intent.type == "undo":
        return hist.undo(history)
    elif intent.type == "redo":
        return hist.redo(history)

    present = apply(history.present, intent, now)
    if present is history.present:
        return history
    if type(intent) in HISTORY_RESETS:
        return hist.start(present)
    if is_undoable(intent):
        return hist.record(history, present, limit=limit)
    return hist.replace_present(history, present)
