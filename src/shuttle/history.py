"""
History Controller (undo/redo).

Snapshots are whole ``SessionState`` objects; since states are immutable and
share untouched maps, keeping fifty of them costs little.

Creating a planned game is a single recorded step that starts out with all
four slots empty, and the engine collects such empty games on the next
unrelated mutation. Snapshots holding one are therefore transient: undo and
redo walk past them instead of resurrecting a block the operator never
filled.
"""
import logging

from pydantic import BaseModel, ConfigDict

from shuttle import planned
from shuttle.models import SessionState

logger = logging.getLogger("shuttle.history")

MAX_HISTORY = 50


class History(BaseModel):
    model_config = ConfigDict(frozen=True)

    past: tuple[SessionState, ...] = ()
    present: SessionState
    future: tuple[SessionState, ...] = ()

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)


def start(present: SessionState) -> History:
    """History with no past or future."""
    return History(present=present)


def record(history: History, new_present: SessionState, limit: int = MAX_HISTORY) -> History:
    """Push the current present onto the past and clear the future."""
    past = (history.past + (history.present,))[-limit:] if limit > 0 else ()
    return History(past=past, present=new_present, future=())


def replace_present(history: History, new_present: SessionState) -> History:
    """Update the present without recording a step."""
    return history.model_copy(update={"present": new_present})


def _clean_selection(state: SessionState) -> SessionState:
    selection = state.selection
    if selection is None:
        return state
    block = state.blocks.get(selection.block_id)
    if block is None or not block.is_planned:
        return state.model_copy(update={"selection": None})
    return state


def undo(history: History) -> History:
    """
    Step back to the most recent non-transient snapshot.

    Skipped snapshots go into the future right after the present, so redo
    replays them in order. If every remaining snapshot is transient the most
    recent one is used anyway.
    """
    if not history.past:
        return history

    past = list(history.past)
    skipped = []
    target = None
    while past:
        candidate = past.pop()
        if planned.is_transient(candidate):
            skipped.append(candidate)
            continue
        target = candidate
        break

    if target is None:
        past = list(history.past[:-1])
        target = history.past[-1]
        skipped = []

    if skipped:
        logger.debug(f"Undo skipped {len(skipped)} transient snapshot(s)")
    return History(
        past=tuple(past),
        present=_clean_selection(target),
        future=(history.present, *skipped, *history.future),
    )


def redo(history: History) -> History:
    """Mirror of ``undo`` over the future."""
    if not history.future:
        return history

    future = list(history.future)
    skipped = []
    target = None
    while future:
        candidate = future.pop(0)
        if planned.is_transient(candidate):
            skipped.append(candidate)
            continue
        target = candidate
        break

    if target is None:
        future = list(history.future[1:])
        target = history.future[0]
        skipped = []

    if skipped:
        logger.debug(f"Redo skipped {len(skipped)} transient snapshot(s)")
    return History(
        past=(*history.past, history.present, *skipped),
        present=_clean_selection(target),
        future=tuple(future),
    )
