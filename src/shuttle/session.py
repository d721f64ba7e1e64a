"""
Session controller.

Owns the undo/redo history for one session and sits between the engine and
its collaborators: it persists each accepted mutation, positions full
planned games after a settle delay, and rejects a game result submitted
twice for the same court game.

All mutation happens under one lock, so the settle timer thread and request
handlers never interleave.
"""
import logging
import threading
import time
from typing import Callable, Optional

from pydantic import BaseModel

from shuttle import engine, history as hist, planned
from shuttle.config import AppConfig
from shuttle.errors import AlreadyInProgress
from shuttle.intents import SettlePlannedGames
from shuttle.invariants import check_invariants
from shuttle.models import SessionState, create_initial_state
from shuttle.persistence import SnapshotStore

logger = logging.getLogger("shuttle.session")

# Seconds during which a repeated result for the same court game is a duplicate
COMPLETION_GUARD_WINDOW = 0.5


class DispatchResult(BaseModel):
    accepted: bool
    reason: Optional[str] = None
    state: SessionState


class QueueSession:
    """
    One live rotation session.

    Args:
        store: Snapshot store for persistence (None to run without one)
        settle_delay: Seconds to wait before positioning a full planned game;
            0 positions it synchronously within the dispatch
        history_limit: Past snapshots kept for undo
        check_invariants: Verify the state after every accepted intent
        on_change: Called with the new state after every accepted change,
            possibly from the settle timer thread
        clock: Time source, returns seconds
    """

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        settle_delay: float = AppConfig.SETTLE_DELAY,
        history_limit: int = AppConfig.HISTORY_LIMIT,
        check_invariants: bool = AppConfig.CHECK_INVARIANTS,
        on_change: Optional[Callable[[SessionState], None]] = None,
        clock: Callable[[], float] = time.time,
        initial_state: Optional[SessionState] = None,
    ):
        self.store = store
        self.settle_delay = settle_delay
        self.history_limit = history_limit
        self.check_invariants = check_invariants
        self.on_change = on_change
        self.clock = clock
        self.history = hist.start(initial_state or create_initial_state())
        self._lock = threading.RLock()
        self._settle_timer: Optional[threading.Timer] = None
        self._recent_completions = {}  # court_number -> ((start_time, players), submitted_at)

    @classmethod
    def restore(cls, store: SnapshotStore, **kwargs) -> "QueueSession":
        """Create a session seeded from the store's last snapshot, if usable."""
        session = cls(store=store, initial_state=store.restore(), **kwargs)
        # A snapshot may have been saved before its planned games were positioned
        session._schedule_settle()
        return session

    @property
    def state(self) -> SessionState:
        return self.history.present

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    # ---------- Dispatch ----------

    def _duplicate_completion(self, intent) -> Optional[AlreadyInProgress]:
        court = self.state.courts.get(intent.court_number)
        if court is None or court.start_time is None:
            return None
        previous = self._recent_completions.get(intent.court_number)
        if previous is None:
            return None
        game, submitted_at = previous
        if game == (court.start_time, frozenset(court.player_ids)) and self.clock() - submitted_at < COMPLETION_GUARD_WINDOW:
            return AlreadyInProgress(f"Game on court {intent.court_number} is already being completed")
        return None

    def dispatch(self, intent) -> DispatchResult:
        """
        Apply an intent to the session.

        Rejected intents leave the session untouched; the result carries the
        reason so the caller can surface it.
        """
        with self._lock:
            before = self.history
            now = int(self.clock())

            if intent.type == "complete_game":
                duplicate = self._duplicate_completion(intent)
                if duplicate is not None:
                    logger.warning(str(duplicate))
                    return DispatchResult(accepted=False, reason=str(duplicate), state=self.state)
                court = self.state.courts.get(intent.court_number)
                game = (court.start_time, frozenset(court.player_ids)) if court is not None else None

            after = engine.dispatch(before, intent, now=now, limit=self.history_limit)
            if after is before:
                error = engine.validate(before.present, intent, now=now)
                reason = str(error) if error is not None else f"Nothing to {intent.type.replace('_', ' ')}"
                logger.debug(f"Rejected {intent.type}: {reason}")
                return DispatchResult(accepted=False, reason=reason, state=self.state)

            if intent.type == "complete_game":
                self._recent_completions[intent.court_number] = (game, self.clock())
            elif intent.type in ("undo", "redo", "start_session", "reset_session"):
                self._recent_completions.clear()

            self.history = after
            logger.info(f"Applied {intent.type}")
            self._after_change(reset=intent.type == "reset_session")
            return DispatchResult(accepted=True, state=self.state)

    def _after_change(self, reset: bool = False):
        if self.check_invariants:
            check_invariants(self.state)
        if self.store is not None:
            if reset:
                self.store.clear()
            else:
                self.store.persist(self.state)
        if self.on_change is not None:
            try:
                self.on_change(self.state)
            except Exception as e:
                logger.error(f"State change listener failed: {e}")
        self._schedule_settle()

    # ---------- Planned game positioning ----------

    def _schedule_settle(self):
        """(Re)arm the settle timer; each new mutation restarts the delay."""
        with self._lock:
            if self._settle_timer is not None:
                self._settle_timer.cancel()
                self._settle_timer = None
            if not planned.needs_settle(self.state):
                return
            if self.settle_delay <= 0:
                self.settle_now()
                return
            self._settle_timer = threading.Timer(self.settle_delay, self.settle_now)
            self._settle_timer.daemon = True
            self._settle_timer.start()

    def settle_now(self) -> bool:
        """Position waiting planned games against the current state. Returns True if anything moved."""
        with self._lock:
            self._settle_timer = None
            after = engine.dispatch(self.history, SettlePlannedGames(), now=int(self.clock()))
            if after is self.history:
                return False
            self.history = after
            self._after_change()
            return True

    def close(self):
        """Cancel any pending settle timer."""
        with self._lock:
            if self._settle_timer is not None:
                self._settle_timer.cancel()
                self._settle_timer = None
