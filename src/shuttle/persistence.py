"""
Snapshot persistence.

Persistence is a best-effort side channel: ``persist`` never raises and
``restore`` returns None on any problem, so a broken store can never block
or fail a mutation.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from shuttle.db import get_db, init_db
from shuttle.models import SessionState

logger = logging.getLogger("shuttle.persistence")

STORAGE_VERSION = 2


class SnapshotStore(ABC):
    """
    Base class for snapshot stores.

    Subclasses implement ``_write``, ``_read`` and ``_erase``; this class
    handles serialization, staleness and error containment.
    """

    def __init__(self, max_age_hours: float = 24):
        self.max_age_seconds = max_age_hours * 3600

    @abstractmethod
    def _write(self, saved_at: float, payload: str):
        """Store one serialized snapshot, replacing any previous one."""
        pass

    @abstractmethod
    def _read(self) -> Optional[tuple[int, float, str]]:
        """Return (version, saved_at, payload) of the newest snapshot, or None."""
        pass

    @abstractmethod
    def _erase(self):
        pass

    def persist(self, state: SessionState) -> bool:
        """Save ``state``. Returns False (after logging) on failure."""
        try:
            self._write(time.time(), state.model_dump_json())
            return True
        except Exception as e:
            logger.error(f"Failed to save state: {e}")
            return False

    def restore(self, current_time: Optional[float] = None) -> Optional[SessionState]:
        """Load the last saved state unless it is missing, stale or unreadable."""
        if current_time is None:
            current_time = time.time()
        try:
            row = self._read()
            if row is None:
                return None
            version, saved_at, payload = row

            if version != STORAGE_VERSION:
                logger.warning(f"Storage version mismatch ({version} != {STORAGE_VERSION}), clearing saved state")
                self.clear()
                return None

            age = current_time - saved_at
            if age > self.max_age_seconds:
                logger.warning(f"Saved state too old ({age / 3600:.1f}h), clearing")
                self.clear()
                return None

            state = SessionState.model_validate_json(payload)
            logger.info(f"Restored session with {len(state.players)} players and {len(state.courts)} courts")
            return state
        except Exception as e:
            logger.error(f"Failed to load state: {e}")
            return None

    def clear(self):
        try:
            self._erase()
        except Exception as e:
            logger.error(f"Failed to clear state: {e}")


class SqliteSnapshotStore(SnapshotStore):
    """Keeps the latest snapshot in a sqlite ``snapshots`` table."""

    def __init__(self, db_path: str, max_age_hours: float = 24):
        super().__init__(max_age_hours)
        self.db_path = db_path
        init_db(db_path)

    def _write(self, saved_at, payload):
        db = get_db(self.db_path)
        try:
            db.execute("DELETE FROM snapshots")
            db.execute(
                "INSERT INTO snapshots (version, saved_at, payload) VALUES (?, ?, ?)",
                (STORAGE_VERSION, saved_at, payload)
            )
            db.commit()
        finally:
            db.close()

    def _read(self):
        db = get_db(self.db_path)
        try:
            row = db.execute(
                "SELECT version, saved_at, payload FROM snapshots ORDER BY id DESC LIMIT 1"
            ).fetchone()
        finally:
            db.close()
        if row is None:
            return None
        return row["version"], row["saved_at"], row["payload"]

    def _erase(self):
        db = get_db(self.db_path)
        try:
            db.execute("DELETE FROM snapshots")
            db.commit()
        finally:
            db.close()


class MemorySnapshotStore(SnapshotStore):
    """In-process store, for tests and for running without a database."""

    def __init__(self, max_age_hours: float = 24):
        super().__init__(max_age_hours)
        self.row = None

    def _write(self, saved_at, payload):
        self.row = (STORAGE_VERSION, saved_at, payload)

    def _read(self):
        return self.row

    def _erase(self):
        self.row = None
