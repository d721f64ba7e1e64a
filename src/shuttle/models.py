"""Shared Pydantic models for the court rotation engine.

Every entity lives in a map keyed by a stable id and only refers to other
entities by id. Models are frozen: a mutation always produces a new
``SessionState`` that shares the untouched maps with its predecessor.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

COURT_CAPACITY = 4
PLANNED_SLOTS = 4


# ---------- Enumerations ----------

class Location(str, Enum):
    COURT = "court"
    QUEUE = "queue"
    RESTING = "resting"
    LEFT = "left"


BENCH_LOCATIONS = (Location.RESTING, Location.LEFT)


class PlayerState(str, Enum):
    WINNER = "winner"
    LOSER = "loser"
    WAITING = "waiting"
    READY = "ready"


class BlockType(str, Enum):
    NEW_PLAYERS = "new_players"
    GAME_ENDED = "game_ended"
    RETURNING = "returning"
    SUBSTITUTED = "substituted"
    PLANNED_GAME = "planned_game"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------- Entities ----------

class Player(_Frozen):
    """Player identity. Never deleted within a session."""
    id: int
    name: str
    created_at: int


class QueueBlock(_Frozen):
    """Ordered cohort of queued players sharing an origin.

    Planned games keep exactly four slots and may hold ``None`` entries;
    every other block type only holds real ids.
    """
    id: int
    type: BlockType
    player_ids: tuple[Optional[int], ...] = ()
    source_court: Optional[int] = None
    timestamp: int
    closed: bool = False
    display_order: Optional[float] = None
    # Planned game positioned behind the whole queue because a member was on court
    deferred: bool = False

    @property
    def is_planned(self) -> bool:
        return self.type == BlockType.PLANNED_GAME

    @property
    def members(self) -> tuple[int, ...]:
        """Non-empty entries, in slot order."""
        return tuple(pid for pid in self.player_ids if pid is not None)


class PlayerStatus(_Frozen):
    """Where a player is right now.

    ``previous_block`` remembers the queue block a player was taken from
    when assigned to a court, so a plain removal can put them back where
    they were.
    """
    location: Location
    court_number: Optional[int] = None
    queue_block_id: Optional[int] = None
    state: Optional[PlayerState] = None
    previous_block: Optional[QueueBlock] = None


class Court(_Frozen):
    number: int
    player_ids: tuple[int, ...] = ()
    pairing_index: int = 0
    start_time: Optional[int] = None

    @property
    def is_full(self) -> bool:
        return len(self.player_ids) == COURT_CAPACITY


class SlotSelection(_Frozen):
    """Planned-game slot the operator is currently filling."""
    block_id: int
    slot_index: int


class SessionConfig(_Frozen):
    court_count: int = 0
    session_started: bool = False


class SessionState(_Frozen):
    """Complete, immutable snapshot of a session."""
    config: SessionConfig = Field(default_factory=SessionConfig)
    players: dict[int, Player] = Field(default_factory=dict)
    statuses: dict[int, PlayerStatus] = Field(default_factory=dict)
    courts: dict[int, Court] = Field(default_factory=dict)
    blocks: dict[int, QueueBlock] = Field(default_factory=dict)
    next_block_id: int = 1
    next_display_order: int = 0
    selection: Optional[SlotSelection] = None


def create_initial_state() -> SessionState:
    """Return the pre-session state: no courts, players or blocks."""
    return SessionState()


class Pairing(_Frozen):
    """One of the three ways to split a full court into two teams."""
    pair1: tuple[int, int]
    pair2: tuple[int, int]
