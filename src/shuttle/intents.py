"""Intent models dispatched by the presentation layer into the engine."""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from shuttle.models import Location


class _Intent(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------- Session ----------

class StartSession(_Intent):
    type: Literal["start_session"] = "start_session"
    court_count: int = Field(ge=1)
    player_count: int = Field(ge=0)


class ResetSession(_Intent):
    type: Literal["reset_session"] = "reset_session"


# ---------- Players ----------

class AddPlayer(_Intent):
    type: Literal["add_player"] = "add_player"


class RenamePlayer(_Intent):
    type: Literal["rename_player"] = "rename_player"
    player_id: int
    name: str


class BulkRenamePlayers(_Intent):
    type: Literal["bulk_rename_players"] = "bulk_rename_players"
    names: dict[int, str]


class MarkBenched(_Intent):
    type: Literal["mark_benched"] = "mark_benched"
    player_id: int
    location: Location


class RestorePlayer(_Intent):
    type: Literal["restore_player"] = "restore_player"
    player_id: int


# ---------- Courts ----------

class AssignToCourt(_Intent):
    type: Literal["assign_to_court"] = "assign_to_court"
    player_id: int
    court_number: int


class RemoveFromCourt(_Intent):
    type: Literal["remove_from_court"] = "remove_from_court"
    player_id: int


class RotatePairing(_Intent):
    type: Literal["rotate_pairing"] = "rotate_pairing"
    court_number: int


class PairPlayers(_Intent):
    type: Literal["pair_players"] = "pair_players"
    court_number: int
    first_id: int
    second_id: int


class CompleteGame(_Intent):
    type: Literal["complete_game"] = "complete_game"
    court_number: int
    winning_pair: tuple[int, int]
    losing_pair: tuple[int, int]


class SubstitutePlayer(_Intent):
    type: Literal["substitute_player"] = "substitute_player"
    outgoing_id: int
    incoming_id: int
    court_number: int


# ---------- Planned games ----------

class CreatePlannedGame(_Intent):
    type: Literal["create_planned_game"] = "create_planned_game"


class SetPlannedSlot(_Intent):
    type: Literal["set_planned_slot"] = "set_planned_slot"
    block_id: int
    slot_index: int
    player_id: Optional[int] = None


class DeletePlannedGame(_Intent):
    type: Literal["delete_planned_game"] = "delete_planned_game"
    block_id: int


class SendPlannedGame(_Intent):
    type: Literal["send_planned_game"] = "send_planned_game"
    block_id: int


class SelectPlannedSlot(_Intent):
    type: Literal["select_planned_slot"] = "select_planned_slot"
    block_id: Optional[int] = None
    slot_index: int = 0


class SettlePlannedGames(_Intent):
    type: Literal["settle_planned_games"] = "settle_planned_games"


# ---------- History ----------

class Undo(_Intent):
    type: Literal["undo"] = "undo"


class Redo(_Intent):
    type: Literal["redo"] = "redo"


Intent = Annotated[
    Union[
        StartSession, ResetSession, AddPlayer, RenamePlayer, BulkRenamePlayers,
        MarkBenched, RestorePlayer, AssignToCourt, RemoveFromCourt, RotatePairing,
        PairPlayers, CompleteGame, SubstitutePlayer, CreatePlannedGame, SetPlannedSlot,
        DeletePlannedGame, SendPlannedGame, SelectPlannedSlot, SettlePlannedGames,
        Undo, Redo,
    ],
    Field(discriminator="type"),
]

intent_adapter = TypeAdapter(Intent)

# Intents recorded in history; everything else updates the present only
UNDOABLE = frozenset({
    AssignToCourt, RemoveFromCourt, CompleteGame, RotatePairing, PairPlayers,
    AddPlayer, MarkBenched, RestorePlayer, SubstitutePlayer,
    CreatePlannedGame, SetPlannedSlot, DeletePlannedGame, SendPlannedGame,
})

# Intents that wipe history
HISTORY_RESETS = frozenset({StartSession, ResetSession})


def parse_intent(data) -> _Intent:
    """Validate a raw dict (e.g. a request body) into an intent model."""
    return intent_adapter.validate_python(data)


def is_undoable(intent) -> bool:
    return type(intent) in UNDOABLE
