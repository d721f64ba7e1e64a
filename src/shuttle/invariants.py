"""Structural invariants every reachable state must satisfy."""
from shuttle.errors import InvariantViolation
from shuttle.models import COURT_CAPACITY, PLANNED_SLOTS, Location, SessionState


def _fail(message):
    raise InvariantViolation(message)


def check_invariants(state: SessionState) -> None:
    """
    Raise ``InvariantViolation`` on the first broken invariant.

    Checks that every player is in exactly the place their status says,
    court capacity and start-time rules, block closure, and planned-game
    slot rules.
    """
    if set(state.players) != set(state.statuses):
        _fail("Players and statuses are out of sync")

    seen = {}
    for number, court in state.courts.items():
        if court.number != number:
            _fail(f"Court keyed {number} claims number {court.number}")
        if len(court.player_ids) > COURT_CAPACITY:
            _fail(f"Court {number} holds {len(court.player_ids)} players")
        if (court.start_time is not None) != (len(court.player_ids) == COURT_CAPACITY):
            _fail(f"Court {number} start time does not match occupancy")
        if court.pairing_index not in (0, 1, 2):
            _fail(f"Court {number} has pairing index {court.pairing_index}")
        for pid in court.player_ids:
            if pid in seen:
                _fail(f"Player {pid} found on court {number} and in {seen[pid]}")
            seen[pid] = f"court {number}"

    staged = {}
    orders = {}
    for block_id, block in state.blocks.items():
        if block.id != block_id:
            _fail(f"Block keyed {block_id} claims id {block.id}")
        if block.id >= state.next_block_id:
            _fail(f"Block {block.id} is not below the next block id")
        members = block.members
        if len(set(members)) != len(members):
            _fail(f"Block {block.id} lists a player twice")
        if block.is_planned:
            if len(block.player_ids) != PLANNED_SLOTS:
                _fail(f"Planned game {block.id} has {len(block.player_ids)} slots")
            if block.closed != (len(members) == PLANNED_SLOTS):
                _fail(f"Planned game {block.id} closed flag does not match its slots")
            if not block.closed and block.display_order is not None:
                _fail(f"Open planned game {block.id} has a position")
            for pid in members:
                if pid not in state.players:
                    _fail(f"Planned game {block.id} references unknown player {pid}")
                if pid in staged:
                    _fail(f"Player {pid} staged in planned games {staged[pid]} and {block.id}")
                staged[pid] = block.id
            continue
        if not members or len(members) != len(block.player_ids):
            _fail(f"Block {block.id} is empty or holds empty entries")
        if len(members) == COURT_CAPACITY and not block.closed:
            _fail(f"Block {block.id} holds four players but is open")
        if block.display_order is None:
            _fail(f"Block {block.id} has no display order")
        if block.display_order >= state.next_display_order:
            _fail(f"Block {block.id} is not below the next display order")
        if block.display_order in orders:
            _fail(f"Blocks {orders[block.display_order]} and {block.id} share display order {block.display_order}")
        orders[block.display_order] = block.id
        for pid in members:
            if pid in seen:
                _fail(f"Player {pid} found in block {block.id} and in {seen[pid]}")
            seen[pid] = f"block {block.id}"

    for pid, status in state.statuses.items():
        where = seen.get(pid)
        if status.location == Location.COURT:
            if where != f"court {status.court_number}" or status.queue_block_id is not None:
                _fail(f"Player {pid} status says court {status.court_number}, found in {where}")
        elif status.location == Location.QUEUE:
            if where != f"block {status.queue_block_id}" or status.court_number is not None:
                _fail(f"Player {pid} status says block {status.queue_block_id}, found in {where}")
        else:
            if where is not None:
                _fail(f"Benched player {pid} found in {where}")
            if pid in staged:
                _fail(f"Benched player {pid} staged in planned game {staged[pid]}")

    if state.selection is not None:
        block = state.blocks.get(state.selection.block_id)
        if block is None or not block.is_planned:
            _fail(f"Selection points at missing planned game {state.selection.block_id}")
