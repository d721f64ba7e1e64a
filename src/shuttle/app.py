"""
HTTP/WebSocket adapter for a rotation session.

The presentation layer posts intents and renders from the snapshots this
service returns or pushes over the WebSocket.
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
import uvicorn

from shuttle import courts, planned, store
from shuttle.config import AppConfig
from shuttle.intents import parse_intent
from shuttle.models import SessionState
from shuttle.persistence import SqliteSnapshotStore
from shuttle.session import QueueSession

logger = logging.getLogger("shuttle.app")

session: Optional[QueueSession] = None
clients: list[WebSocket] = []
main_loop: Optional[asyncio.AbstractEventLoop] = None


# ---------- Views ----------

def state_view(state: SessionState) -> dict:
    return {
        "state": state.model_dump(mode="json"),
        "can_undo": session.can_undo if session else False,
        "can_redo": session.can_redo if session else False,
    }


def queue_view(state: SessionState) -> list[dict]:
    """Queue blocks front to back; planned games carry their send status."""
    result = []
    for block in store.ordered_blocks(state):
        entry = block.model_dump(mode="json")
        entry["players"] = [
            state.players[pid].name if pid is not None else None
            for pid in block.player_ids
        ]
        if block.is_planned:
            reason = planned.send_blocker(state, block.id)
            entry["can_send"] = reason is None
            entry["blocked_reason"] = reason
        result.append(entry)
    return result


def courts_view(state: SessionState) -> dict:
    result = []
    for number in sorted(state.courts):
        court = state.courts[number]
        pairing = courts.current_pairing(court)
        result.append({
            **court.model_dump(mode="json"),
            "pairing": pairing.model_dump(mode="json") if pairing else None,
        })
    return {"courts": result, "priority_court": courts.priority_court(state)}


# ---------- Broadcasting ----------

async def broadcast_state():
    if not clients:
        return
    message = json.dumps(state_view(session.state))
    for ws in list(clients):
        try:
            await ws.send_text(message)
        except Exception as e:
            logger.debug(f"Dropping WebSocket client: {e}")
            if ws in clients:
                clients.remove(ws)


def notify_change(_state: SessionState):
    """Session change listener; may run on the settle timer thread."""
    if main_loop is not None and main_loop.is_running():
        asyncio.run_coroutine_threadsafe(broadcast_state(), main_loop)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global session, main_loop
    main_loop = asyncio.get_running_loop()
    if session is None:
        snapshot_store = SqliteSnapshotStore(AppConfig.DB_PATH, max_age_hours=AppConfig.SNAPSHOT_MAX_AGE_HOURS)
        session = QueueSession.restore(snapshot_store, on_change=notify_change)
    yield
    session.close()
    main_loop = None


app = FastAPI(lifespan=lifespan)


# ---------- Endpoints ----------

@app.get("/state")
async def get_state():
    return state_view(session.state)


@app.get("/queue")
async def get_queue():
    return {"blocks": queue_view(session.state)}


@app.get("/courts")
async def get_courts():
    return courts_view(session.state)


@app.post("/intents")
async def post_intent(request: dict):
    """Dispatch one intent, e.g. ``{"type": "assign_to_court", "player_id": 3, "court_number": 1}``."""
    if request.get("type") == "start_session":
        request = {
            "court_count": AppConfig.DEFAULT_COURTS,
            "player_count": AppConfig.DEFAULT_PLAYERS,
            **request,
        }
    try:
        intent = parse_intent(request)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=json.loads(e.json()))

    result = session.dispatch(intent)
    return {
        "accepted": result.accepted,
        "reason": result.reason,
        **state_view(result.state),
    }


# ---------- WebSocket ----------
@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)
    logger.info(f"WebSocket client connected (total: {len(clients)})")

    await ws.send_text(json.dumps(state_view(session.state)))

    try:
        # Clients only listen; wait for the disconnect
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)
        logger.info(f"WebSocket client disconnected (total: {len(clients)})")


def main():
    from shuttle.log import init_logging
    init_logging("app", color="dim cyan")

    logger.info(f"Starting court rotation service on http://{AppConfig.HOST}:{AppConfig.PORT}")
    uvicorn.run(app, host=AppConfig.HOST, port=AppConfig.PORT, log_config=None)
    logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
