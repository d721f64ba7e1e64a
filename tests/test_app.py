import json

import pytest
from fastapi.testclient import TestClient

import shuttle.app as app_module
from shuttle.session import QueueSession


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(app_module, "session", QueueSession(settle_delay=0, check_invariants=True))
    return TestClient(app_module.app)


def post(client, **intent):
    r = client.post("/intents", json=intent)
    assert r.status_code == 200
    return r.json()


def test_start_session(client):
    body = post(client, type="start_session", court_count=2, player_count=8)

    assert body["accepted"] is True
    assert body["reason"] is None
    assert len(body["state"]["players"]) == 8
    assert body["state"]["players"]["1"]["name"] == "Player #1"
    assert body["can_undo"] is False


def test_start_session_uses_configured_defaults(client, monkeypatch):
    monkeypatch.setattr(app_module.AppConfig, "DEFAULT_COURTS", 3)
    monkeypatch.setattr(app_module.AppConfig, "DEFAULT_PLAYERS", 5)

    body = post(client, type="start_session")

    assert len(body["state"]["courts"]) == 3
    assert len(body["state"]["players"]) == 5


def test_rejected_intent_is_not_an_http_error(client):
    post(client, type="start_session", court_count=1, player_count=4)

    body = post(client, type="assign_to_court", player_id=1, court_number=7)

    assert body["accepted"] is False
    assert "Court 7" in body["reason"]


def test_malformed_intent(client):
    r = client.post("/intents", json={"type": "teleport_player"})
    assert r.status_code == 422

    r = client.post("/intents", json={"type": "assign_to_court", "player_id": 1})
    assert r.status_code == 422


def test_undo_over_http(client):
    post(client, type="start_session", court_count=1, player_count=4)
    body = post(client, type="assign_to_court", player_id=1, court_number=1)
    assert body["can_undo"] is True

    body = post(client, type="undo")

    assert body["accepted"] is True
    assert body["can_redo"] is True
    assert body["state"]["courts"]["1"]["player_ids"] == []


def test_get_state(client):
    r = client.get("/state")
    assert r.status_code == 200
    assert r.json()["state"]["config"]["session_started"] is False


def test_queue_view(client):
    post(client, type="start_session", court_count=1, player_count=8)
    post(client, type="rename_player", player_id=2, name="Bea")
    post(client, type="create_planned_game")
    plan = client.get("/queue").json()["blocks"][0]
    for slot, pid in enumerate([1, 2, 3, 4]):
        post(client, type="set_planned_slot", block_id=plan["id"], slot_index=slot, player_id=pid)

    blocks = client.get("/queue").json()["blocks"]

    assert [b["type"] for b in blocks] == ["new_players", "planned_game"]
    assert blocks[0]["players"][:3] == ["Player #1", "Bea", "Player #3"]
    assert blocks[1]["display_order"] == 0.5
    assert blocks[1]["can_send"] is True
    assert blocks[1]["blocked_reason"] is None


def test_queue_view_blocked_plan(client):
    post(client, type="start_session", court_count=1, player_count=8)
    post(client, type="assign_to_court", player_id=5, court_number=1)
    post(client, type="create_planned_game")

    plan = client.get("/queue").json()["blocks"][0]

    assert plan["type"] == "planned_game"
    assert plan["players"] == [None, None, None, None]
    assert plan["can_send"] is False
    assert plan["blocked_reason"] == "Planned game needs four players"


def test_courts_view(client):
    post(client, type="start_session", court_count=2, player_count=8)
    for pid in (1, 2, 3, 4):
        post(client, type="assign_to_court", player_id=pid, court_number=1)
    post(client, type="rotate_pairing", court_number=1)

    body = client.get("/courts").json()

    assert body["priority_court"] == 2
    court = body["courts"][0]
    assert court["number"] == 1
    assert court["pairing"] == {"pair1": [1, 3], "pair2": [2, 4]}
    assert body["courts"][1]["pairing"] is None


def test_complete_game_over_http(client):
    post(client, type="start_session", court_count=1, player_count=4)
    for pid in (1, 2, 3, 4):
        post(client, type="assign_to_court", player_id=pid, court_number=1)

    body = post(client, type="complete_game", court_number=1, winning_pair=[3, 4], losing_pair=[1, 2])

    assert body["accepted"] is True
    statuses = body["state"]["statuses"]
    assert statuses["3"]["state"] == "winner"
    assert statuses["1"]["state"] == "loser"


def test_websocket_sends_current_state(client):
    post(client, type="start_session", court_count=1, player_count=2)

    with client.websocket_connect("/ws") as ws:
        data = ws.receive_json()

    assert len(data["state"]["players"]) == 2


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(text)


@pytest.mark.asyncio
async def test_broadcast_drops_dead_clients(monkeypatch):
    monkeypatch.setattr(app_module, "session", QueueSession(settle_delay=0))
    good, dead = FakeSocket(), FakeSocket(fail=True)
    monkeypatch.setattr(app_module, "clients", [good, dead])

    await app_module.broadcast_state()

    assert len(good.sent) == 1
    assert json.loads(good.sent[0])["can_undo"] is False
    assert app_module.clients == [good]
