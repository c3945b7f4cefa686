import asyncio
import json

from websockets.datastructures import Headers
from websockets.http11 import Request

from core.models import LobbyConfig
from lobby.server import LobbyServer

from .helpers import DEFAULT_SETTINGS, create_registry


# Fake socket so we can exercise the connection loop without opening a port.
class DummyWebSocket:
    def __init__(self, incoming: list[str]) -> None:
        self.incoming = list(incoming)
        self.sent: list[str] = []
        self.remote_address = ("127.0.0.1", 50000)

    async def send(self, message: str) -> None:
        self.sent.append(message)

    def __aiter__(self):
        return self._messages()

    async def _messages(self):
        for raw in self.incoming:
            yield raw


def setup_server() -> LobbyServer:
    return LobbyServer(LobbyConfig(), registry=create_registry())


async def request(server: LobbyServer, payload: dict) -> dict:
    return json.loads(await server.handle_message(json.dumps(payload)))


def http_get(server: LobbyServer, path: str, **headers: str):
    request_obj = Request(path=path, headers=Headers(list(headers.items())))
    return asyncio.run(server._process_request(None, request_obj))


def test_full_hand_flow_over_messages():
    async def scenario():
        server = setup_server()
        created = await request(server, {"type": "create_room", "req_id": 1, "hostName": "Ann", "settings": DEFAULT_SETTINGS})
        assert created["type"] == "create_room"
        assert created["status"] == 200
        assert created["req_id"] == 1
        assert created["isHost"] is True
        code, host_id = created["roomCode"], created["playerId"]

        joined = await request(server, {"type": "join_room", "roomCode": code.lower(), "playerName": "Ben"})
        assert joined["isHost"] is False
        guest_id = joined["playerId"]

        settings = await request(server, {"type": "update_settings", "roomCode": code, "hostId": host_id, "settings": {"smallBlind": 2}})
        assert settings["game"]["settings"]["smallBlind"] == 2

        dealt = await request(server, {"type": "new_hand", "roomCode": code, "hostId": host_id})
        assert dealt["game"]["gameState"]["smallBlind"] == 2
        assert "roomCode" not in dealt

        raised = await request(server, {"type": "action", "roomCode": code, "playerId": host_id, "action": "raise", "amount": 10})
        assert raised["events"][0] == {"ev": "RAISE", "playerId": host_id, "amount": 10}
        assert raised["game"]["gameState"]["currentBet"] == 10

        synced = await request(server, {"type": "sync", "roomCode": code, "playerId": guest_id})
        assert synced["game"] == raised["game"]
        assert "events" not in synced

    asyncio.run(scenario())


def test_failures_become_error_envelopes():
    async def scenario():
        server = setup_server()
        missing = await request(server, {"type": "join_room", "req_id": "j1", "roomCode": "NOPE00", "playerName": "Ben"})
        assert missing["type"] == "error"
        assert missing["status"] == 404
        assert missing["code"] == "ROOM_NOT_FOUND"
        assert missing["error"] == "Room not found"
        assert missing["req_id"] == "j1"

        created = await request(server, {"type": "create_room", "hostName": "Ann", "settings": DEFAULT_SETTINGS})
        early = await request(server, {"type": "new_hand", "roomCode": created["roomCode"], "hostId": created["playerId"]})
        assert early["status"] == 400
        assert early["error"] == "Need at least 2 players to start"

        forbidden = await request(server, {"type": "new_hand", "roomCode": created["roomCode"], "hostId": "someone"})
        assert forbidden["status"] == 403

    asyncio.run(scenario())


def test_bad_json_and_unknown_type():
    async def scenario():
        server = setup_server()
        bad = json.loads(await server.handle_message("{not json"))
        assert bad["code"] == "BAD_JSON"
        assert bad["status"] == 400

        not_object = json.loads(await server.handle_message("[1, 2]"))
        assert not_object["code"] == "BAD_JSON"

        unknown = await request(server, {"type": "shuffle_up"})
        assert unknown["code"] == "UNKNOWN_TYPE"
        assert unknown["status"] == 400

    asyncio.run(scenario())


def test_connection_replies_to_each_frame_in_order():
    server = setup_server()
    websocket = DummyWebSocket(
        [
            json.dumps({"type": "create_room", "req_id": 1, "hostName": "Ann", "settings": {}}),
            "garbage",
            json.dumps({"type": "sync", "req_id": 3, "roomCode": "NOPE00", "playerId": "x"}),
        ]
    )

    asyncio.run(server._handle_connection(websocket))

    replies = [json.loads(raw) for raw in websocket.sent]
    assert [reply["type"] for reply in replies] == ["create_room", "error", "error"]
    assert replies[0]["req_id"] == 1
    assert replies[2]["req_id"] == 3
    assert replies[2]["status"] == 404


def test_http_health_check():
    server = setup_server()
    for path in ("/health", "/healthz", "/api/health", "/"):
        response = http_get(server, path)
        assert response.status_code == 200
        assert json.loads(response.body)["status"] == "ok"


def test_http_lets_websocket_upgrades_through():
    server = setup_server()
    assert http_get(server, "/", Upgrade="websocket") is None


def test_http_unknown_path_is_404():
    server = setup_server()
    response = http_get(server, "/rooms/create")
    assert response.status_code == 404
    assert json.loads(response.body) == {"error": "Not found"}


def test_http_sync_route():
    server = setup_server()

    async def seed():
        created = await server.registry.create_room("Ann", DEFAULT_SETTINGS)
        return created.data["roomCode"], created.data["playerId"]

    code, host_id = asyncio.run(seed())

    ok = http_get(server, f"/api/rooms/{code.lower()}/sync?playerId={host_id}")
    assert ok.status_code == 200
    assert json.loads(ok.body)["game"]["roomCode"] == code

    stranger = http_get(server, f"/rooms/{code}/sync?playerId=nobody")
    assert stranger.status_code == 403
    assert json.loads(stranger.body) == {"error": "Player not in room"}

    missing = http_get(server, "/rooms/NOPE00/sync")
    assert missing.status_code == 404
