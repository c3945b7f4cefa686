from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import parse_qs

from websockets.asyncio.server import ServerConnection, serve
from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from core.models import LobbyConfig

from .registry import RoomRegistry
from .results import Failure, Result

LOGGER = logging.getLogger("chip_lobby")

HEALTH_PATHS = {"/", "/health", "/healthz"}

# LobbyServer glues the room registry to WebSocket clients. Each text frame is
# one request and gets exactly one reply; plain HTTP GETs on the same port
# serve health checks and read-only room syncs.


class LobbyServer:
    def __init__(self, config: LobbyConfig, registry: Optional[RoomRegistry] = None) -> None:
        self.config = config
        self.registry = registry or RoomRegistry(config)
        self.sweep_task: Optional[asyncio.Task] = None
        self.handlers: Dict[str, Callable[[Dict[str, object]], Awaitable[Result]]] = {
            "create_room": self._handle_create_room,
            "join_room": self._handle_join_room,
            "update_settings": self._handle_update_settings,
            "new_hand": self._handle_new_hand,
            "action": self._handle_action,
            "sync": self._handle_sync,
        }

    async def start(self) -> None:
        async with serve(
            self._handle_connection,
            self.config.host,
            self.config.port,
            process_request=self._process_request,
        ):
            LOGGER.info("Lobby server listening on %s:%s", self.config.host, self.config.port)
            self.sweep_task = asyncio.create_task(self._sweep_loop())
            try:
                await asyncio.Future()
            finally:
                self.sweep_task.cancel()

    async def _sweep_loop(self) -> None:
        if self.config.sweep_interval_seconds <= 0:
            return
        while True:
            await asyncio.sleep(self.config.sweep_interval_seconds)
            await self.sweep_once()

    async def sweep_once(self) -> None:
        retention = timedelta(seconds=self.config.retention_seconds)
        expired = await self.registry.expire_rooms(retention=retention)
        if expired:
            LOGGER.info("Expired %s room(s); %s still open", len(expired), self.registry.room_count())

    # WebSocket requests ----------------------------------------------

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        LOGGER.info("Client connected from %s", websocket.remote_address)
        try:
            async for raw in websocket:
                await websocket.send(await self.handle_message(raw))
        except ConnectionClosed:
            pass
        LOGGER.info("Client %s disconnected", websocket.remote_address)

    async def handle_message(self, raw: str | bytes) -> str:
        message = self._decode(raw)
        if message is None:
            return self._error(None, "BAD_JSON", HTTPStatus.BAD_REQUEST, "Malformed JSON")

        req_id = message.get("req_id")
        msg_type = message.get("type")
        handler = self.handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            return self._error(req_id, "UNKNOWN_TYPE", HTTPStatus.BAD_REQUEST, "Unsupported message type")

        result = await handler(message)
        if isinstance(result, Failure):
            return self._error(req_id, result.code, result.status, result.msg)

        payload: Dict[str, object] = dict(result.data)
        payload["game"] = result.game
        if msg_type == "action":
            payload["events"] = result.events
        return self._envelope(msg_type, result.status, payload, req_id)

    async def _handle_create_room(self, message: Dict[str, object]) -> Result:
        return await self.registry.create_room(message.get("hostName"), message.get("settings"))

    async def _handle_join_room(self, message: Dict[str, object]) -> Result:
        return await self.registry.join_room(message.get("roomCode"), message.get("playerName"))

    async def _handle_update_settings(self, message: Dict[str, object]) -> Result:
        return await self.registry.update_settings(
            message.get("roomCode"),
            message.get("hostId"),
            message.get("settings"),
        )

    async def _handle_new_hand(self, message: Dict[str, object]) -> Result:
        return await self.registry.start_new_hand(message.get("roomCode"), message.get("hostId"))

    async def _handle_action(self, message: Dict[str, object]) -> Result:
        return await self.registry.apply_action(
            message.get("roomCode"),
            message.get("playerId"),
            message.get("action"),
            message.get("amount"),
        )

    async def _handle_sync(self, message: Dict[str, object]) -> Result:
        return await self.registry.sync(message.get("roomCode"), message.get("playerId"))

    # Plain HTTP ------------------------------------------------------

    async def _process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None  # let the WebSocket handshake continue

        path, _, query = request.path.partition("?")
        if path.startswith("/api/"):
            path = path[len("/api"):]
        path = path.rstrip("/") or "/"

        if path in HEALTH_PATHS:
            return self._json_response(HTTPStatus.OK, {"status": "ok", "timestamp": self._now_ts()})

        parts = path.strip("/").split("/")
        if len(parts) == 3 and parts[0] == "rooms" and parts[2] == "sync":
            player_id = parse_qs(query).get("playerId", [None])[0]
            result = await self.registry.sync(parts[1], player_id)
            if isinstance(result, Failure):
                return self._json_response(result.status, {"error": result.msg})
            return self._json_response(HTTPStatus.OK, {"game": result.game})

        return self._json_response(HTTPStatus.NOT_FOUND, {"error": "Not found"})

    def _json_response(self, status: HTTPStatus, payload: Dict[str, object]) -> Response:
        body = json.dumps(payload).encode("utf-8")
        headers = Headers(
            [
                ("Content-Type", "application/json"),
                ("Content-Length", str(len(body))),
                ("Connection", "close"),
            ]
        )
        return Response(status.value, status.phrase, headers, body)

    # Encoding --------------------------------------------------------

    def _now_ts(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _envelope(
        self,
        msg_type: str,
        status: HTTPStatus,
        payload: Dict[str, object],
        req_id: object = None,
    ) -> str:
        body: Dict[str, object] = {"type": msg_type, "v": 1, "ts": self._now_ts(), "status": status.value}
        if req_id is not None:
            body["req_id"] = req_id
        body.update(payload)
        return json.dumps(body)

    def _error(self, req_id: object, code: str, status: HTTPStatus, msg: str) -> str:
        return self._envelope("error", status, {"code": code, "error": msg}, req_id)

    def _decode(self, raw: str | bytes) -> Optional[Dict[str, object]]:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return message if isinstance(message, dict) else None
