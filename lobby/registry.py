from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import string
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional

from core.errors import ErrorKind, GameError
from core.game import apply_action, init_game
from core.models import GameState, LobbyConfig, RoomMember, RoomSettings

from .results import Result, Success, returns_result

LOGGER = logging.getLogger("chip_lobby")

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6
MIN_PLAYERS_TO_START = 2

# RoomRegistry owns every room plus the player index. The registry lock guards
# both maps; each room carries its own lock for in-room mutation. Locks are
# always taken registry first, then room.


def generate_room_code(rng: Optional[random.Random] = None) -> str:
    source = rng or random
    return "".join(source.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def generate_player_id() -> str:
    return str(uuid.uuid4())


def normalize_code(code: object) -> str:
    if not isinstance(code, str) or not code.strip():
        raise GameError("BAD_SCHEMA", "roomCode required", ErrorKind.VALIDATION)
    return code.strip().upper()


def _require_text(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise GameError("BAD_SCHEMA", f"{name} required", ErrorKind.VALIDATION)
    return value.strip()


def _room_not_found() -> GameError:
    return GameError("ROOM_NOT_FOUND", "Room not found", ErrorKind.NOT_FOUND)


@dataclass
class Room:
    code: str
    host_id: str
    settings: RoomSettings
    members: List[RoomMember]
    created_at: datetime
    game_state: Optional[GameState] = None
    game_started: bool = False
    closed: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def snapshot(self) -> Dict[str, object]:
        return {
            "roomCode": self.code,
            "players": [member.to_payload() for member in self.members],
            "settings": self.settings.to_payload(),
            "gameStarted": self.game_started,
            "gameState": self.game_state.to_payload() if self.game_state else None,
        }


@dataclass
class PlayerIndexEntry:
    room_code: str
    name: str


class RoomRegistry:
    def __init__(
        self,
        config: Optional[LobbyConfig] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        code_factory: Optional[Callable[[], str]] = None,
        id_factory: Optional[Callable[[], str]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or LobbyConfig()
        self.rooms: Dict[str, Room] = {}
        self.players: Dict[str, PlayerIndexEntry] = {}
        self.lock = asyncio.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng
        self._code_factory = code_factory or (lambda: generate_room_code(rng))
        self._id_factory = id_factory or generate_player_id

    # Lookups ---------------------------------------------------------

    def get_room(self, code: str) -> Optional[Room]:
        return self.rooms.get(code.strip().upper())

    def room_count(self) -> int:
        return len(self.rooms)

    def _get_room_locked(self, code: str) -> Room:
        room = self.rooms.get(code)
        if room is None:
            raise _room_not_found()
        return room

    def _unique_code_locked(self) -> str:
        while True:
            code = self._code_factory().upper()
            if code not in self.rooms:
                return code

    @contextlib.asynccontextmanager
    async def _locked_room(self, code: str) -> AsyncIterator[Room]:
        async with self.lock:
            room = self._get_room_locked(code)
        async with room.lock:
            # Expiry may have removed the room while we waited for its lock.
            if room.closed:
                raise _room_not_found()
            yield room

    # Room lifecycle --------------------------------------------------

    @returns_result
    async def create_room(self, host_name: object, settings: object) -> Result:
        if not isinstance(host_name, str) or not host_name.strip() or settings is None:
            raise GameError("BAD_SCHEMA", "Missing hostName or settings", ErrorKind.VALIDATION)
        name = host_name.strip()
        room_settings = self.config.default_settings.merged(settings)

        async with self.lock:
            code = self._unique_code_locked()
            host_id = self._id_factory()
            room = Room(
                code=code,
                host_id=host_id,
                settings=room_settings,
                members=[RoomMember(player_id=host_id, name=name, is_host=True)],
                created_at=self._clock(),
            )
            self.rooms[code] = room
            self.players[host_id] = PlayerIndexEntry(room_code=code, name=name)
            snapshot = room.snapshot()

        LOGGER.info("Room created: %s by %s", code, name)
        return Success(game=snapshot, data={"roomCode": code, "playerId": host_id, "isHost": True})

    @returns_result
    async def join_room(self, code: object, player_name: object) -> Result:
        if not isinstance(code, str) or not isinstance(player_name, str):
            raise GameError("BAD_SCHEMA", "Missing roomCode or playerName", ErrorKind.VALIDATION)
        room_code = normalize_code(code)
        name = _require_text(player_name, "playerName")

        async with self.lock:
            room = self._get_room_locked(room_code)
            async with room.lock:
                if room.game_started:
                    raise GameError("GAME_STARTED", "Game already started")
                if len(room.members) >= room.settings.max_players:
                    raise GameError("ROOM_FULL", "Room is full")
                player_id = self._id_factory()
                room.members.append(RoomMember(player_id=player_id, name=name))
                self.players[player_id] = PlayerIndexEntry(room_code=room.code, name=name)
                snapshot = room.snapshot()

        LOGGER.info("Player %s joined room %s", name, room_code)
        return Success(game=snapshot, data={"roomCode": room_code, "playerId": player_id, "isHost": False})

    @returns_result
    async def update_settings(self, code: object, host_id: object, patch: object) -> Result:
        room_code = normalize_code(code)
        async with self._locked_room(room_code) as room:
            if room.host_id != host_id:
                raise GameError("NOT_HOST", "Only host can update settings", ErrorKind.FORBIDDEN)
            if patch is None:
                raise GameError("BAD_SETTINGS", "settings required", ErrorKind.VALIDATION)
            room.settings = room.settings.merged(patch)
            snapshot = room.snapshot()

        LOGGER.info("Settings updated for room %s", room_code)
        return Success(game=snapshot)

    @returns_result
    async def start_new_hand(self, code: object, host_id: object) -> Result:
        room_code = normalize_code(code)
        async with self._locked_room(room_code) as room:
            if room.host_id != host_id:
                raise GameError("NOT_HOST", "Only host can start new hand", ErrorKind.FORBIDDEN)
            if len(room.members) < MIN_PLAYERS_TO_START:
                raise GameError("NOT_ENOUGH_PLAYERS", "Need at least 2 players to start")
            hand_number = room.game_state.hand_number + 1 if room.game_state else 1
            player_ids = [member.player_id for member in room.members]
            room.game_state = init_game(room.settings, player_ids, hand_number=hand_number, rng=self._rng)
            room.game_started = True
            snapshot = room.snapshot()

        LOGGER.info("Hand %s started for room %s", hand_number, room_code)
        return Success(game=snapshot)

    @returns_result
    async def apply_action(self, code: object, player_id: object, action: object, amount: object = None) -> Result:
        room_code = normalize_code(code)
        async with self._locked_room(room_code) as room:
            if room.game_state is None:
                raise GameError("GAME_NOT_FOUND", "Room or game not found", ErrorKind.NOT_FOUND)
            try:
                events = apply_action(room.game_state, player_id, action, amount)
            except GameError as exc:
                LOGGER.warning(
                    "Rejected action room=%s player=%s action=%s amount=%s reason=%s",
                    room_code,
                    player_id,
                    action,
                    amount,
                    exc.msg,
                )
                raise
            snapshot = room.snapshot()

        LOGGER.info("Player %s performed %s in room %s", player_id, action, room_code)
        return Success(game=snapshot, events=events)

    @returns_result
    async def sync(self, code: object, player_id: object) -> Result:
        room_code = normalize_code(code)
        async with self.lock:
            room = self._get_room_locked(room_code)
            entry = self.players.get(player_id) if isinstance(player_id, str) else None
            if entry is None or entry.room_code != room.code:
                raise GameError("NOT_A_MEMBER", "Player not in room", ErrorKind.FORBIDDEN)
        async with room.lock:
            if room.closed:
                raise _room_not_found()
            return Success(game=room.snapshot())

    # Expiry ----------------------------------------------------------

    async def expire_rooms(
        self,
        now: Optional[datetime] = None,
        retention: Optional[timedelta] = None,
    ) -> List[str]:
        now = now or self._clock()
        if retention is None:
            retention = timedelta(seconds=self.config.retention_seconds)

        expired: List[str] = []
        async with self.lock:
            for code, room in list(self.rooms.items()):
                if now - room.created_at <= retention:
                    continue
                # Wait out any in-flight request on this room before removing it.
                async with room.lock:
                    room.closed = True
                    for member in room.members:
                        self.players.pop(member.player_id, None)
                    del self.rooms[code]
                expired.append(code)
                LOGGER.info("Cleaning up old room: %s", code)
        return expired
