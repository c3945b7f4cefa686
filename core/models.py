from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .cards import Card, cards_to_payload
from .errors import ErrorKind, GameError

# Largest table a single deck can deal two cards to.
MAX_PLAYERS = 26


class Phase(str, Enum):
    # Only PREFLOP is ever reached; nothing advances the hand past it.
    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"


class ActionType(str, Enum):
    FOLD = "fold"
    CALL = "call"
    RAISE = "raise"
    ALL_IN = "all-in"


# Wire keys for RoomSettings fields.
SETTINGS_KEYS = {
    "startingChips": "starting_chips",
    "smallBlind": "small_blind",
    "bigBlind": "big_blind",
    "maxPlayers": "max_players",
}


@dataclass
class RoomSettings:
    starting_chips: int = 1_000
    small_blind: int = 10
    big_blind: int = 20
    max_players: int = 8

    def to_payload(self) -> Dict[str, int]:
        return {wire: getattr(self, attr) for wire, attr in SETTINGS_KEYS.items()}

    def merged(self, patch: Any) -> "RoomSettings":
        """Return a copy with the camelCase fields of ``patch`` overwritten."""
        if not isinstance(patch, Mapping):
            raise GameError("BAD_SETTINGS", "Settings must be an object", ErrorKind.VALIDATION)
        changes: Dict[str, int] = {}
        for key, value in patch.items():
            attr = SETTINGS_KEYS.get(key)
            if attr is None:
                raise GameError("BAD_SETTINGS", f"Unknown setting: {key}", ErrorKind.VALIDATION)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise GameError("BAD_SETTINGS", f"{key} must be a positive integer", ErrorKind.VALIDATION)
            changes[attr] = value
        settings = replace(self, **changes)
        if not 2 <= settings.max_players <= MAX_PLAYERS:
            raise GameError(
                "BAD_SETTINGS",
                f"maxPlayers must be between 2 and {MAX_PLAYERS}",
                ErrorKind.VALIDATION,
            )
        return settings


@dataclass
class PlayerState:
    player_id: str
    chips: int
    position: int
    cards: List[Card] = field(default_factory=list)
    bet: int = 0
    folded: bool = False
    all_in: bool = False

    @property
    def can_act(self) -> bool:
        return not self.folded and not self.all_in

    def to_payload(self) -> Dict[str, object]:
        return {
            "id": self.player_id,
            "chips": self.chips,
            "bet": self.bet,
            "folded": self.folded,
            "allIn": self.all_in,
            "cards": cards_to_payload(self.cards),
            "position": self.position,
        }


@dataclass
class GameState:
    players: List[PlayerState]
    deck: List[Card]
    small_blind: int
    big_blind: int
    hand_number: int = 1
    pot: int = 0
    current_bet: int = 0
    current_player_index: int = 0
    phase: Phase = Phase.PREFLOP
    community_cards: List[Card] = field(default_factory=list)
    awaiting_action: bool = True

    def find_player(self, player_id: str) -> Optional[int]:
        for idx, player in enumerate(self.players):
            if player.player_id == player_id:
                return idx
        return None

    def to_payload(self) -> Dict[str, object]:
        return {
            "players": [player.to_payload() for player in self.players],
            "pot": self.pot,
            "currentBet": self.current_bet,
            "currentPlayerIndex": self.current_player_index,
            "phase": self.phase.value,
            "communityCards": cards_to_payload(self.community_cards),
            "deck": cards_to_payload(self.deck),
            "smallBlind": self.small_blind,
            "bigBlind": self.big_blind,
            "handNumber": self.hand_number,
            "awaitingAction": self.awaiting_action,
        }


@dataclass
class RoomMember:
    player_id: str
    name: str
    is_host: bool = False

    def to_payload(self) -> Dict[str, object]:
        return {"id": self.player_id, "name": self.name, "isHost": self.is_host}


@dataclass
class LobbyConfig:
    host: str = "0.0.0.0"
    port: int = 3001
    retention_seconds: int = 24 * 60 * 60
    sweep_interval_seconds: int = 60 * 60
    default_settings: RoomSettings = field(default_factory=RoomSettings)
