"""Card-room betting primitives shared by the lobby server and its tests."""

from .cards import Card, RANKS, SUITS, build_deck, deal_hands, shuffle
from .errors import ErrorKind, GameError
from .game import advance_turn, apply_action, init_game
from .models import ActionType, GameState, LobbyConfig, Phase, PlayerState, RoomMember, RoomSettings

__all__ = [
    "Card",
    "RANKS",
    "SUITS",
    "build_deck",
    "deal_hands",
    "shuffle",
    "ErrorKind",
    "GameError",
    "advance_turn",
    "apply_action",
    "init_game",
    "ActionType",
    "GameState",
    "LobbyConfig",
    "Phase",
    "PlayerState",
    "RoomMember",
    "RoomSettings",
]
