from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from core.game import apply_action, init_game
from core.models import GameState, LobbyConfig, RoomSettings
from lobby.registry import RoomRegistry
from lobby.results import Success

DEFAULT_SETTINGS = {"startingChips": 100, "smallBlind": 1, "bigBlind": 2, "maxPlayers": 6}


def create_state(
    num_players: int = 3,
    *,
    starting_chips: int = 100,
    sb: int = 1,
    bb: int = 2,
    seed: int = 42,
) -> GameState:
    """Deal a fresh hand to players P0..Pn-1 with a seeded shuffle."""
    settings = RoomSettings(starting_chips=starting_chips, small_blind=sb, big_blind=bb)
    player_ids = [f"P{idx}" for idx in range(num_players)]
    return init_game(settings, player_ids, rng=random.Random(seed))


def perform_actions(
    state: GameState,
    actions: Iterable[Tuple],
) -> List[Dict[str, object]]:
    """Apply a scripted sequence of (player id, action[, amount]) tuples."""
    events: List[Dict[str, object]] = []
    for player_id, action, *rest in actions:
        amount: Optional[int] = rest[0] if rest else None
        events.extend(apply_action(state, player_id, action, amount))
    return events


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def create_registry(clock: Optional[FakeClock] = None, seed: int = 7, **kwargs) -> RoomRegistry:
    return RoomRegistry(LobbyConfig(), clock=clock or FakeClock(), rng=random.Random(seed), **kwargs)


async def seat_room(
    registry: RoomRegistry,
    num_players: int = 2,
    settings: Optional[Dict[str, int]] = None,
) -> Tuple[str, List[str]]:
    """Create a room and fill it; returns the code and player ids (host first)."""
    created = await registry.create_room("Host", dict(settings or DEFAULT_SETTINGS))
    assert isinstance(created, Success)
    code = created.data["roomCode"]
    player_ids = [created.data["playerId"]]
    for idx in range(1, num_players):
        joined = await registry.join_room(code, f"Guest{idx}")
        assert isinstance(joined, Success)
        player_ids.append(joined.data["playerId"])
    return code, player_ids


def assert_betting_invariants(state: GameState, starting_chips: int) -> None:
    assert state.pot == sum(player.bet for player in state.players)
    for player in state.players:
        assert player.chips >= 0
        assert player.chips + player.bet == starting_chips
        if player.chips == 0:
            assert player.all_in
    if state.awaiting_action:
        assert state.players[state.current_player_index].can_act
    else:
        assert not any(player.can_act for player in state.players)
