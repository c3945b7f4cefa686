from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence

from .cards import build_deck, deal_hands, shuffle
from .errors import ErrorKind, GameError
from .models import ActionType, GameState, Phase, PlayerState, RoomSettings

# Betting core for a single hand. No networking or room bookkeeping lives
# here, only chip accounting and turn order.


# Hand setup ------------------------------------------------------------

def init_game(
    settings: RoomSettings,
    player_ids: Sequence[str],
    hand_number: int = 1,
    rng: Optional[random.Random] = None,
) -> GameState:
    deck = shuffle(build_deck(), rng)
    hands, residual = deal_hands(deck, len(player_ids))
    players = [
        PlayerState(
            player_id=player_id,
            chips=settings.starting_chips,
            position=idx,
            cards=hands[idx],
        )
        for idx, player_id in enumerate(player_ids)
    ]
    # Blinds are recorded on the state but nobody posts them; seat 0 opens
    # with nothing to call.
    return GameState(
        players=players,
        deck=residual,
        small_blind=settings.small_blind,
        big_blind=settings.big_blind,
        hand_number=hand_number,
        pot=0,
        current_bet=0,
        current_player_index=0,
        phase=Phase.PREFLOP,
        community_cards=[],
    )


# Action handling -------------------------------------------------------

def parse_action(action: object) -> ActionType:
    try:
        return ActionType(action)
    except ValueError:
        raise GameError("INVALID_ACTION", "Invalid action", ErrorKind.VALIDATION) from None


def apply_action(
    state: GameState,
    player_id: str,
    action: object,
    amount: Optional[int] = None,
) -> List[Dict[str, object]]:
    """Validate and apply one betting action, then pass the turn on.

    ``amount`` only matters for raises and is the player's new total bet for
    the round, not the size of the increase. Every check runs before the
    state is touched, so a rejected action leaves it exactly as it was.
    """
    idx = state.find_player(player_id)
    if idx is None:
        raise GameError("PLAYER_NOT_FOUND", "Player not found", ErrorKind.NOT_FOUND)
    if idx != state.current_player_index:
        raise GameError("OUT_OF_TURN", "Not your turn")
    player = state.players[idx]
    if not player.can_act:
        raise GameError("ILLEGAL_ACTION", "Player cannot act")

    kind = parse_action(action)
    events: List[Dict[str, object]] = []

    if kind == ActionType.FOLD:
        player.folded = True
        events.append({"ev": "FOLD", "playerId": player_id, "amount": 0})
    elif kind == ActionType.CALL:
        moved = _commit_chips(state, player, state.current_bet - player.bet)
        events.append({"ev": "CALL", "playerId": player_id, "amount": moved})
    elif kind == ActionType.RAISE:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= state.current_bet:
            raise GameError("INVALID_AMOUNT", "Raise amount too small")
        # A raise to a total below the player's own bet hands the difference back.
        moved = min(amount - player.bet, player.chips)
        _move_chips(state, player, moved)
        state.current_bet = player.bet
        events.append({"ev": "RAISE", "playerId": player_id, "amount": moved})
    else:
        moved = _commit_chips(state, player, player.chips)
        if player.bet > state.current_bet:
            state.current_bet = player.bet
        events.append({"ev": "ALL_IN", "playerId": player_id, "amount": moved})

    if advance_turn(state):
        next_player = state.players[state.current_player_index]
        events.append({"ev": "TURN", "playerId": next_player.player_id, "index": state.current_player_index})
    else:
        events.append({"ev": "NO_ELIGIBLE_ACTOR"})
    return events


def _commit_chips(state: GameState, player: PlayerState, amount: int) -> int:
    amount = max(0, min(amount, player.chips))
    _move_chips(state, player, amount)
    return amount


def _move_chips(state: GameState, player: PlayerState, delta: int) -> None:
    player.chips -= delta
    player.bet += delta
    state.pot += delta
    if player.chips == 0:
        player.all_in = True


# Turn order ------------------------------------------------------------

def advance_turn(state: GameState) -> bool:
    """Move the turn pointer to the next player who can still act.

    Walks at most one full lap, so the actor themself is picked again when
    everyone else is out. Returns False and leaves the pointer alone when
    every player is folded or all-in.
    """
    count = len(state.players)
    idx = state.current_player_index
    for _ in range(count):
        idx = (idx + 1) % count
        if state.players[idx].can_act:
            state.current_player_index = idx
            state.awaiting_action = True
            return True
    state.awaiting_action = False
    return False
