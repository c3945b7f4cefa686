from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

SUITS = ("hearts", "diamonds", "clubs", "spades")
RANKS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
HAND_SIZE = 2


@dataclass(frozen=True)
class Card:
    suit: str
    rank: str

    def __post_init__(self) -> None:
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")

    def to_payload(self) -> Dict[str, str]:
        return {"suit": self.suit, "rank": self.rank}


def build_deck() -> List[Card]:
    return [Card(suit, rank) for suit in SUITS for rank in RANKS]


def shuffle(deck: List[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """Fisher-Yates shuffle in place; each swap target is drawn from [0, i]."""
    source = rng or random
    for i in range(len(deck) - 1, 0, -1):
        j = source.randint(0, i)
        deck[i], deck[j] = deck[j], deck[i]
    return deck


def deal_hands(deck: List[Card], count: int) -> Tuple[List[List[Card]], List[Card]]:
    # Hands come off the end of the deck, one pair per player in seat order.
    if len(deck) < HAND_SIZE * count:
        raise ValueError("Not enough cards left in deck")
    residual = list(deck)
    hands = []
    for _ in range(count):
        hands.append([residual.pop(), residual.pop()])
    return hands, residual


def cards_to_payload(cards: List[Card]) -> List[Dict[str, str]]:
    return [card.to_payload() for card in cards]
