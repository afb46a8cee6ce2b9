"""
Immutable blackjack hand with Ace-aware valuation.

Every operation returns a new `Hand`; the value, bust and blackjack flags are
recomputed whenever the cards change.
"""

from dataclasses import dataclass, field
from typing import Tuple

from countsharp.common.card import Card, Rank


def _evaluate(cards) -> Tuple[int, int]:
    """Return the best total and the number of Aces still counted as 11."""
    value = 0
    aces = 0
    for card in cards:
        if card.rank is Rank.ACE:
            aces += 1
        value += card.value
    while value > 21 and aces > 0:
        value -= 10
        aces -= 1
    return value, aces


def hand_value(cards) -> int:
    """
    Calculate the value of a run of cards.

    Aces start at 11 and are demoted to 1, one at a time, while the total is
    over 21.
    """
    return _evaluate(cards)[0]


@dataclass(frozen=True)
class Hand:
    """
    A blackjack hand.

    Attributes:
        cards: Cards in the order they were dealt
        value: Best total of the hand, counting face-down cards
        is_bust: Whether the value is over 21
        is_blackjack: Whether the hand is a two-card 21
    """

    cards: Tuple[Card, ...] = ()
    value: int = field(init=False)
    is_bust: bool = field(init=False)
    is_blackjack: bool = field(init=False)

    def __post_init__(self):
        cards = tuple(self.cards)
        value = hand_value(cards)
        object.__setattr__(self, "cards", cards)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "is_bust", value > 21)
        object.__setattr__(self, "is_blackjack", len(cards) == 2 and value == 21)

    def add_card(self, card: Card) -> "Hand":
        """Return a new hand with ``card`` appended."""
        return Hand(self.cards + (card,))

    def reveal_all(self) -> "Hand":
        """Return a new hand with every card face up."""
        return Hand(tuple(card.with_visibility(True) for card in self.cards))

    @property
    def is_soft(self) -> bool:
        """Whether at least one Ace is currently counted as 11."""
        return _evaluate(self.cards)[1] > 0

    @property
    def hidden_cards(self) -> Tuple[Card, ...]:
        return tuple(card for card in self.cards if not card.visible)

    @property
    def has_hidden_cards(self) -> bool:
        return any(not card.visible for card in self.cards)

    @property
    def visible_value(self) -> int:
        """Value of the face-up cards only."""
        return hand_value(card for card in self.cards if card.visible)

    def to_dict(self) -> dict:
        """
        Serializable form of the hand as a player would see it.

        Face-down cards are masked and the reported value only includes the
        face-up cards until everything is revealed.
        """
        return {
            "cards": [card.to_dict() for card in self.cards],
            "value": self.visible_value,
            "is_soft": self.is_soft if not self.has_hidden_cards else None,
            "is_bust": self.is_bust,
            "is_blackjack": self.is_blackjack and not self.has_hidden_cards,
        }

    def __len__(self) -> int:
        return len(self.cards)

    def __str__(self) -> str:
        return ", ".join(str(card) if card.visible else "??" for card in self.cards)


def should_dealer_hit(hand: Hand) -> bool:
    """
    Decide whether the dealer draws another card.

    The dealer hits below 17 and on a soft 17 (an Ace still counted as 11
    makes the total exactly 17).
    """
    if hand.value < 17:
        return True
    return hand.value == 17 and hand.is_soft
