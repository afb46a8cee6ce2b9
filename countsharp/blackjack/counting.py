"""
Hi-Lo card counting.

The counting state only changes when a card becomes visible. A dealer hole
card is dealt face down and is counted later, when it is turned over.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from countsharp.common.card import Card, Rank
from countsharp.common.shoe import CARDS_PER_DECK

HI_LO_WEIGHTS = MappingProxyType(
    {
        Rank.TWO: 1,
        Rank.THREE: 1,
        Rank.FOUR: 1,
        Rank.FIVE: 1,
        Rank.SIX: 1,
        Rank.SEVEN: 0,
        Rank.EIGHT: 0,
        Rank.NINE: 0,
        Rank.TEN: -1,
        Rank.JACK: -1,
        Rank.QUEEN: -1,
        Rank.KING: -1,
        Rank.ACE: -1,
    }
)

# (threshold, multiplier) steps for the bet ramp; anything above the last
# threshold bets the maximum multiplier
_BET_RAMP = ((1, 1), (2, 2), (3, 3), (4, 4))
_MAX_BET_MULTIPLIER = 5


def card_weight(card: Card) -> int:
    """Hi-Lo weight of a card: +1 for 2-6, 0 for 7-9, -1 for tens and Aces."""
    return HI_LO_WEIGHTS[card.rank]


@dataclass(frozen=True)
class CountingState:
    """
    Running count and per-rank cards not yet seen.

    Attributes:
        running_count: Sum of Hi-Lo weights of every card revealed since the
                       last shuffle
        remaining: Number of unseen cards per rank
    """

    running_count: int = 0
    remaining: Mapping[Rank, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "running_count": self.running_count,
            "remaining": {rank.value: self.remaining.get(rank, 0) for rank in Rank},
        }


def init_counts(num_decks: int) -> CountingState:
    """Fresh counting state for a newly shuffled shoe of ``num_decks`` decks."""
    return CountingState(
        running_count=0,
        remaining=MappingProxyType({rank: 4 * num_decks for rank in Rank}),
    )


def on_card_revealed(state: CountingState, card: Card) -> CountingState:
    """
    Account for a card that has just become visible.

    :param state: Current counting state
    :param card: The revealed card
    :return: New state with the rank decremented (never below zero) and the
             card's weight added to the running count
    """
    remaining = dict(state.remaining)
    remaining[card.rank] = max(0, remaining.get(card.rank, 0) - 1)
    return CountingState(
        running_count=state.running_count + card_weight(card),
        remaining=MappingProxyType(remaining),
    )


def decks_remaining(cards_left: int) -> float:
    """Estimated decks left in the shoe, never less than half a deck."""
    return max(0.5, cards_left / CARDS_PER_DECK)


def true_count(running_count: int, decks_left: float) -> float:
    """Running count normalized by the decks left to play."""
    if decks_left <= 0:
        return 0.0
    return running_count / decks_left


def recommended_bet(true_count_value: float, base_bet: int = 10) -> int:
    """
    Advisory bet size for the given true count.

    >>> recommended_bet(0.5, 10)
    10
    >>> recommended_bet(3.5, 10)
    40
    >>> recommended_bet(7, 10)
    50
    """
    for threshold, multiplier in _BET_RAMP:
        if true_count_value <= threshold:
            return base_bet * multiplier
    return base_bet * _MAX_BET_MULTIPLIER


def count_advantage(true_count_value: float) -> str:
    """Describe how the true count favors the player."""
    if true_count_value > 4:
        return "Very Favorable"
    if true_count_value > 2:
        return "Favorable"
    if true_count_value > 0:
        return "Slightly Favorable"
    if true_count_value == 0:
        return "Neutral"
    if true_count_value > -2:
        return "Slightly Unfavorable"
    if true_count_value > -4:
        return "Unfavorable"
    return "Very Unfavorable"
