"""
This module contains the deck builders and the `Shoe` used at the table.

A shoe is one or more standard 52-card decks shuffled together. It is
immutable: drawing returns the card together with a new, shorter shoe, so a
round state can hold a shoe without sharing mutable data.

>>> shoe = build_shoe(1)
>>> shoe.size
52
>>> card, shoe = shoe.draw()
>>> shoe.size
51
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from countsharp.common.card import Card, Rank, Suit
from countsharp.errors import EmptyShoeError

CARDS_PER_DECK = 52

# Reshuffle once fewer than this fraction of the freshly shuffled shoe remains
RESHUFFLE_FRACTION = 0.25

SUITS = (Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES)
RANKS = tuple(Rank)

# Precompute the default deck
_default_deck = [Card(suit, rank) for suit in SUITS for rank in RANKS]


def build_deck() -> List[Card]:
    """
    Construct one 52-card deck, one card per suit and rank, all face up.

    >>> len(build_deck())
    52
    """
    return _default_deck.copy()


def shuffle(cards: Sequence[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """
    Return a uniformly random permutation of ``cards`` (Fisher-Yates).

    The input sequence is not modified.

    :param cards: Cards to shuffle
    :param rng: Optional random source, for reproducible shuffles
    :return: A new shuffled list
    """
    rng = rng or random
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def needs_reshuffle(current_length: int, original_length: int) -> bool:
    """
    Check whether the shoe has passed the cut card.

    >>> needs_reshuffle(52, 52)
    False
    >>> needs_reshuffle(12, 52)
    True
    """
    return current_length < original_length * RESHUFFLE_FRACTION


@dataclass(frozen=True)
class Shoe:
    """
    An ordered, immutable stack of cards dealt from the front.

    Attributes:
        cards: Cards still in the shoe, next card first
        original_size: Number of cards right after the last shuffle
        num_decks: Number of decks the shoe was built from
    """

    cards: Tuple[Card, ...] = ()
    original_size: int = 0
    num_decks: int = 1

    @classmethod
    def from_cards(cls, cards: Sequence[Card], original_size: Optional[int] = None) -> "Shoe":
        """
        Build a shoe with a known order, without shuffling.

        :param cards: Cards in dealing order
        :param original_size: Size to measure penetration against (defaults
                              to ``len(cards)``)
        """
        cards = tuple(cards)
        size = len(cards) if original_size is None else original_size
        return cls(
            cards=cards,
            original_size=size,
            num_decks=max(1, -(-size // CARDS_PER_DECK)),
        )

    @property
    def size(self) -> int:
        """Return the number of cards remaining in the shoe."""
        return len(self.cards)

    def is_empty(self) -> bool:
        return not self.cards

    def draw(self, visible: bool = True) -> Tuple[Card, "Shoe"]:
        """
        Remove the first card from the shoe.

        :param visible: Whether the card is dealt face up
        :return: The drawn card and the remaining shoe
        :raises EmptyShoeError: If there are no cards left
        """
        if not self.cards:
            raise EmptyShoeError("Cannot draw from an empty shoe")
        card = self.cards[0].with_visibility(visible)
        return card, Shoe(self.cards[1:], self.original_size, self.num_decks)

    def needs_reshuffle(self) -> bool:
        """Return whether the next round must start from a fresh shoe."""
        return needs_reshuffle(self.size, self.original_size)

    def get_penetration_percentage(self) -> float:
        """Return how far through the shoe we are, from 0.0 to 1.0."""
        if not self.original_size:
            return 0.0
        return (self.original_size - self.size) / self.original_size

    def __str__(self) -> str:
        return f"Shoe with {self.size} cards remaining"

    def __repr__(self) -> str:
        return f"Shoe(num_decks={self.num_decks}, size={self.size}, original_size={self.original_size})"


def build_shoe(num_decks: int, rng: Optional[random.Random] = None) -> Shoe:
    """
    Combine ``num_decks`` decks and shuffle them into a new shoe.

    :param num_decks: Number of 52-card decks (at least 1)
    :param rng: Optional random source
    :return: A shuffled shoe whose ``original_size`` is its full length
    """
    if num_decks < 1:
        raise ValueError("Number of decks must be at least 1")
    cards: List[Card] = []
    for _ in range(num_decks):
        cards.extend(build_deck())
    cards = shuffle(cards, rng)
    return Shoe(tuple(cards), len(cards), num_decks)
