"""
This module defines the `Suit`, `Rank`, and `Card` classes, which are used to represent playing cards.

- `Suit`: An enum representing the four suits of a standard deck of playing
cards: Hearts, Diamonds, Clubs, and Spades.

- `Rank`: An enum representing the thirteen ranks of a standard deck, Ace
through King. Every rank has its own member, so ten-valued ranks stay
distinguishable for counting.

- `Card`: An immutable playing card carrying a suit, a rank and a visibility
flag. Turning a card face up produces a new card.

This module is part of the `countsharp` package.
"""

from dataclasses import dataclass, replace
from enum import Enum, unique


@unique
class Suit(Enum):
    """
    Enum for suits in a card deck.
    """

    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"

    @property
    def symbol(self) -> str:
        return _SUIT_SYMBOLS[self]

    def __str__(self) -> str:
        return self.symbol


_SUIT_SYMBOLS = {
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
    Suit.SPADES: "♠",
}


@unique
class Rank(Enum):
    """
    Enum for ranks in a card deck.
    """

    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"

    @property
    def rank_value(self) -> int:
        """The value of the rank, used for scoring. Aces start at 11."""
        if self is Rank.ACE:
            return 11
        if self in (Rank.JACK, Rank.QUEEN, Rank.KING):
            return 10
        return int(self.value)

    @property
    def rank_str(self) -> str:
        """A string representation of the rank."""
        return self.value

    @classmethod
    def from_str(cls, text: str) -> "Rank":
        """
        Look up a rank by its short label.

        >>> Rank.from_str("q")
        <Rank.QUEEN: 'Q'>
        """
        return cls(text.upper())

    def __str__(self) -> str:
        return self.rank_str


@dataclass(frozen=True)
class Card:
    """
    Class representing a playing card.

    >>> card = Card(Suit.HEARTS, Rank.TWO)
    >>> print(card)
    2♥
    >>> card.value
    2
    """

    suit: Suit
    rank: Rank
    visible: bool = True

    def __post_init__(self):
        if not isinstance(self.suit, Suit):
            raise TypeError(f"Invalid suit: {self.suit}")
        if not isinstance(self.rank, Rank):
            raise TypeError(f"Invalid rank: {self.rank}")

    @property
    def value(self) -> int:
        """Blackjack value before Ace adjustment."""
        return self.rank.rank_value

    def with_visibility(self, visible: bool) -> "Card":
        """
        Return a copy of this card with the given visibility.

        :param visible: True for face up, False for face down.
        :return: The same card, or a new one if the visibility differs.
        """
        if visible == self.visible:
            return self
        return replace(self, visible=visible)

    def to_dict(self) -> dict:
        """Serializable form; a face-down card hides its suit and rank."""
        if not self.visible:
            return {"visible": False}
        return {
            "suit": self.suit.value,
            "rank": self.rank.value,
            "value": self.value,
            "visible": True,
        }

    def __repr__(self) -> str:
        """
        Provide a machine-readable representation of the card.

        :return: A string representation of the card.
        """
        hidden = "" if self.visible else ", visible=False"
        return f"Card(Suit.{self.suit.name}, Rank.{self.rank.name}{hidden})"

    def __str__(self) -> str:
        """
        Provide a human-readable representation of the card.

        :return: A string representation of the card.
        """
        return f"{self.rank.rank_str}{self.suit.symbol}"


def parse_card(text: str, visible: bool = True) -> Card:
    """
    Build a card from short notation such as ``"10♠"``, ``"AH"`` or ``"Kd"``.

    Suits may be given as a symbol or as the initial letter of the suit name.
    """
    text = text.strip()
    if len(text) < 2:
        raise ValueError(f"Cannot parse card: {text!r}")
    rank_part, suit_part = text[:-1], text[-1]
    for suit in Suit:
        if suit_part == suit.symbol or suit_part.lower() == suit.value[0]:
            return Card(suit, Rank.from_str(rank_part), visible)
    raise ValueError(f"Unknown suit in card: {text!r}")
