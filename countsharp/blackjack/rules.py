"""
Outcome and payout rules for a single player hand against the dealer.
"""

import math
from enum import Enum

from countsharp.blackjack.hand import Hand

BLACKJACK_PAYOUT = 1.5


class Outcome(Enum):
    """Result of a settled round, from the table's point of view."""

    PLAYER = "player"
    PLAYER_BLACKJACK = "player-blackjack"
    DEALER = "dealer"
    PUSH = "push"

    @property
    def player_won(self) -> bool:
        return self in (Outcome.PLAYER, Outcome.PLAYER_BLACKJACK)


def determine_outcome(player_hand: Hand, dealer_hand: Hand) -> Outcome:
    """
    Decide who won the round.

    Precedence: a player bust loses even if the dealer also busts, then a
    dealer bust, then naturals, then the higher total.
    """
    if player_hand.is_bust:
        return Outcome.DEALER
    if dealer_hand.is_bust:
        return Outcome.PLAYER
    if player_hand.is_blackjack and not dealer_hand.is_blackjack:
        return Outcome.PLAYER_BLACKJACK
    if dealer_hand.is_blackjack and not player_hand.is_blackjack:
        return Outcome.DEALER
    if player_hand.is_blackjack and dealer_hand.is_blackjack:
        return Outcome.PUSH
    if player_hand.value > dealer_hand.value:
        return Outcome.PLAYER
    if dealer_hand.value > player_hand.value:
        return Outcome.DEALER
    return Outcome.PUSH


def settle(bet: int, outcome: Outcome) -> int:
    """
    Chip change for the player.

    Blackjack pays 3:2 truncated toward zero, a regular win pays 1:1, a push
    returns the bet and a loss forfeits it.
    """
    if outcome is Outcome.PLAYER:
        return bet
    if outcome is Outcome.PLAYER_BLACKJACK:
        return math.trunc(bet * BLACKJACK_PAYOUT)
    if outcome is Outcome.DEALER:
        return -bet
    return 0


RESULT_MESSAGES = {
    Outcome.PLAYER: "You win!",
    Outcome.PLAYER_BLACKJACK: "Blackjack! You win!",
    Outcome.DEALER: "Dealer wins!",
    Outcome.PUSH: "Push! It's a tie!",
}


def result_message(outcome: Outcome, player_hand: Hand, dealer_hand: Hand) -> str:
    """Human-readable line announcing the result."""
    if player_hand.is_bust:
        return "Bust! You lose!"
    if dealer_hand.is_bust:
        return "Dealer busts! You win!"
    if outcome is Outcome.PUSH and player_hand.is_blackjack:
        return "Both have Blackjack! Push!"
    if outcome is Outcome.DEALER and dealer_hand.is_blackjack:
        return "Dealer has Blackjack! You lose!"
    return RESULT_MESSAGES[outcome]
