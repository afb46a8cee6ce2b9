"""
Tests for outcome precedence, payouts and result messages.
"""

import pytest

from countsharp.blackjack.hand import Hand
from countsharp.blackjack.rules import (
    Outcome,
    determine_outcome,
    result_message,
    settle,
)
from countsharp.common.card import parse_card


def make_hand(*labels):
    return Hand(tuple(parse_card(label) for label in labels))


def test_player_bust_loses_even_if_dealer_busts():
    player = make_hand("10♠", "8♦", "5♣")
    dealer = make_hand("10♥", "6♣", "K♦")
    assert determine_outcome(player, dealer) is Outcome.DEALER
    assert result_message(Outcome.DEALER, player, dealer) == "Bust! You lose!"


def test_dealer_bust():
    player = make_hand("10♠", "2♦")
    dealer = make_hand("10♥", "6♣", "K♦")
    assert determine_outcome(player, dealer) is Outcome.PLAYER
    assert result_message(Outcome.PLAYER, player, dealer) == "Dealer busts! You win!"


def test_player_blackjack():
    player = make_hand("10♠", "A♥")
    dealer = make_hand("10♥", "Q♣")
    assert determine_outcome(player, dealer) is Outcome.PLAYER_BLACKJACK
    assert result_message(Outcome.PLAYER_BLACKJACK, player, dealer) == "Blackjack! You win!"


def test_dealer_blackjack_beats_three_card_21():
    player = make_hand("7♠", "7♥", "7♦")
    dealer = make_hand("A♥", "K♣")
    assert determine_outcome(player, dealer) is Outcome.DEALER
    assert result_message(Outcome.DEALER, player, dealer) == "Dealer has Blackjack! You lose!"


def test_both_blackjack_push():
    player = make_hand("A♠", "K♦")
    dealer = make_hand("A♥", "Q♣")
    assert determine_outcome(player, dealer) is Outcome.PUSH
    assert result_message(Outcome.PUSH, player, dealer) == "Both have Blackjack! Push!"


@pytest.mark.parametrize(
    "player, dealer, outcome",
    [
        (("10♠", "9♦"), ("10♥", "8♣"), Outcome.PLAYER),
        (("10♠", "7♦"), ("10♥", "8♣"), Outcome.DEALER),
        (("10♠", "8♦"), ("10♥", "8♣"), Outcome.PUSH),
    ],
)
def test_higher_total_wins(player, dealer, outcome):
    assert determine_outcome(make_hand(*player), make_hand(*dealer)) is outcome


@pytest.mark.parametrize(
    "bet, outcome, delta",
    [
        (20, Outcome.PLAYER_BLACKJACK, 30),
        (15, Outcome.PLAYER_BLACKJACK, 22),
        (1, Outcome.PLAYER_BLACKJACK, 1),
        (20, Outcome.PLAYER, 20),
        (20, Outcome.DEALER, -20),
        (20, Outcome.PUSH, 0),
    ],
)
def test_settle(bet, outcome, delta):
    assert settle(bet, outcome) == delta


def test_plain_messages():
    player = make_hand("10♠", "8♦")
    dealer = make_hand("10♥", "8♣")
    assert result_message(Outcome.PUSH, player, dealer) == "Push! It's a tie!"
    assert result_message(Outcome.DEALER, player, make_hand("10♥", "9♣")) == "Dealer wins!"
    assert result_message(Outcome.PLAYER, make_hand("10♠", "9♦"), dealer) == "You win!"


def test_player_won():
    assert Outcome.PLAYER.player_won
    assert Outcome.PLAYER_BLACKJACK.player_won
    assert not Outcome.DEALER.player_won
    assert not Outcome.PUSH.player_won
