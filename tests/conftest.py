"""
Pytest configuration for the countsharp test suite.

This module contains fixtures shared by every test package: a fresh event
bus per test and helpers for stacking a shoe in a known order.
"""

from dataclasses import replace

import pytest

from countsharp.blackjack.counting import init_counts
from countsharp.common.card import parse_card
from countsharp.common.shoe import Shoe
from countsharp.config import GameSettings, GameSpeed
from countsharp.events import EventBus
from countsharp.state import StateTransitionEngine

# Low cards that keep a dealer drawing without busting quickly
FILLER = ["2♣", "3♣", "4♣", "2♦", "3♦", "4♦", "2♥", "3♥", "4♥", "2♠", "3♠", "4♠"]


@pytest.fixture(scope="function", autouse=True)
def reset_event_bus():
    """Reset the event bus singleton before and after each test."""
    EventBus.reset()
    yield
    EventBus.reset()


def stacked_shoe(*labels):
    """A shoe that deals ``labels`` first, followed by filler cards."""
    return Shoe.from_cards([parse_card(label) for label in list(labels) + FILLER])


@pytest.fixture
def instant_settings():
    """Settings with no turn timer and no pause between cards."""
    return GameSettings(
        speed=GameSpeed.CUSTOM, custom_timer_length=0, custom_animation_speed=0
    )


@pytest.fixture
def stacked_round(instant_settings):
    """
    Build a state in the betting stage whose shoe deals the given cards.

    Cards are dealt player, dealer up, player, dealer hole, then in order.
    """

    def _make(*labels, bet=20, chip_pot=1000, settings=None):
        state = StateTransitionEngine.new_session(
            settings or instant_settings, chip_pot=chip_pot
        )
        state = replace(state, shoe=stacked_shoe(*labels), counting=init_counts(1))
        return StateTransitionEngine.place_bet(state, bet)

    return _make
