"""
State transition functions for the countsharp engine.

This module provides pure functions for moving a `RoundState` through the
round state machine:

    waiting -> betting -> dealing -> player-turn -> dealer-turn -> game-over
                                  \\-> game-over (naturals)       /
                                     player-turn -> game-over (bust)

Each method takes a state and returns a new state without modifying the
original. Actions that do not fit the current stage raise
`InvalidTransitionError` and invalid bets raise `InvalidBetError`; in both
cases the caller's state is untouched. No events are emitted here; the engine
announces changes after applying a transition.
"""

import random
import time
import uuid
from dataclasses import replace
from typing import Optional

from countsharp.blackjack.counting import init_counts, on_card_revealed
from countsharp.blackjack.hand import Hand, should_dealer_hit
from countsharp.blackjack.rules import determine_outcome, result_message, settle
from countsharp.blackjack.stats import GameStats
from countsharp.common.shoe import build_shoe
from countsharp.config import CHIP_DENOMINATIONS, DEFAULT_CHIP_POT, GameSettings
from countsharp.errors import InvalidBetError, InvalidTransitionError
from countsharp.state.models import RoundStage, RoundState

WELCOME_MESSAGE = "Welcome to Blackjack! Place a bet to start."
NEW_ROUND_MESSAGE = "Place a bet to start a new game."
PLAYER_TURN_MESSAGE = "Your turn! Hit or Stand?"

_BETTING_STAGES = (RoundStage.WAITING, RoundStage.BETTING)
IDLE_STAGES = (RoundStage.WAITING, RoundStage.BETTING, RoundStage.GAME_OVER)


def _next(state: RoundState, **changes) -> RoundState:
    return replace(state, timestamp=time.time(), **changes)


def _require(state: RoundState, action: str, *stages: RoundStage) -> None:
    if state.stage not in stages:
        raise InvalidTransitionError(action, state.stage)


class StateTransitionEngine:
    """
    Pure functions for state transitions.

    This class contains static methods that implement the round state machine.
    Each method takes a state and returns a new state, without modifying the
    original.
    """

    @staticmethod
    def new_session(
        settings: Optional[GameSettings] = None,
        chip_pot: int = DEFAULT_CHIP_POT,
        stats: Optional[GameStats] = None,
        rng: Optional[random.Random] = None,
    ) -> RoundState:
        """
        Create the state for a new session with a freshly shuffled shoe.

        Args:
            settings: Game settings (defaults when omitted)
            chip_pot: Starting chips, usually restored from storage
            stats: Cumulative statistics, usually restored from storage
            rng: Optional random source for the shuffle

        Returns:
            A state in the waiting stage
        """
        settings = settings or GameSettings()
        return RoundState(
            stage=RoundStage.WAITING,
            shoe=build_shoe(settings.num_decks, rng),
            shoe_number=1,
            counting=init_counts(settings.num_decks),
            settings=settings,
            stats=stats or GameStats(),
            chip_pot=chip_pot,
            message=WELCOME_MESSAGE,
        )

    @staticmethod
    def reshuffle(state: RoundState, rng: Optional[random.Random] = None) -> RoundState:
        """
        Replace the shoe with a freshly shuffled one and reset the count.

        Args:
            state: Current state
            rng: Optional random source for the shuffle

        Returns:
            New state with a full shoe, zero running count and every rank at
            its full number
        """
        num_decks = state.settings.num_decks
        return _next(
            state,
            shoe=build_shoe(num_decks, rng),
            shoe_number=state.shoe_number + 1,
            counting=init_counts(num_decks),
        )

    # Betting

    @staticmethod
    def place_bet(state: RoundState, amount: int) -> RoundState:
        """
        Set the wager for the next round.

        Args:
            state: Current state (waiting or betting)
            amount: Chips to wager, ``0 < amount <= chip_pot``

        Returns:
            New state in the betting stage
        """
        _require(state, "bet", *_BETTING_STAGES)
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidBetError(amount, state.chip_pot)
        if amount <= 0 or amount > state.chip_pot:
            raise InvalidBetError(amount, state.chip_pot)
        return _next(
            state,
            stage=RoundStage.BETTING,
            current_bet=amount,
            message=f"Bet: {amount}. Deal when ready.",
        )

    @staticmethod
    def add_chip(state: RoundState, denomination: int) -> RoundState:
        """Raise the current bet by one chip of the given denomination."""
        _require(state, "add chip", *_BETTING_STAGES)
        if denomination not in CHIP_DENOMINATIONS:
            raise InvalidBetError(denomination, state.chip_pot)
        return StateTransitionEngine.place_bet(state, state.current_bet + denomination)

    @staticmethod
    def remove_chip(state: RoundState, denomination: int) -> RoundState:
        """Lower the current bet by one chip; an empty bet returns to waiting."""
        _require(state, "remove chip", *_BETTING_STAGES)
        if denomination not in CHIP_DENOMINATIONS:
            raise InvalidBetError(denomination, state.chip_pot)
        remaining = max(0, state.current_bet - denomination)
        if remaining == 0:
            return StateTransitionEngine.clear_bet(state)
        return StateTransitionEngine.place_bet(state, remaining)

    @staticmethod
    def bet_recommended(state: RoundState) -> RoundState:
        """Bet the count-based recommendation, clamped to the table minimum and the pot."""
        _require(state, "bet recommended", *_BETTING_STAGES)
        amount = min(max(state.recommended_bet, state.settings.min_bet), state.chip_pot)
        return StateTransitionEngine.place_bet(state, amount)

    @staticmethod
    def clear_bet(state: RoundState) -> RoundState:
        _require(state, "clear bet", *_BETTING_STAGES)
        return _next(
            state, stage=RoundStage.WAITING, current_bet=0, message=NEW_ROUND_MESSAGE
        )

    # Dealing

    @staticmethod
    def begin_deal(state: RoundState, rng: Optional[random.Random] = None) -> RoundState:
        """
        Enter the dealing stage with empty hands.

        The shoe is rebuilt and the count reset first when the shoe has passed
        the reshuffle point; ``shoe_number`` changes when that happens.

        Args:
            state: Current state (betting, with a bet placed)
            rng: Optional random source for a reshuffle

        Returns:
            New state in the dealing stage
        """
        _require(state, "deal", RoundStage.BETTING)
        if state.current_bet <= 0 or state.current_bet > state.chip_pot:
            raise InvalidBetError(state.current_bet, state.chip_pot)

        message = "Dealing cards..."
        if state.shoe.needs_reshuffle():
            state = StateTransitionEngine.reshuffle(state, rng)
            message = "Shuffling new deck..."

        return _next(
            state,
            id=str(uuid.uuid4()),
            stage=RoundStage.DEALING,
            player_hand=Hand(),
            dealer_hand=Hand(),
            turn_time_left=0,
            outcome=None,
            chip_delta=0,
            settled=False,
            round_number=state.round_number + 1,
            message=message,
        )

    @staticmethod
    def deal_card(
        state: RoundState, to_dealer: bool = False, visible: bool = True
    ) -> RoundState:
        """
        Draw the next card from the shoe into one of the hands.

        A face-up card is counted immediately; a face-down card is counted
        when it is revealed.

        Raises:
            EmptyShoeError: If the shoe is exhausted
        """
        card, shoe = state.shoe.draw(visible)
        counting = on_card_revealed(state.counting, card) if visible else state.counting
        if to_dealer:
            return _next(
                state,
                shoe=shoe,
                counting=counting,
                dealer_hand=state.dealer_hand.add_card(card),
            )
        return _next(
            state,
            shoe=shoe,
            counting=counting,
            player_hand=state.player_hand.add_card(card),
        )

    @staticmethod
    def deal_initial_cards(state: RoundState) -> RoundState:
        """
        Deal the opening four cards and resolve naturals.

        The engine deals card by card to pace the animation; this is the same
        sequence without pauses.
        """
        _require(state, "deal", RoundStage.DEALING)
        for to_dealer, visible in INITIAL_DEAL_ORDER:
            state = StateTransitionEngine.deal_card(state, to_dealer, visible)
        return StateTransitionEngine.finish_deal(state)

    @staticmethod
    def finish_deal(state: RoundState) -> RoundState:
        """
        Close the dealing stage.

        A blackjack on either side ends the round at once; otherwise the
        player's turn starts with the timer at its full length.
        """
        _require(state, "finish deal", RoundStage.DEALING)
        if state.player_hand.is_blackjack or state.dealer_hand.is_blackjack:
            return StateTransitionEngine._settle(state)
        return _next(
            state,
            stage=RoundStage.PLAYER_TURN,
            turn_time_left=state.settings.timer_length,
            message=PLAYER_TURN_MESSAGE,
        )

    # Player turn

    @staticmethod
    def hit(state: RoundState) -> RoundState:
        """
        Draw a face-up card for the player.

        A bust ends the round; otherwise the timer starts over.
        """
        _require(state, "hit", RoundStage.PLAYER_TURN)
        state = StateTransitionEngine.deal_card(state, to_dealer=False, visible=True)
        if state.player_hand.is_bust:
            return StateTransitionEngine._settle(state)
        return _next(
            state,
            turn_time_left=state.settings.timer_length,
            message=PLAYER_TURN_MESSAGE,
        )

    @staticmethod
    def stand(state: RoundState) -> RoundState:
        """End the player's turn and hand over to the dealer."""
        _require(state, "stand", RoundStage.PLAYER_TURN)
        return _next(
            state,
            stage=RoundStage.DEALER_TURN,
            turn_time_left=0,
            message="Dealer playing...",
        )

    @staticmethod
    def tick(state: RoundState) -> RoundState:
        """
        Advance the turn timer by one second.

        Reaching zero does not stand by itself; the caller applies the
        implicit stand so it can be announced as a timeout.
        """
        _require(state, "tick", RoundStage.PLAYER_TURN)
        if not state.timer_active or state.turn_time_left <= 0:
            return state
        return _next(state, turn_time_left=state.turn_time_left - 1)

    # Dealer turn

    @staticmethod
    def reveal_hole_card(state: RoundState) -> RoundState:
        """Turn the dealer's face-down cards over and count them."""
        counting = state.counting
        for card in state.dealer_hand.hidden_cards:
            counting = on_card_revealed(counting, card)
        return _next(state, dealer_hand=state.dealer_hand.reveal_all(), counting=counting)

    @staticmethod
    def dealer_hit(state: RoundState) -> RoundState:
        """Draw one face-up card for the dealer."""
        _require(state, "dealer hit", RoundStage.DEALER_TURN)
        if state.dealer_hand.has_hidden_cards:
            raise InvalidTransitionError(
                "dealer hit", state.stage, "The hole card must be revealed first"
            )
        return StateTransitionEngine.deal_card(state, to_dealer=True, visible=True)

    @staticmethod
    def finish_dealer_turn(state: RoundState) -> RoundState:
        _require(state, "finish dealer turn", RoundStage.DEALER_TURN)
        return StateTransitionEngine._settle(state)

    @staticmethod
    def play_dealer(state: RoundState) -> RoundState:
        """
        Play out the whole dealer turn without pauses.

        Reveals the hole card, draws while the dealer must hit, then settles.
        """
        _require(state, "dealer turn", RoundStage.DEALER_TURN)
        state = StateTransitionEngine.reveal_hole_card(state)
        while should_dealer_hit(state.dealer_hand):
            state = StateTransitionEngine.dealer_hit(state)
        return StateTransitionEngine.finish_dealer_turn(state)

    # Settlement

    @staticmethod
    def _settle(state: RoundState) -> RoundState:
        if state.settled:
            raise InvalidTransitionError(
                "settle", state.stage, "The round has already been settled"
            )
        outcome = determine_outcome(state.player_hand, state.dealer_hand)
        delta = settle(state.current_bet, outcome)
        return _next(
            state,
            stage=RoundStage.GAME_OVER,
            outcome=outcome,
            chip_delta=delta,
            chip_pot=state.chip_pot + delta,
            stats=state.stats.record(outcome, state.player_hand, delta),
            settled=True,
            turn_time_left=0,
            message=result_message(outcome, state.player_hand, state.dealer_hand),
        )

    @staticmethod
    def new_round(state: RoundState) -> RoundState:
        """
        Clear the table after a settled round.

        Chip pot, statistics, shoe and count carry over.
        """
        _require(state, "new round", RoundStage.GAME_OVER)
        return _next(
            state,
            stage=RoundStage.WAITING,
            player_hand=Hand(),
            dealer_hand=Hand(),
            current_bet=0,
            turn_time_left=0,
            outcome=None,
            chip_delta=0,
            settled=False,
            message=NEW_ROUND_MESSAGE,
        )

    # Session management

    @staticmethod
    def update_settings(
        state: RoundState, settings: GameSettings, rng: Optional[random.Random] = None
    ) -> RoundState:
        """
        Apply new settings between hands.

        Changing the number of decks rebuilds the shoe and resets the count
        at once.
        """
        _require(state, "update settings", *IDLE_STAGES)
        previous = state.settings
        state = _next(state, settings=settings)
        if settings.num_decks != previous.num_decks:
            state = StateTransitionEngine.reshuffle(state, rng)
        return state

    @staticmethod
    def restore_session(
        state: RoundState,
        settings: GameSettings,
        chip_pot: int,
        stats: GameStats,
        rng: Optional[random.Random] = None,
    ) -> RoundState:
        """
        Replace settings, bankroll and statistics between hands.

        A pending bet is dropped. The shoe is rebuilt when the deck count
        changes.
        """
        _require(state, "restore session", *IDLE_STAGES)
        state = StateTransitionEngine.update_settings(state, settings, rng)
        if state.stage is RoundStage.BETTING:
            state = _next(
                state,
                stage=RoundStage.WAITING,
                current_bet=0,
                message=NEW_ROUND_MESSAGE,
            )
        return _next(state, chip_pot=chip_pot, stats=stats)

    @staticmethod
    def reset_stats(state: RoundState) -> RoundState:
        return _next(state, stats=GameStats())

    @staticmethod
    def reset_chip_pot(state: RoundState, chip_pot: int = DEFAULT_CHIP_POT) -> RoundState:
        """
        Restore the bankroll to its starting amount between hands.

        A pending bet the new pot cannot cover is cleared.
        """
        _require(state, "reset chip pot", *IDLE_STAGES)
        if state.stage is RoundStage.BETTING and state.current_bet > chip_pot:
            return _next(
                state,
                chip_pot=chip_pot,
                stage=RoundStage.WAITING,
                current_bet=0,
                message=NEW_ROUND_MESSAGE,
            )
        return _next(state, chip_pot=chip_pot)


# (to_dealer, visible) for the opening deal: player, dealer up, player, dealer hole
INITIAL_DEAL_ORDER = (
    (False, True),
    (True, True),
    (False, True),
    (True, False),
)
