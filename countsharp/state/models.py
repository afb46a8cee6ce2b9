"""
Immutable state models for the countsharp engine.

`RoundState` holds everything the round state machine owns: the shoe, both
hands, the counting state, the bankroll and the session statistics. It is
never modified in place; transition functions build new instances with
`dataclasses.replace`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import time
import uuid

from countsharp.blackjack.counting import (
    CountingState,
    count_advantage,
    decks_remaining,
    init_counts,
    recommended_bet,
    true_count,
)
from countsharp.blackjack.hand import Hand
from countsharp.blackjack.rules import Outcome
from countsharp.blackjack.stats import GameStats
from countsharp.common.shoe import Shoe
from countsharp.config import DEFAULT_CHIP_POT, GameSettings


class RoundStage(Enum):
    """
    Stages of a blackjack round.
    """

    WAITING = "waiting"
    BETTING = "betting"
    DEALING = "dealing"
    PLAYER_TURN = "player-turn"
    DEALER_TURN = "dealer-turn"
    GAME_OVER = "game-over"

    @property
    def hand_in_progress(self) -> bool:
        """Whether cards are on the table for an unsettled round."""
        return self in (
            RoundStage.DEALING,
            RoundStage.PLAYER_TURN,
            RoundStage.DEALER_TURN,
        )


@dataclass(frozen=True)
class RoundState:
    """
    Immutable representation of the table.

    Attributes:
        id: Unique identifier for the current round
        stage: Current stage of the round
        shoe: Cards left to deal
        shoe_number: Incremented every time the shoe is rebuilt
        player_hand: The player's hand for this round
        dealer_hand: The dealer's hand for this round
        counting: Hi-Lo counting state since the last shuffle
        settings: Active game settings
        stats: Cumulative session statistics
        chip_pot: Chips the player owns (bets are settled into it)
        current_bet: Chips wagered on the current round
        turn_time_left: Seconds left on the turn timer (0 when untimed)
        message: Human-readable status line
        outcome: Result once the round is settled
        chip_delta: Chips won (positive) or lost (negative) by the settlement
        settled: Whether the round has been settled
        round_number: Number of rounds dealt this session
        timestamp: Time when this state was created
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    stage: RoundStage = RoundStage.WAITING
    shoe: Shoe = field(default_factory=Shoe)
    shoe_number: int = 0
    player_hand: Hand = field(default_factory=Hand)
    dealer_hand: Hand = field(default_factory=Hand)
    counting: CountingState = field(default_factory=lambda: init_counts(1))
    settings: GameSettings = field(default_factory=GameSettings)
    stats: GameStats = field(default_factory=GameStats)
    chip_pot: int = DEFAULT_CHIP_POT
    current_bet: int = 0
    turn_time_left: int = 0
    message: str = ""
    outcome: Optional[Outcome] = None
    chip_delta: int = 0
    settled: bool = False
    round_number: int = 0
    timestamp: float = field(default_factory=time.time)

    @property
    def decks_remaining(self) -> float:
        return decks_remaining(self.shoe.size)

    @property
    def true_count(self) -> float:
        return true_count(self.counting.running_count, self.decks_remaining)

    @property
    def recommended_bet(self) -> int:
        return recommended_bet(self.true_count, self.settings.base_bet)

    @property
    def timer_active(self) -> bool:
        return self.stage is RoundStage.PLAYER_TURN and self.settings.timer_length > 0

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the round state to the snapshot handed to collaborators.

        Face-down cards are masked, so the snapshot never leaks the hole card.
        """
        true_count_value = self.true_count
        return {
            "id": self.id,
            "stage": self.stage.value,
            "round_number": self.round_number,
            "message": self.message,
            "player_hand": self.player_hand.to_dict(),
            "dealer_hand": self.dealer_hand.to_dict(),
            "shoe_size": self.shoe.size,
            "shoe_original_size": self.shoe.original_size,
            "counting": {
                **self.counting.to_dict(),
                "true_count": round(true_count_value, 2),
                "decks_remaining": round(self.decks_remaining, 2),
                "advantage": count_advantage(round(true_count_value, 1)),
            },
            "chip_pot": self.chip_pot,
            "current_bet": self.current_bet,
            "recommended_bet": self.recommended_bet,
            "turn_time_left": self.turn_time_left,
            "timer_active": self.timer_active,
            "outcome": self.outcome.value if self.outcome else None,
            "chip_delta": self.chip_delta,
            "stats": self.stats.report(),
            "settings": self.settings.to_dict(),
            "timestamp": self.timestamp,
        }
