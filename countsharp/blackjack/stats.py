"""
This module contains the GameStats class which is responsible for
tracking the cumulative results of a playing session.
"""

from dataclasses import asdict, dataclass, fields, replace

from countsharp.blackjack.hand import Hand
from countsharp.blackjack.rules import Outcome


@dataclass(frozen=True)
class GameStats:
    """
    Cumulative session statistics. Counters only grow until an explicit reset.
    """

    wins: int = 0
    losses: int = 0
    pushes: int = 0
    blackjacks: int = 0
    busts: int = 0
    total_chips_won: int = 0
    total_chips_lost: int = 0

    def record(self, outcome: Outcome, player_hand: Hand, chip_delta: int) -> "GameStats":
        """Return the statistics updated with one settled round."""
        won = outcome.player_won
        return replace(
            self,
            wins=self.wins + (1 if won else 0),
            losses=self.losses + (1 if outcome is Outcome.DEALER else 0),
            pushes=self.pushes + (1 if outcome is Outcome.PUSH else 0),
            blackjacks=self.blackjacks
            + (1 if outcome is Outcome.PLAYER_BLACKJACK else 0),
            busts=self.busts + (1 if player_hand.is_bust else 0),
            total_chips_won=self.total_chips_won + max(chip_delta, 0),
            total_chips_lost=self.total_chips_lost + max(-chip_delta, 0),
        )

    @property
    def games_played(self) -> int:
        return self.wins + self.losses + self.pushes

    @property
    def net_chips(self) -> int:
        return self.total_chips_won - self.total_chips_lost

    def report(self) -> dict:
        """
        Returns a dictionary containing the current statistics.
        """
        data = asdict(self)
        data["games_played"] = self.games_played
        data["net_chips"] = self.net_chips
        return data

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "GameStats":
        """
        Build statistics from stored data.

        Unknown keys are ignored and missing ones take their defaults.

        :raises ValueError: If a counter is not a non-negative integer
        """
        values = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"Invalid value for {f.name}: {value!r}")
            values[f.name] = value
        return cls(**values)
