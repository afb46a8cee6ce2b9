"""
Command-line interface adapter for the countsharp engine.

This module renders engine snapshots as plain text for a terminal session.
"""

from typing import Any, Callable, Dict, Optional, Union
from enum import Enum

from countsharp.adapters.base import PlatformAdapter

# Events worth a line of their own; the rest show up in the next render
_ANNOUNCED_EVENTS = {
    "SHUFFLE": "*** Shuffling a new shoe ***",
    "PLAYER_TIMEOUT": "Time's up! Standing.",
}


def format_hand(hand: Dict[str, Any]) -> str:
    """Render a serialized hand such as ``"10♠ A♥ (21)"`` with hidden cards as ``??``."""
    cards = []
    for card in hand.get("cards", []):
        if not card.get("visible"):
            cards.append("??")
        else:
            cards.append(f"{card['rank']}{_SYMBOLS[card['suit']]}")
    if not cards:
        return "-"
    return f"{' '.join(cards)} ({hand.get('value', 0)})"


_SYMBOLS = {"hearts": "♥", "diamonds": "♦", "clubs": "♣", "spades": "♠"}


class CLIAdapter(PlatformAdapter):
    """
    Command-line interface adapter for the countsharp engine.

    This adapter writes to the console (or any ``output`` callable), providing
    a simple text-based view of the table.
    """

    def __init__(self, output: Optional[Callable[[str], None]] = None):
        """
        Initialize the CLI adapter.

        Args:
            output: Callable receiving each line of text. Defaults to ``print``.
        """
        self.output = output or print
        self._last_rendered = None

    async def render_game_state(self, state: Dict[str, Any]) -> None:
        """
        Render the current game state to the console.

        Timer ticks re-render the same table; only the countdown line is
        repeated for those.

        Args:
            state: The current game state
        """
        key = (
            state["stage"],
            state["message"],
            format_hand(state["dealer_hand"]),
            format_hand(state["player_hand"]),
            state["chip_pot"],
            state["current_bet"],
        )
        if key == self._last_rendered:
            if state.get("timer_active"):
                self.output(f"  {state['turn_time_left']}s left")
            return
        self._last_rendered = key

        self.output("\n=== Blackjack ===")
        self.output(f"Dealer: {format_hand(state['dealer_hand'])}")
        self.output(f"Player: {format_hand(state['player_hand'])}")
        self.output(
            f"Pot: {state['chip_pot']} | Bet: {state['current_bet']} | "
            f"Recommended: {state['recommended_bet']} | Shoe: {state['shoe_size']} cards"
        )

        settings = state.get("settings", {})
        if settings.get("show_card_counter"):
            counting = state["counting"]
            self.output(
                f"Running count: {counting['running_count']:+d} | "
                f"True count: {counting['true_count']:+.1f} ({counting['advantage']})"
            )
            if settings.get("show_detailed_counter"):
                remaining = " ".join(
                    f"{rank}:{count}" for rank, count in counting["remaining"].items()
                )
                self.output(f"Unseen: {remaining}")

        if state.get("timer_active"):
            self.output(f"Time left: {state['turn_time_left']}s")
        self.output(state["message"])
        self.output("=================")

    async def notify_game_event(
        self, event_type: Union[str, Enum], data: Dict[str, Any]
    ) -> None:
        """
        Print the few events that deserve their own line.

        Args:
            event_type: The type of event that occurred
            data: Data associated with the event
        """
        if isinstance(event_type, Enum):
            event_type = event_type.name
        line = _ANNOUNCED_EVENTS.get(event_type)
        if line:
            self.output(line)
