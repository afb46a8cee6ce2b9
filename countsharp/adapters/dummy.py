"""
Dummy adapter for the countsharp engine, used for testing and simulation.

This module provides a non-interactive adapter that keeps everything the
engine sends it for later inspection.
"""

from typing import Any, Dict, List, Tuple, Union
from enum import Enum

from countsharp.adapters.base import PlatformAdapter


class DummyAdapter(PlatformAdapter):
    """
    Dummy adapter for testing and simulation.

    This adapter doesn't interact with any real platform. Rendered snapshots
    and notified events are recorded in order.
    """

    def __init__(self, verbose: bool = False):
        """
        Initialize the dummy adapter.

        Args:
            verbose: Whether to print events to stdout (useful for debugging)
        """
        self.verbose = verbose
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.rendered_states: List[Dict[str, Any]] = []
        self.initialized = False
        self.shut_down = False

    async def initialize(self) -> None:
        self.initialized = True

    async def shutdown(self) -> None:
        self.shut_down = True

    async def render_game_state(self, state: Dict[str, Any]) -> None:
        """
        Store the game state for later inspection.

        Args:
            state: The current game state
        """
        self.rendered_states.append(state)

        if self.verbose:
            print(f"[{state['stage']}] {state['message']}")

    async def notify_game_event(
        self, event_type: Union[str, Enum], data: Dict[str, Any]
    ) -> None:
        """
        Store the event for later inspection.

        Args:
            event_type: The type of event
            data: Event data
        """
        if isinstance(event_type, Enum):
            event_type = event_type.name
        self.events.append((event_type, data))

        if self.verbose:
            print(f"Event: {event_type}")

    def event_types(self) -> List[str]:
        return [event_type for event_type, _ in self.events]

    @property
    def last_state(self) -> Dict[str, Any]:
        return self.rendered_states[-1] if self.rendered_states else {}
