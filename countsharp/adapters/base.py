"""
Base adapter interface for the countsharp engine.

This module defines the interface that platform-specific adapters must implement
to show the table to a player.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Union
from enum import Enum


class PlatformAdapter(ABC):
    """
    Base interface for platform-specific adapters.

    The engine calls `render_game_state` with a full snapshot after every
    transition and `notify_game_event` for each event it emits. Adapters only
    present the game; player input goes through the engine's action methods.
    """

    @abstractmethod
    async def render_game_state(self, state: Dict[str, Any]) -> None:
        """
        Render the current game state to the platform.

        Args:
            state: Snapshot produced by ``RoundState.to_dict``
        """
        pass

    @abstractmethod
    async def notify_game_event(
        self, event_type: Union[str, Enum], data: Dict[str, Any]
    ) -> None:
        """
        Notify the platform of a game event.

        Args:
            event_type: The type of event that occurred
            data: Data associated with the event
        """
        pass

    # The following methods have default implementations but can be overridden

    async def initialize(self) -> None:
        """
        Initialize the adapter.

        This method is called when the adapter is first connected to the engine.
        """
        pass

    async def shutdown(self) -> None:
        """
        Shutdown the adapter.

        This method is called when the engine shuts down.
        """
        pass
