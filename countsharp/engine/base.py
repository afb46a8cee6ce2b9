"""
Base engine class for the countsharp framework.

This module provides the abstract base class for game engines. It holds the
pieces every engine shares: the platform adapter, the event bus and the
current immutable state.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Union

from countsharp.adapters import DummyAdapter, PlatformAdapter
from countsharp.events import EventBus, EventEmitter


class CountsharpEngine(ABC):
    """
    Abstract base class for game engines.

    Subclasses own the game state and expose player actions; this class
    takes care of fanning events out to the event bus and the adapter.
    """

    def __init__(
        self,
        adapter: Optional[PlatformAdapter] = None,
        event_bus: Optional[EventEmitter] = None,
    ):
        """
        Initialize the engine.

        Args:
            adapter: Platform adapter to render to. A silent DummyAdapter is
                     used when omitted.
            event_bus: Event emitter to publish on. Defaults to the global bus.
        """
        self.adapter = adapter or DummyAdapter()
        self.event_bus = event_bus or EventBus.get_instance()
        self.state = None

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the engine and prepare for a game.
        """
        await self.adapter.initialize()

    @abstractmethod
    async def shutdown(self) -> None:
        """
        Shut down the engine and clean up resources.
        """
        await self.adapter.shutdown()

    @abstractmethod
    def snapshot(self) -> Dict[str, Any]:
        """
        Return the serializable view of the current state.
        """

    async def render_state(self) -> None:
        """
        Render the current game state.
        """
        await self.adapter.render_game_state(self.snapshot())

    async def emit(self, event_type: Union[str, Enum], data: Dict[str, Any]) -> None:
        """
        Publish an event on the bus and forward it to the adapter.

        Args:
            event_type: The type of event
            data: Event payload
        """
        self.event_bus.emit(event_type, data)
        await self.adapter.notify_game_event(event_type, data)
