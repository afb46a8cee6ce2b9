"""
Event system for the countsharp engine.

The engine announces every state change on an `EventEmitter`. Front ends and
the session recorder subscribe to the events they care about; nothing they do
in a handler can reach back into the round being played.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger("countsharp.events")


class EngineEventType(Enum):
    """
    Event types emitted by the blackjack engine.

    Every committed state change is followed by UI_UPDATE_NEEDED carrying a
    full snapshot.
    """

    # Engine lifecycle
    ENGINE_INIT = "engine_init"
    ENGINE_SHUTDOWN = "engine_shutdown"

    # Round lifecycle
    ROUND_STARTED = "round_started"
    ROUND_ENDED = "round_ended"
    STAGE_CHANGED = "stage_changed"

    # Player events
    PLAYER_BET = "player_bet"
    PLAYER_ACTION = "player_action"
    PLAYER_TIMEOUT = "player_timeout"
    TURN_TIMER_TICK = "turn_timer_tick"

    # Cards
    CARD_DEALT = "card_dealt"
    CARD_REVEALED = "card_revealed"

    # Results
    HAND_BUSTED = "hand_busted"
    BLACKJACK = "blackjack"
    HAND_RESULT = "hand_result"
    DEALER_ACTION = "dealer_action"

    # Session
    BANKROLL_UPDATED = "bankroll_updated"
    STATS_UPDATED = "stats_updated"
    SETTINGS_CHANGED = "settings_changed"

    # Counting
    COUNT_UPDATED = "count_updated"
    SHUFFLE = "shuffle"

    # Problems
    ERROR = "error"
    WARNING = "warning"

    UI_UPDATE_NEEDED = "ui_update_needed"


EventKey = Union[EngineEventType, str]
Listener = Callable[[Dict[str, Any]], None]


def _event_type(event_type: EventKey) -> EngineEventType:
    if isinstance(event_type, EngineEventType):
        return event_type
    try:
        return EngineEventType[event_type]
    except KeyError:
        raise ValueError(f"Unknown event type: {event_type!r}") from None


class EventEmitter:
    """
    Synchronous publish/subscribe channel for engine events.

    Listeners run in subscription order. Once a game context is set, every
    payload carries the ``game_id`` and ``round_id`` it belongs to. A listener
    that raises is logged and skipped; the remaining listeners still run.
    """

    def __init__(self):
        self._listeners: Dict[EngineEventType, List[Listener]] = defaultdict(list)
        self._game_id: Optional[str] = None
        self._round_id: Optional[str] = None

    def set_context(self, game_id: str, round_id: Optional[str]) -> None:
        """
        Tag subsequent events with a game and round.

        Args:
            game_id: Identifier of the engine's session
            round_id: Identifier of the round being played, or None between rounds
        """
        self._game_id = game_id
        self._round_id = round_id

    def on(self, event_type: EventKey, callback: Listener) -> Callable[[], None]:
        """
        Subscribe to one event type.

        Args:
            event_type: An `EngineEventType` or its name
            callback: Called with the event payload

        Returns:
            A function that removes this subscription
        """
        key = _event_type(event_type)
        self._listeners[key].append(callback)

        def unsubscribe():
            listeners = self._listeners[key]
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def emit(self, event_type: EventKey, data: Dict[str, Any]) -> None:
        """Deliver ``data`` to every listener of ``event_type``."""
        key = _event_type(event_type)
        if self._game_id is not None:
            data = {"game_id": self._game_id, "round_id": self._round_id, **data}

        # Listeners may unsubscribe while being called
        for callback in list(self._listeners.get(key, ())):
            try:
                callback(data)
            except Exception:
                logger.exception(f"Error in {key.name} listener")

    def listener_count(self, event_type: Optional[EventKey] = None) -> int:
        if event_type is None:
            return sum(len(listeners) for listeners in self._listeners.values())
        return len(self._listeners.get(_event_type(event_type), ()))


class EventBus:
    """
    Process-wide default emitter.

    Engines built without an explicit emitter share this one.
    """

    _instance: Optional[EventEmitter] = None

    @classmethod
    def get_instance(cls) -> EventEmitter:
        if cls._instance is None:
            cls._instance = EventEmitter()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared emitter and all of its listeners."""
        cls._instance = None
