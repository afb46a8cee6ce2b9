"""
Session persistence: settings, statistics and chip pot.

`SessionRepository` reads and writes the three session values through a
`KeyValueStore`. Loading never fails: a missing, unreadable or malformed
value is logged and replaced by its default. `SessionRecorder` wires the
repository to the engine's event bus so every change is written back.
"""

import datetime
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from countsharp.blackjack.stats import GameStats
from countsharp.config import DEFAULT_CHIP_POT, GameSettings
from countsharp.errors import PersistenceError
from countsharp.events import EngineEventType, EventEmitter
from countsharp.storage.store import KeyValueStore

logger = logging.getLogger("countsharp.storage")

SETTINGS_KEY = "blackjack-game-settings"
STATS_KEY = "blackjack-game-stats"
CHIP_POT_KEY = "blackjack-chip-pot"

EXPORT_VERSION = "2.0"


class SessionRepository:
    """
    Load and save the persistent parts of a session.

    Save failures are logged and swallowed so gameplay never depends on the
    store; `export_data`/`import_data` move a whole session as JSON.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    # Generic helpers

    def _load_json(self, key: str) -> Optional[Any]:
        try:
            raw = self.store.get(key)
        except PersistenceError as e:
            logger.warning(f"Failed to load {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt {key}: {e}")
            return None

    def _save(self, key: str, value: str) -> bool:
        try:
            self.store.set(key, value)
        except PersistenceError as e:
            logger.warning(f"Failed to save {key}: {e}")
            return False
        return True

    def _delete(self, key: str) -> bool:
        try:
            self.store.delete(key)
        except PersistenceError as e:
            logger.warning(f"Failed to reset {key}: {e}")
            return False
        return True

    # Settings

    def load_settings(self) -> GameSettings:
        data = self._load_json(SETTINGS_KEY)
        if data is None:
            return GameSettings()
        try:
            return GameSettings.from_dict(data)
        except ValueError as e:
            logger.warning(f"Stored settings are invalid, using defaults: {e}")
            return GameSettings()

    def save_settings(self, settings: GameSettings) -> bool:
        return self._save(SETTINGS_KEY, json.dumps(settings.to_dict()))

    # Statistics

    def load_stats(self) -> GameStats:
        data = self._load_json(STATS_KEY)
        if data is None:
            return GameStats()
        if not isinstance(data, dict):
            logger.warning("Stored stats are not a mapping, using defaults")
            return GameStats()
        try:
            return GameStats.from_dict(data)
        except ValueError as e:
            logger.warning(f"Stored stats are invalid, using defaults: {e}")
            return GameStats()

    def save_stats(self, stats: GameStats) -> bool:
        return self._save(STATS_KEY, json.dumps(stats.to_dict()))

    def reset_stats(self) -> bool:
        return self._delete(STATS_KEY)

    # Chip pot

    def load_chip_pot(self) -> int:
        try:
            raw = self.store.get(CHIP_POT_KEY)
        except PersistenceError as e:
            logger.warning(f"Failed to load chip pot: {e}")
            return DEFAULT_CHIP_POT
        if raw is None:
            return DEFAULT_CHIP_POT
        try:
            chip_pot = int(raw)
        except ValueError:
            logger.warning(f"Ignoring corrupt chip pot {raw!r}")
            return DEFAULT_CHIP_POT
        return chip_pot if chip_pot >= 0 else DEFAULT_CHIP_POT

    def save_chip_pot(self, chip_pot: int) -> bool:
        return self._save(CHIP_POT_KEY, str(int(chip_pot)))

    def reset_chip_pot(self) -> bool:
        return self._delete(CHIP_POT_KEY)

    def reset_all(self) -> bool:
        results = [self._delete(key) for key in (SETTINGS_KEY, STATS_KEY, CHIP_POT_KEY)]
        return all(results)

    # Export / import

    def export_data(self) -> str:
        """Serialize the stored session as an indented JSON document."""
        game_data = {
            "settings": self.load_settings().to_dict(),
            "stats": self.load_stats().to_dict(),
            "chipPot": self.load_chip_pot(),
            "exportDate": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
        }
        return json.dumps(game_data, indent=2)

    def import_data(self, json_data: str) -> bool:
        """
        Restore a session exported with `export_data`.

        Each section is validated before anything is written; a document
        that is not valid JSON, or holds invalid settings or stats, is
        rejected as a whole.

        Returns:
            True if the data was imported
        """
        try:
            game_data = json.loads(json_data)
            if not isinstance(game_data, dict):
                raise ValueError("Export must be a JSON object")
            settings = stats = chip_pot = None
            if game_data.get("settings") is not None:
                settings = GameSettings.from_dict(game_data["settings"])
            if game_data.get("stats") is not None:
                stats = GameStats.from_dict(game_data["stats"])
            raw_pot = game_data.get("chipPot")
            if isinstance(raw_pot, int) and not isinstance(raw_pot, bool) and raw_pot >= 0:
                chip_pot = raw_pot
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to import game data: {e}")
            return False

        ok = True
        if settings is not None:
            ok = self.save_settings(settings) and ok
        if stats is not None:
            ok = self.save_stats(stats) and ok
        if chip_pot is not None:
            ok = self.save_chip_pot(chip_pot) and ok
        return ok


class SessionRecorder:
    """
    Write session changes back to the repository as the engine announces them.

    Subscribes to STATS_UPDATED, BANKROLL_UPDATED and SETTINGS_CHANGED. The
    handlers run inside the event bus and never raise into the engine.
    """

    def __init__(self, repository: SessionRepository, event_bus: EventEmitter):
        self.repository = repository
        self.event_bus = event_bus
        self._unsubscribers: List[Callable] = []

    def attach(self) -> None:
        if self._unsubscribers:
            return
        handlers: Dict[EngineEventType, Callable] = {
            EngineEventType.STATS_UPDATED: self._on_stats,
            EngineEventType.BANKROLL_UPDATED: self._on_bankroll,
            EngineEventType.SETTINGS_CHANGED: self._on_settings,
        }
        for event_type, handler in handlers.items():
            self._unsubscribers.append(self.event_bus.on(event_type, handler))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_stats(self, data: Dict[str, Any]) -> None:
        self.repository.save_stats(GameStats.from_dict(data["stats"]))

    def _on_bankroll(self, data: Dict[str, Any]) -> None:
        self.repository.save_chip_pot(data["chip_pot"])

    def _on_settings(self, data: Dict[str, Any]) -> None:
        self.repository.save_settings(GameSettings.from_dict(data["settings"]))
