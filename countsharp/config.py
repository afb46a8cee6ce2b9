"""
Game settings for the countsharp engine.

Settings are an immutable dataclass with documented defaults. Stored or
user-supplied dictionaries go through `GameSettings.from_dict`, which checks
every known key and ignores unknown ones.

Defaults:
    speed                  medium
    num_decks              1 (1-8)
    show_card_counter      False
    show_detailed_counter  False
    custom_timer_length    10 seconds (used by the custom speed; 0 = untimed)
    custom_animation_speed 500 ms (used by the custom speed)
    sound_enabled          True
    base_bet               10 (unit for the recommended bet)
    min_bet                5 (floor when betting the recommendation)
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, NamedTuple

from countsharp.errors import ConfigurationError

MIN_DECKS = 1
MAX_DECKS = 8
DEFAULT_CHIP_POT = 1000
CHIP_DENOMINATIONS = (5, 10, 25, 50, 100)


class GameSpeed(Enum):
    BEGINNER = "beginner"
    MEDIUM = "medium"
    FAST = "fast"
    SLOW = "slow"
    CUSTOM = "custom"


class SpeedProfile(NamedTuple):
    """Turn timer length in seconds (0 = untimed) and pause between cards in ms."""

    timer_length: int
    animation_speed: int


SPEED_PROFILES = {
    GameSpeed.BEGINNER: SpeedProfile(0, 800),
    GameSpeed.MEDIUM: SpeedProfile(10, 500),
    GameSpeed.FAST: SpeedProfile(3, 200),
    GameSpeed.SLOW: SpeedProfile(0, 1000),
}


@dataclass(frozen=True)
class GameSettings:
    speed: GameSpeed = GameSpeed.MEDIUM
    num_decks: int = 1
    show_card_counter: bool = False
    show_detailed_counter: bool = False
    custom_timer_length: int = 10
    custom_animation_speed: int = 500
    sound_enabled: bool = True
    base_bet: int = 10
    min_bet: int = 5

    def __post_init__(self):
        if not isinstance(self.speed, GameSpeed):
            raise ConfigurationError(f"Invalid speed: {self.speed!r}")
        _check_int("num_decks", self.num_decks, MIN_DECKS, MAX_DECKS)
        _check_int("custom_timer_length", self.custom_timer_length, 0)
        _check_int("custom_animation_speed", self.custom_animation_speed, 0)
        _check_int("base_bet", self.base_bet, 1)
        _check_int("min_bet", self.min_bet, 1)
        for name in ("show_card_counter", "show_detailed_counter", "sound_enabled"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(f"{name} must be a boolean")

    @property
    def profile(self) -> SpeedProfile:
        """Timer and animation pacing for the selected speed."""
        if self.speed is GameSpeed.CUSTOM:
            return SpeedProfile(self.custom_timer_length, self.custom_animation_speed)
        return SPEED_PROFILES[self.speed]

    @property
    def timer_length(self) -> int:
        # slow play is never timed, whatever the custom length says
        if self.speed is GameSpeed.SLOW:
            return 0
        return self.profile.timer_length

    @property
    def animation_speed(self) -> int:
        return self.profile.animation_speed

    def merge(self, **changes) -> "GameSettings":
        """
        Return settings with the given fields replaced.

        :raises ConfigurationError: If a field is unknown or a value is invalid
        """
        unknown = sorted(set(changes) - {f.name for f in fields(self)})
        if unknown:
            raise ConfigurationError(f"Unknown setting: {', '.join(unknown)}")
        if "speed" in changes and not isinstance(changes["speed"], GameSpeed):
            changes["speed"] = _parse_speed(changes["speed"])
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["speed"] = self.speed.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameSettings":
        """
        Build settings from a plain dictionary.

        Missing keys keep their defaults and unknown keys are ignored.

        :raises ConfigurationError: If a known key holds an invalid value
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Settings must be a mapping")
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        if "speed" in values:
            values["speed"] = _parse_speed(values["speed"])
        return cls(**values)


def _parse_speed(value) -> GameSpeed:
    if isinstance(value, GameSpeed):
        return value
    try:
        return GameSpeed(value)
    except ValueError:
        raise ConfigurationError(f"Unknown speed: {value!r}") from None


def _check_int(name: str, value, minimum: int, maximum: int = None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ConfigurationError(f"{name} must be {bounds}, got {value}")
