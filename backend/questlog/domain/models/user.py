import math
from dataclasses import dataclass, replace
from numbers import Number
from typing import Any


LEVEL_XP_STEP = 100


def level_for(xp: int) -> int:
    """Level 1 below 100 XP, then floor(sqrt(xp / 100)) + 1."""
    if xp < LEVEL_XP_STEP:
        return 1
    return int(math.floor(math.sqrt(xp / LEVEL_XP_STEP))) + 1


def xp_for_level(level: int) -> int:
    if level <= 1:
        return 0
    return ((level - 1) ** 2) * LEVEL_XP_STEP


def coerce_number(value: Any, default: int) -> int:
    """
    Loose numeric boundary: missing, null, zero and non-numeric values fall
    back to `default`, numeric strings are parsed and rounded.
    Infinity has no integer form and raises ValueError.
    """
    if isinstance(value, bool):
        return int(value) or default
    if isinstance(value, Number):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number):
        return default
    if math.isinf(number):
        raise ValueError(f"Not a finite number: {value!r}")
    return int(round(number)) or default


@dataclass(frozen=True)
class UserProgress:
    xp: int = 0
    level: int = 1
    tasks_completed: int = 0

    def apply(self, xp_delta: int = 0, completed_delta: int = 0) -> "UserProgress":
        # level follows xp only when xp moved; a stored level is kept otherwise
        xp = max(0, self.xp + xp_delta)
        return replace(
            self,
            xp=xp,
            level=level_for(xp) if xp != self.xp else self.level,
            tasks_completed=max(0, self.tasks_completed + completed_delta),
        )

    def xp_to_next_level(self) -> int:
        return max(0, xp_for_level(self.level + 1) - self.xp)
