"""
Humanization intensity ladder.

Intensity controls how strongly the generator is asked to introduce
human-like imperfection. Levels are totally ordered and only ever move up
within a regeneration cycle.
"""
from __future__ import annotations

from enum import Enum
from typing import List

from app.core.exceptions import AlreadyMaximalError, ValidationError


class IntensityLevel(str, Enum):
    """Closed set of humanization intensities, ordered OFF < LIGHT < MEDIUM < HEAVY."""

    OFF = "off"
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, IntensityLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, IntensityLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, IntensityLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, IntensityLevel):
            return NotImplemented
        return self.rank >= other.rank

    @property
    def is_maximal(self) -> bool:
        return self is IntensityLevel.HEAVY

    @property
    def rate_description(self) -> str:
        """Short description of how many human touches this level aims for."""
        return _RATE_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value) -> "IntensityLevel":
        """
        Parse an intensity from a string (case-insensitive) or pass one through.

        Raises:
            ValidationError: If the value is not a known intensity
        """
        if isinstance(value, IntensityLevel):
            return value
        normalized = str(value).strip().lower() if value is not None else ""
        for level in _ORDER:
            if level.value == normalized:
                return level
        raise ValidationError(
            f"Invalid humanization intensity '{value}'. Valid values: {', '.join(l.value for l in _ORDER)}",
            field="intensity"
        )


_ORDER: List[IntensityLevel] = [
    IntensityLevel.OFF,
    IntensityLevel.LIGHT,
    IntensityLevel.MEDIUM,
    IntensityLevel.HEAVY,
]

_RATE_DESCRIPTIONS = {
    IntensityLevel.OFF: "No humanization",
    IntensityLevel.LIGHT: "0.5-1 touches per 100 words",
    IntensityLevel.MEDIUM: "1-2 touches per 100 words",
    IntensityLevel.HEAVY: "2-3 touches per 100 words",
}


def escalate(level: IntensityLevel) -> IntensityLevel:
    """
    Return the next higher intensity.

    Escalation path: off -> light -> medium -> heavy.

    Raises:
        AlreadyMaximalError: If the level is already HEAVY
    """
    if level.is_maximal:
        raise AlreadyMaximalError(level.value)
    return _ORDER[level.rank + 1]


def all_levels() -> List[IntensityLevel]:
    """All intensities in ascending order."""
    return list(_ORDER)
