"""Ordinal scales for mood and stress, with their numeric valuation."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Union

from serene.domains.wellness.domain_logic.errors import UnknownCategoryError


class Mood(str, Enum):
    VERY_NEGATIVE = "VERY_NEGATIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"
    POSITIVE = "POSITIVE"
    VERY_POSITIVE = "VERY_POSITIVE"
    # Affect-specific aliases, valued the same as their paired category
    ANXIOUS = "ANXIOUS"
    STRESSED = "STRESSED"
    CALM = "CALM"
    PEACEFUL = "PEACEFUL"


class StressLevel(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


Category = Union[Mood, StressLevel]

MOOD_VALUES = MappingProxyType({
    Mood.VERY_NEGATIVE: 1,
    Mood.NEGATIVE: 2,
    Mood.NEUTRAL: 3,
    Mood.POSITIVE: 4,
    Mood.VERY_POSITIVE: 5,
    Mood.ANXIOUS: 2,
    Mood.STRESSED: 1,
    Mood.CALM: 4,
    Mood.PEACEFUL: 5,
})

STRESS_LEVEL_VALUES = MappingProxyType({
    StressLevel.VERY_LOW: 1,
    StressLevel.LOW: 2,
    StressLevel.MODERATE: 3,
    StressLevel.HIGH: 4,
    StressLevel.VERY_HIGH: 5,
})

_VALUES = MappingProxyType({Mood: MOOD_VALUES, StressLevel: STRESS_LEVEL_VALUES})

# Upper bounds of the raw 1-10 stress score for each bucket; anything above
# the last bound is VERY_HIGH.
STRESS_BUCKET_BOUNDS = (
    (2, StressLevel.VERY_LOW),
    (4, StressLevel.LOW),
    (6, StressLevel.MODERATE),
    (8, StressLevel.HIGH),
)


def parse_category(scale: type[Category], label: object) -> Category:
    """Resolve ``label`` (a member or its string name) to a member of ``scale``.

    Raises:
        UnknownCategoryError: If the label is not part of the scale.
    """
    if not isinstance(scale, type) or scale not in _VALUES:
        raise UnknownCategoryError("scale", scale)
    if isinstance(label, scale):
        return label
    if isinstance(label, str):
        try:
            return scale(label)
        except ValueError:
            pass
    raise UnknownCategoryError(scale.__name__, label)


def value_of(category: object) -> int:
    """Numeric value of a mood or stress category.

    Plain strings are resolved against Mood first, then StressLevel; the
    label sets are disjoint so the order only matters for error reporting.

    Raises:
        UnknownCategoryError: If ``category`` is not a registered label.
    """
    if isinstance(category, Mood):
        return MOOD_VALUES[category]
    if isinstance(category, StressLevel):
        return STRESS_LEVEL_VALUES[category]
    if isinstance(category, str):
        for scale, values in _VALUES.items():
            if category in scale.__members__:
                return values[scale(category)]
    raise UnknownCategoryError("mood or stress", category)


def categories_of(scale: type[Category]) -> tuple[Category, ...]:
    """Categories of ``scale`` ascending by value, ties in declaration order."""
    if not isinstance(scale, type) or scale not in _VALUES:
        raise UnknownCategoryError("scale", scale)
    values = _VALUES[scale]
    # sorted() is stable, so equal values keep declaration order
    return tuple(sorted(scale, key=lambda member: values[member]))


def compare(a: object, b: object) -> int:
    """Return -1, 0 or 1 comparing the severity values of two categories."""
    va, vb = value_of(a), value_of(b)
    return (va > vb) - (va < vb)


def bucket_stress_level(score: float) -> StressLevel:
    """Bucket a raw stress score (nominally 1-10) into a StressLevel.

    Fractional scores are compared against the bounds, never rounded, and
    scores outside the nominal range clamp to the outer buckets.
    """
    for upper, level in STRESS_BUCKET_BOUNDS:
        if score <= upper:
            return level
    return StressLevel.VERY_HIGH
