"""
ISO-8601 duration parsing.

YouTube reports video lengths as ISO-8601 durations (``PT21M3S``). This
module converts them to seconds with fixed unit lengths (a year is 365.25
days, a month is 30 days), and keeps a per-unit breakdown where fractional
values are carried down into the next smaller unit.
"""

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional


# ========================================
# Custom Exceptions
# ========================================


class DurationParseErrorReason(str, enum.Enum):
    NOT_BEGIN_WITH_P = "notBeginWithP"
    TIME_PART_NOT_BEGIN_WITH_T = "timePartNotBeginWithT"
    UNKNOWN_ELEMENT = "unknownElement"
    DISCONTINUOUS = "discontinuous"

    def __str__(self) -> str:
        return self.value


class DurationParseError(ValueError):
    """Raised when a string is not a duration this parser understands."""

    def __init__(self, reason: DurationParseErrorReason, text: str):
        self.reason = reason
        self.text = text
        super().__init__(f"Invalid ISO-8601 duration {text!r}: {reason}")


# ========================================
# Units
# ========================================


class DurationUnit(str, enum.Enum):
    YEAR = "year"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"

    def __str__(self) -> str:
        return self.value

    @property
    def seconds(self) -> float:
        """Fixed length of one unit in seconds."""
        return _UNIT_SECONDS[self]


_UNIT_SECONDS: Dict[DurationUnit, float] = {
    DurationUnit.SECOND: 1,
    DurationUnit.MINUTE: 60,
    DurationUnit.HOUR: 60 * 60,
    DurationUnit.DAY: 24 * 60 * 60,
    DurationUnit.WEEK: 7 * 24 * 60 * 60,
    DurationUnit.MONTH: 30 * 24 * 60 * 60,
    DurationUnit.YEAR: 365.25 * 24 * 60 * 60,
}

# Where a fractional remainder goes, and how many of the smaller unit make
# up one of the larger one. Seconds keep their fraction.
_CARRY: Dict[DurationUnit, tuple] = {
    DurationUnit.YEAR: (DurationUnit.MONTH, 12),
    DurationUnit.MONTH: (DurationUnit.DAY, 30),
    DurationUnit.WEEK: (DurationUnit.DAY, 7),
    DurationUnit.DAY: (DurationUnit.HOUR, 24),
    DurationUnit.HOUR: (DurationUnit.MINUTE, 60),
    DurationUnit.MINUTE: (DurationUnit.SECOND, 60),
}

_DATE_DESIGNATORS = {
    "Y": DurationUnit.YEAR,
    "W": DurationUnit.WEEK,
    "D": DurationUnit.DAY,
}

_TIME_DESIGNATORS = {
    "H": DurationUnit.HOUR,
    "S": DurationUnit.SECOND,
}


# ========================================
# Parsed Duration
# ========================================


@dataclass(frozen=True)
class IsoDuration:
    """
    A parsed ISO-8601 duration.

    Attributes:
        total_seconds: Exact sum of value x unit length over all elements
        components: Per-unit breakdown. Weeks are recorded as days, and
            fractions are carried down (``P1.5D`` -> 1 day, 12 hours)
    """

    total_seconds: float
    components: Dict[DurationUnit, float] = field(default_factory=dict)

    @property
    def seconds(self) -> int:
        """Total rounded to whole seconds."""
        return int(round(self.total_seconds))

    @classmethod
    def parse(cls, text: str) -> "IsoDuration":
        """
        Parse an ISO-8601 duration string.

        Args:
            text: Duration such as ``"PT21M3S"`` or ``"P1Y2M3DT4H5M6S"``

        Returns:
            IsoDuration with the exact total and the component breakdown

        Raises:
            DurationParseError: ``notBeginWithP`` if the string does not start
                with ``P``; ``timePartNotBeginWithT`` for ``H``/``S`` before
                ``T``; ``unknownElement`` for any other character;
                ``discontinuous`` for digits left over at the end
        """
        if not text.startswith("P"):
            raise DurationParseError(DurationParseErrorReason.NOT_BEGIN_WITH_P, text)

        total = 0.0
        components: Dict[DurationUnit, float] = {}
        in_time_part = False
        number = ""

        for char in text:
            if char == "P":
                continue
            if char == "T":
                in_time_part = True
                continue
            if char.isdigit() or char in ".,":
                number += char
                continue

            unit = _resolve_unit(char, in_time_part, text)
            value = _to_number(number)
            number = ""
            if value is None:
                continue

            total += value * unit.seconds
            if unit is DurationUnit.WEEK:
                _add_component(components, DurationUnit.DAY, value * 7)
            else:
                _add_component(components, unit, value)

        if number:
            raise DurationParseError(DurationParseErrorReason.DISCONTINUOUS, text)

        return cls(total_seconds=total, components=components)


def parse_iso8601_duration(text: str) -> float:
    """Parse ``text`` and return its exact length in seconds."""
    return IsoDuration.parse(text).total_seconds


# ========================================
# Helpers
# ========================================


def _resolve_unit(char: str, in_time_part: bool, text: str) -> DurationUnit:
    if char == "M":
        return DurationUnit.MINUTE if in_time_part else DurationUnit.MONTH
    if char in _DATE_DESIGNATORS:
        return _DATE_DESIGNATORS[char]
    if char in _TIME_DESIGNATORS:
        if not in_time_part:
            raise DurationParseError(DurationParseErrorReason.TIME_PART_NOT_BEGIN_WITH_T, text)
        return _TIME_DESIGNATORS[char]
    raise DurationParseError(DurationParseErrorReason.UNKNOWN_ELEMENT, text)


def _to_number(raw: str) -> Optional[float]:
    # Both "." and "," are valid decimal separators
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        return None


def _add_component(components: Dict[DurationUnit, float], unit: DurationUnit, value: float) -> None:
    """Add the whole part of ``value`` to ``unit`` and carry the fraction down."""
    if unit not in _CARRY:
        components[unit] = components.get(unit, 0) + value
        return

    whole = int(value)
    fraction = round(value - whole, 9)
    if whole:
        components[unit] = components.get(unit, 0) + whole
    if fraction > 0:
        smaller, ratio = _CARRY[unit]
        _add_component(components, smaller, fraction * ratio)
