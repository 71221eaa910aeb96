"""Reusable field validators.

Every validator takes the ``ValidationResult`` it reports into, the field
path, and the raw value. Validators never raise and never stop at the first
problem: an entity's validation is simply every validator run in turn, and
the result is the union of their failures keyed by field path.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from serene.domains.wellness.domain_logic.errors import FailureCode


@dataclass(frozen=True)
class FieldFailure:
    """A single reason a field was rejected."""

    code: FailureCode
    message: str


@dataclass
class ValidationResult:
    """Accumulator mapping field path -> failures. Empty means valid."""

    errors: dict[str, list[FieldFailure]] = field(default_factory=dict)

    def add(self, path: str, code: FailureCode, message: str) -> None:
        self.errors.setdefault(path, []).append(FieldFailure(code, message))

    def merge(self, other: ValidationResult) -> None:
        for path, failures in other.errors.items():
            self.errors.setdefault(path, []).extend(failures)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def codes(self, path: str) -> list[FailureCode]:
        """Failure codes recorded for ``path`` (empty list when it passed)."""
        return [f.code for f in self.errors.get(path, [])]

    def as_dict(self) -> dict[str, list[str]]:
        """Plain ``{path: [code, ...]}`` form, suitable for JSON."""
        return {path: [f.code.value for f in failures] for path, failures in self.errors.items()}

    def __contains__(self, path: object) -> bool:
        return path in self.errors

    def __getitem__(self, path: str) -> list[FieldFailure]:
        return self.errors[path]


def trim(value: Any) -> Any:
    """Strip leading/trailing whitespace from strings; other values pass through."""
    if isinstance(value, str):
        return value.strip()
    return value


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def required(result: ValidationResult, path: str, value: Any) -> bool:
    """Record ``MissingField`` if ``value`` is absent, null or blank."""
    if is_missing(value):
        result.add(path, FailureCode.MISSING_FIELD, f"{path} is required")
        return False
    return True


def integer(result: ValidationResult, path: str, value: Any) -> bool:
    """Record ``InvalidType`` unless ``value`` is an int (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        result.add(path, FailureCode.INVALID_TYPE, f"{path} must be an integer")
        return False
    return True


def in_range(
    result: ValidationResult,
    path: str,
    value: Any,
    lo: float | None = None,
    hi: float | None = None,
) -> bool:
    """Record ``OutOfRange`` if ``value < lo`` or ``value > hi``.

    Either bound may be None (open). ``hi`` may be the current value of a
    sibling field rather than a static bound.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        result.add(path, FailureCode.INVALID_TYPE, f"{path} must be a number")
        return False
    if (lo is not None and value < lo) or (hi is not None and value > hi):
        if lo is None:
            bounds = f"at most {hi}"
        elif hi is None:
            bounds = f"at least {lo}"
        else:
            bounds = f"between {lo} and {hi}"
        result.add(path, FailureCode.OUT_OF_RANGE, f"{path} must be {bounds}, got {value}")
        return False
    return True


def enum_member(result: ValidationResult, path: str, value: Any, allowed: type[Enum]) -> Enum | None:
    """Resolve ``value`` to a member of ``allowed`` or record ``InvalidEnum``."""
    if isinstance(value, allowed):
        return value
    try:
        return allowed(value)
    except ValueError:
        choices = ", ".join(str(m.value) for m in allowed)
        result.add(path, FailureCode.INVALID_ENUM, f"{path} must be one of: {choices}; got {value!r}")
        return None


def reference(result: ValidationResult, path: str, value: Any) -> str | None:
    """Validate an entity reference (a UUID); return its canonical string form."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, str):
        try:
            return str(UUID(value.strip()))
        except ValueError:
            pass
    result.add(path, FailureCode.INVALID_REFERENCE, f"{path} is not a valid identifier: {value!r}")
    return None


def timestamp(result: ValidationResult, path: str, value: Any) -> datetime | None:
    """Accept a datetime or ISO 8601 string; naive values are taken as UTC."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    if not isinstance(value, datetime):
        result.add(path, FailureCode.INVALID_TYPE, f"{path} must be a datetime or ISO 8601 string")
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def array_size(result: ValidationResult, path: str, items: Sequence[Any], max_items: int) -> bool:
    """Record ``TooMany`` on ``path`` when ``items`` has more than ``max_items`` entries."""
    if len(items) > max_items:
        result.add(
            path,
            FailureCode.TOO_MANY,
            f"{path} may contain at most {max_items} entries, got {len(items)}",
        )
        return False
    return True


def element_length(result: ValidationResult, path: str, value: str, max_length: int) -> bool:
    """Record ``TooLong`` when ``value`` exceeds ``max_length`` characters."""
    if len(value) > max_length:
        result.add(
            path,
            FailureCode.TOO_LONG,
            f"{path} may be at most {max_length} characters, got {len(value)}",
        )
        return False
    return True


def trimmed_text(
    result: ValidationResult,
    path: str,
    value: Any,
    *,
    max_length: int,
    is_required: bool = False,
) -> str | None:
    """Trim a string field, then check presence and length on the trimmed value."""
    if value is None:
        if is_required:
            required(result, path, value)
        return None
    if not isinstance(value, str):
        result.add(path, FailureCode.INVALID_TYPE, f"{path} must be a string")
        return None
    text = trim(value)
    if is_required and not required(result, path, text):
        return text
    element_length(result, path, text, max_length)
    return text


def trimmed_string_list(
    result: ValidationResult,
    path: str,
    items: Iterable[Any] | None,
    *,
    max_items: int,
    max_length: int,
) -> list[str]:
    """Normalize a list of strings and validate its size and every element.

    Each element is trimmed before its length is checked. Per-element
    failures are reported at ``<path>.<index>`` and are collected for every
    index, in addition to any ``TooMany`` failure on the list itself.
    """
    if items is None:
        return []
    if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
        result.add(path, FailureCode.INVALID_TYPE, f"{path} must be a list of strings")
        return []

    values = list(items)
    array_size(result, path, values, max_items)

    normalized: list[str] = []
    for index, item in enumerate(values):
        item_path = f"{path}.{index}"
        if not isinstance(item, str):
            result.add(item_path, FailureCode.INVALID_TYPE, f"{item_path} must be a string")
            continue
        text = trim(item)
        element_length(result, item_path, text, max_length)
        normalized.append(text)
    return normalized
