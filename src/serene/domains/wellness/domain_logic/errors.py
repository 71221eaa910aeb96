"""Failure codes and exceptions for the wellness domain.

Field-level problems are reported as ``FieldFailure`` values collected in a
``ValidationResult``; the exceptions below are raised only at the service
boundary (create/transition) or for lookups that cannot degrade gracefully.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from serene.domains.wellness.domain_logic.validators import ValidationResult


class FailureCode(str, Enum):
    """Closed set of reasons a record or transition can be rejected."""

    MISSING_FIELD = "MissingField"
    OUT_OF_RANGE = "OutOfRange"
    INVALID_ENUM = "InvalidEnum"
    INVALID_REFERENCE = "InvalidReference"
    INVALID_TYPE = "InvalidType"
    TOO_MANY = "TooMany"
    TOO_LONG = "TooLong"
    UNKNOWN_CATEGORY = "UnknownCategory"
    SELF_REFERENCE = "SelfReference"
    DUPLICATE_KEY = "DuplicateKey"
    ILLEGAL_TRANSITION = "IllegalTransition"


class WellnessError(Exception):
    """Base class for wellness domain errors."""

    code: FailureCode | None = None


class RecordValidationError(WellnessError):
    """Raised by ``create`` when a candidate record fails validation.

    The full ``ValidationResult`` is attached so callers can report every
    offending field path at once.
    """

    def __init__(self, entity_type: str, result: ValidationResult) -> None:
        self.entity_type = entity_type
        self.result = result
        paths = ", ".join(sorted(result.errors))
        super().__init__(f"Invalid {entity_type}: {paths}")


class UnknownCategoryError(WellnessError, ValueError):
    """Raised when a label is not part of an ordinal scale."""

    code = FailureCode.UNKNOWN_CATEGORY

    def __init__(self, scale: str, label: object) -> None:
        self.scale = scale
        self.label = label
        super().__init__(f"Unknown {scale} category: {label!r}")


class SelfReferenceError(WellnessError):
    """Raised when a friend request names the same user on both sides."""

    code = FailureCode.SELF_REFERENCE

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} cannot send a friend request to themselves")


class RecordNotFoundError(WellnessError, LookupError):
    """Raised when a referenced record (e.g. a breathing pattern) does not exist."""

    def __init__(self, entity_type: str, key: str) -> None:
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"{entity_type} not found: {key}")


class IllegalTransitionError(WellnessError):
    """Raised when a status change is not in the transition table."""

    code = FailureCode.ILLEGAL_TRANSITION

    def __init__(self, entity_type: str, current: str, requested: str, reason: str = "") -> None:
        self.entity_type = entity_type
        self.current = current
        self.requested = requested
        self.reason = reason
        message = f"{entity_type} cannot transition from {current} to {requested}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
