"""Wellness record definitions and their field-level validation.

Each record type has a dataclass and a ``check_*`` function. ``check_*``
accepts either raw input (a mapping) or an instance of the dataclass,
normalizes it (trimming, defaults, enum coercion) and returns the normalized
field values together with the ``ValidationResult``. Storage-managed fields
(``id``, ``created_at``, ``updated_at``) are never part of the check.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from serene.domains.wellness.domain_logic import validators as v
from serene.domains.wellness.domain_logic.errors import FailureCode
from serene.domains.wellness.domain_logic.scales import StressLevel, bucket_stress_level
from serene.domains.wellness.domain_logic.state_machines import (
    FriendRequestStatus,
    SessionStatus,
    canonical_pair_key,
)

# ---------------------------------------------------------------------------
# Field limits
# ---------------------------------------------------------------------------

PATTERN_NAME_MAX_LENGTH = 100
SESSION_STRESS_MIN = 0
SESSION_STRESS_MAX = 10
CHAT_CONTENT_MAX_LENGTH = 2000
STRESS_LOG_LEVEL_MIN = 1
STRESS_LOG_LEVEL_MAX = 10
MAX_TRIGGERS = 5
MAX_SYMPTOMS = 10
TAG_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 1000


class ChatMessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class BreathingPattern:
    """A named inhale/hold/exhale rhythm. Unique by ``name``."""

    entity_type: ClassVar[str] = "breathing_pattern"

    name: str
    inhale: int
    exhale: int
    cycles: int
    hold: int | None = None
    post_exhale_hold: int | None = None

    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def cycle_seconds(self) -> int:
        """Length of one full breath cycle in seconds."""
        return self.inhale + (self.hold or 0) + self.exhale + (self.post_exhale_hold or 0)


@dataclass
class BreathingSession:
    """One run of a breathing pattern by a user."""

    entity_type: ClassVar[str] = "breathing_session"

    user_id: str
    pattern_name: str
    start_time: datetime
    target_cycles: int
    completed_cycles: int = 0
    end_time: datetime | None = None
    stress_level_before: int | None = None
    stress_level_after: int | None = None
    status: SessionStatus = SessionStatus.IN_PROGRESS

    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    @property
    def duration_seconds(self) -> int | None:
        """Whole seconds between start and end, or None while the session is open."""
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds())

    @property
    def stress_reduction(self) -> int | None:
        if self.stress_level_before is None or self.stress_level_after is None:
            return None
        return self.stress_level_before - self.stress_level_after


@dataclass
class ChatMessage:
    """A message posted in a (group) session chat."""

    entity_type: ClassVar[str] = "chat_message"

    session_id: str
    sender_id: str
    content: str
    type: ChatMessageType = ChatMessageType.TEXT

    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def user_id(self) -> str:
        """Read-only alias of ``sender_id``."""
        return str(self.sender_id)


@dataclass
class FriendRequest:
    """A friendship request from ``requester_id`` to ``recipient_id``."""

    entity_type: ClassVar[str] = "friend_request"

    requester_id: str
    recipient_id: str
    status: FriendRequestStatus = FriendRequestStatus.PENDING

    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def pair_key(self) -> str:
        return canonical_pair_key(self.requester_id, self.recipient_id)


@dataclass
class StressLog:
    """A single self-reported stress reading."""

    entity_type: ClassVar[str] = "stress_log"

    user_id: str
    level: int
    date: datetime | None = None  # stamped with the creation time when omitted
    triggers: list[str] = field(default_factory=list)
    symptoms: list[str] = field(default_factory=list)
    notes: str | None = None

    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def bucket(self) -> StressLevel:
        return bucket_stress_level(self.level)


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def as_mapping(candidate: Any) -> dict[str, Any]:
    """Raw field values of a candidate given as a mapping or a record instance."""
    if isinstance(candidate, Mapping):
        return dict(candidate)
    if is_dataclass(candidate) and not isinstance(candidate, type):
        return {f.name: getattr(candidate, f.name) for f in fields(candidate)}
    raise TypeError(f"Cannot validate {type(candidate).__name__}; expected a mapping or record")


def _positive_int(result: v.ValidationResult, path: str, value: Any) -> Any:
    if v.required(result, path, value) and v.integer(result, path, value):
        v.in_range(result, path, value, lo=1)
    return value


def _optional_int(
    result: v.ValidationResult, path: str, value: Any, lo: int, hi: int | None = None
) -> Any:
    if value is not None and v.integer(result, path, value):
        v.in_range(result, path, value, lo=lo, hi=hi)
    return value


def _required_reference(result: v.ValidationResult, path: str, value: Any) -> Any:
    if not v.required(result, path, value):
        return value
    return v.reference(result, path, value) or value


def check_breathing_pattern(candidate: Any) -> tuple[dict[str, Any], v.ValidationResult]:
    raw = as_mapping(candidate)
    result = v.ValidationResult()
    values = {
        "name": v.trimmed_text(
            result, "name", raw.get("name"), max_length=PATTERN_NAME_MAX_LENGTH, is_required=True
        ),
        "inhale": _positive_int(result, "inhale", raw.get("inhale")),
        "exhale": _positive_int(result, "exhale", raw.get("exhale")),
        "cycles": _positive_int(result, "cycles", raw.get("cycles")),
        "hold": _optional_int(result, "hold", raw.get("hold"), lo=0),
        "post_exhale_hold": _optional_int(result, "post_exhale_hold", raw.get("post_exhale_hold"), lo=0),
    }
    return values, result


def check_breathing_session(candidate: Any) -> tuple[dict[str, Any], v.ValidationResult]:
    raw = as_mapping(candidate)
    result = v.ValidationResult()

    start_time = raw.get("start_time")
    if v.required(result, "start_time", start_time):
        start_time = v.timestamp(result, "start_time", start_time) or start_time

    end_time = raw.get("end_time")
    if end_time is not None:
        parsed_end = v.timestamp(result, "end_time", end_time)
        if parsed_end is not None:
            end_time = parsed_end
            if isinstance(start_time, datetime) and end_time < start_time:
                result.add("end_time", FailureCode.OUT_OF_RANGE, "end_time must not precede start_time")

    target_cycles = _positive_int(result, "target_cycles", raw.get("target_cycles"))

    # Bounded by the sibling field's current value, not a static limit.
    completed_cycles = raw.get("completed_cycles")
    if completed_cycles is None:
        completed_cycles = 0
    if v.integer(result, "completed_cycles", completed_cycles):
        upper = target_cycles if "target_cycles" not in result else None
        v.in_range(result, "completed_cycles", completed_cycles, lo=0, hi=upper)

    status = raw.get("status")
    if status is None:
        status = SessionStatus.IN_PROGRESS
    status = v.enum_member(result, "status", status, SessionStatus) or status

    values = {
        "user_id": _required_reference(result, "user_id", raw.get("user_id")),
        "pattern_name": v.trimmed_text(
            result, "pattern_name", raw.get("pattern_name"),
            max_length=PATTERN_NAME_MAX_LENGTH, is_required=True,
        ),
        "start_time": start_time,
        "end_time": end_time,
        "target_cycles": target_cycles,
        "completed_cycles": completed_cycles,
        "stress_level_before": _optional_int(
            result, "stress_level_before", raw.get("stress_level_before"),
            lo=SESSION_STRESS_MIN, hi=SESSION_STRESS_MAX,
        ),
        "stress_level_after": _optional_int(
            result, "stress_level_after", raw.get("stress_level_after"),
            lo=SESSION_STRESS_MIN, hi=SESSION_STRESS_MAX,
        ),
        "status": status,
    }
    return values, result


def check_chat_message(candidate: Any) -> tuple[dict[str, Any], v.ValidationResult]:
    raw = as_mapping(candidate)
    result = v.ValidationResult()

    message_type = raw.get("type")
    if message_type is None:
        message_type = ChatMessageType.TEXT
    message_type = v.enum_member(result, "type", message_type, ChatMessageType) or message_type

    values = {
        "session_id": _required_reference(result, "session_id", raw.get("session_id")),
        "sender_id": _required_reference(result, "sender_id", raw.get("sender_id")),
        "content": v.trimmed_text(
            result, "content", raw.get("content"),
            max_length=CHAT_CONTENT_MAX_LENGTH, is_required=True,
        ),
        "type": message_type,
    }
    return values, result


def check_friend_request(candidate: Any) -> tuple[dict[str, Any], v.ValidationResult]:
    raw = as_mapping(candidate)
    result = v.ValidationResult()

    requester_id = _required_reference(result, "requester_id", raw.get("requester_id"))
    recipient_id = _required_reference(result, "recipient_id", raw.get("recipient_id"))
    if (
        "requester_id" not in result
        and "recipient_id" not in result
        and requester_id == recipient_id
    ):
        result.add(
            "recipient_id",
            FailureCode.SELF_REFERENCE,
            "recipient_id must differ from requester_id",
        )

    status = raw.get("status")
    if status is None:
        status = FriendRequestStatus.PENDING
    status = v.enum_member(result, "status", status, FriendRequestStatus) or status

    values = {"requester_id": requester_id, "recipient_id": recipient_id, "status": status}
    return values, result


def check_stress_log(candidate: Any) -> tuple[dict[str, Any], v.ValidationResult]:
    raw = as_mapping(candidate)
    result = v.ValidationResult()

    level = raw.get("level")
    if v.required(result, "level", level) and v.integer(result, "level", level):
        v.in_range(result, "level", level, lo=STRESS_LOG_LEVEL_MIN, hi=STRESS_LOG_LEVEL_MAX)

    date = raw.get("date")
    if date is not None:
        date = v.timestamp(result, "date", date) or date
    elif raw.get("id"):
        # Only a new log may leave the date for the store to fill in
        v.required(result, "date", date)

    values = {
        "user_id": _required_reference(result, "user_id", raw.get("user_id")),
        "level": level,
        "date": date,
        "triggers": v.trimmed_string_list(
            result, "triggers", raw.get("triggers"),
            max_items=MAX_TRIGGERS, max_length=TAG_MAX_LENGTH,
        ),
        "symptoms": v.trimmed_string_list(
            result, "symptoms", raw.get("symptoms"),
            max_items=MAX_SYMPTOMS, max_length=TAG_MAX_LENGTH,
        ),
        "notes": v.trimmed_text(result, "notes", raw.get("notes"), max_length=NOTES_MAX_LENGTH),
    }
    return values, result


CHECKS = {
    BreathingPattern: check_breathing_pattern,
    BreathingSession: check_breathing_session,
    ChatMessage: check_chat_message,
    FriendRequest: check_friend_request,
    StressLog: check_stress_log,
}


def validate(entity_type: type, candidate: Any) -> v.ValidationResult:
    """Validate ``candidate`` as an ``entity_type`` record; never raises."""
    if not isinstance(candidate, (Mapping, entity_type)):
        result = v.ValidationResult()
        result.add(
            "",
            FailureCode.INVALID_TYPE,
            f"expected a mapping or {entity_type.__name__}, got {type(candidate).__name__}",
        )
        return result
    _, result = CHECKS[entity_type](candidate)
    return result
