"""Status state machines for breathing sessions and friend requests.

Transition legality is a pure function of ``(current, requested)``; it never
looks at other fields of the record. Callers get back a ``TransitionOk`` or a
``TransitionErr`` and decide themselves whether to raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Generic, TypeVar, Union

from serene.domains.wellness.domain_logic.errors import SelfReferenceError


class SessionStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    INTERRUPTED = "INTERRUPTED"
    COMPLETED = "COMPLETED"


class FriendRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


SESSION_TRANSITIONS = MappingProxyType({
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.INTERRUPTED}),
    SessionStatus.INTERRUPTED: frozenset({SessionStatus.IN_PROGRESS}),
    SessionStatus.COMPLETED: frozenset(),
})

FRIEND_REQUEST_TRANSITIONS = MappingProxyType({
    FriendRequestStatus.PENDING: frozenset({FriendRequestStatus.ACCEPTED, FriendRequestStatus.REJECTED}),
    FriendRequestStatus.ACCEPTED: frozenset(),
    FriendRequestStatus.REJECTED: frozenset(),
})

S = TypeVar("S", SessionStatus, FriendRequestStatus)


@dataclass(frozen=True)
class TransitionOk(Generic[S]):
    status: S
    changed: bool = True


@dataclass(frozen=True)
class TransitionErr(Generic[S]):
    current: S
    requested: S
    reason: str


TransitionResult = Union[TransitionOk[S], TransitionErr[S]]


def _check(
    table: MappingProxyType,
    current: S,
    requested: S,
) -> TransitionResult[S]:
    allowed = table[current]
    if not allowed:
        # Terminal states are write-once: even re-entering them is refused.
        return TransitionErr(current, requested, f"{current.value} is a terminal state")
    if requested == current:
        return TransitionOk(current, changed=False)
    if requested in allowed:
        return TransitionOk(requested)
    return TransitionErr(
        current,
        requested,
        f"allowed from {current.value}: {', '.join(sorted(s.value for s in allowed))}",
    )


def check_session_transition(
    current: SessionStatus, requested: SessionStatus
) -> TransitionResult[SessionStatus]:
    """Check a breathing-session status change.

    IN_PROGRESS -> COMPLETED | INTERRUPTED, INTERRUPTED -> IN_PROGRESS.
    COMPLETED accepts nothing, not even COMPLETED again.
    """
    return _check(SESSION_TRANSITIONS, SessionStatus(current), SessionStatus(requested))


def check_friend_request_transition(
    current: FriendRequestStatus, requested: FriendRequestStatus
) -> TransitionResult[FriendRequestStatus]:
    """Check a friend-request status change: pending -> accepted | rejected only."""
    return _check(
        FRIEND_REQUEST_TRANSITIONS,
        FriendRequestStatus(current),
        FriendRequestStatus(requested),
    )


def allowed_session_transitions(status: SessionStatus) -> frozenset[SessionStatus]:
    return SESSION_TRANSITIONS[SessionStatus(status)]


def is_terminal(status: SessionStatus | FriendRequestStatus) -> bool:
    if isinstance(status, FriendRequestStatus):
        return not FRIEND_REQUEST_TRANSITIONS[status]
    return not SESSION_TRANSITIONS[SessionStatus(status)]


def is_active(status: SessionStatus) -> bool:
    return status == SessionStatus.IN_PROGRESS


def is_resumable(status: SessionStatus) -> bool:
    return status == SessionStatus.INTERRUPTED


def canonical_pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for the pair of users in a friend request.

    Raises:
        SelfReferenceError: If both ids are the same user.
    """
    if user_a == user_b:
        raise SelfReferenceError(user_a)
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"
