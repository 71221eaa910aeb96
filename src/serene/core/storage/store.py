"""The storage interface the wellness services are written against."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class RecordStore(Protocol):
    """Persistence collaborator for wellness records.

    Implementations own durability, id assignment, ``created_at``/``updated_at``
    stamping and uniqueness. Unique keys (pattern name, active friend-request
    pair) must be enforced atomically with the write, and every call either
    fully succeeds or leaves the store unchanged.
    """

    def insert(self, entity: T) -> T:
        """Persist a new record and return it with id and timestamps set.

        Raises ``DuplicateKeyError`` on a unique-key collision.
        """
        ...

    def update(self, entity: T, *, expected_status: Any = None) -> T:
        """Persist changes to an existing record; advances ``updated_at``.

        When ``expected_status`` is given the write is conditional on the
        stored status still matching it, and ``StaleRecordError`` is raised
        otherwise.
        """
        ...

    def get(self, entity_type: type[T], entity_id: str) -> T | None:
        ...

    def find_by_key(self, entity_type: type[T], key: str) -> T | None:
        """Look a record up by its natural unique key.

        BreathingPattern: ``name``. FriendRequest: the canonical pair key of
        the active (non-rejected) request.
        """
        ...

    def get_sessions_for_user(self, user_id: str, *, limit: int | None = 10) -> list[Any]:
        ...

    def get_stress_logs_for_user(
        self, user_id: str, *, since: datetime | None = None, limit: int | None = 90
    ) -> list[Any]:
        ...
