"""Friend requests and their pending / accepted / rejected lifecycle."""

from __future__ import annotations

import logging
from typing import Any

from serene.domains.wellness.domain_logic.entities import FriendRequest, as_mapping
from serene.domains.wellness.domain_logic.errors import FailureCode, SelfReferenceError
from serene.domains.wellness.domain_logic.state_machines import (
    FriendRequestStatus,
    canonical_pair_key,
    check_friend_request_transition,
)
from serene.domains.wellness.domain_logic.validators import ValidationResult
from serene.domains.wellness.services.base import RecordService

logger = logging.getLogger(__name__)


class FriendRequestService(RecordService[FriendRequest]):
    """Creates and resolves friend requests.

    Self-requests are refused before storage is touched. Uniqueness of the
    active request per unordered pair of users is left to the store, which
    enforces it atomically with the insert.
    """

    record_type = FriendRequest

    def create(self, candidate: Any) -> FriendRequest:
        """
        Raises:
            SelfReferenceError: If requester and recipient are the same user.
            RecordValidationError: If any other field is invalid.
            DuplicateKeyError: If an active request already exists for the pair,
                in either direction.
        """
        result = self.validate(candidate)
        if FailureCode.SELF_REFERENCE in result.codes("recipient_id"):
            user_id = str(as_mapping(candidate).get("requester_id", "")).strip()
            self._audit_violation(FailureCode.SELF_REFERENCE.value, candidate)
            logger.warning("Rejected self friend request from %s", user_id)
            raise SelfReferenceError(user_id)
        return super().create(candidate)

    def _before_insert(self, entity: FriendRequest) -> None:
        if entity.status != FriendRequestStatus.PENDING:
            result = ValidationResult()
            result.add(
                "status",
                FailureCode.ILLEGAL_TRANSITION,
                f"a new friend request must start as {FriendRequestStatus.PENDING.value}",
            )
            self._reject(entity, result)

    def transition(
        self, request: FriendRequest, requested: FriendRequestStatus | str
    ) -> FriendRequest:
        """
        Raises:
            IllegalTransitionError: Unless ``request`` is pending and ``requested``
                is accepted or rejected (or pending again, a no-op).
        """
        return self._transition(
            request, requested, FriendRequestStatus, check_friend_request_transition, {}
        )

    def accept(self, request: FriendRequest) -> FriendRequest:
        return self.transition(request, FriendRequestStatus.ACCEPTED)

    def reject(self, request: FriendRequest) -> FriendRequest:
        return self.transition(request, FriendRequestStatus.REJECTED)

    def find_active_between(self, user_a: str, user_b: str) -> FriendRequest | None:
        """The pending or accepted request between two users, in either direction."""
        return self._store.find_by_key(FriendRequest, canonical_pair_key(user_a, user_b))
