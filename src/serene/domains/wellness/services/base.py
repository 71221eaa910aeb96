"""Shared validate / create / save plumbing for the wellness services."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from serene.core.audit.logger import AuditLogger
from serene.core.storage.repository import DuplicateKeyError, StaleRecordError
from serene.core.storage.store import RecordStore
from serene.domains.wellness.domain_logic.entities import CHECKS, as_mapping, validate
from serene.domains.wellness.domain_logic.errors import (
    FailureCode,
    IllegalTransitionError,
    RecordNotFoundError,
    RecordValidationError,
)
from serene.domains.wellness.domain_logic.state_machines import TransitionErr, TransitionOk
from serene.domains.wellness.domain_logic.validators import ValidationResult

logger = logging.getLogger(__name__)

R = TypeVar("R")


class RecordService(Generic[R]):
    """Validates records of one type and hands valid ones to the store.

    Subclasses set ``record_type`` and may override ``_before_insert`` for
    checks that must run before any storage round-trip.
    """

    record_type: ClassVar[type]

    def __init__(self, store: RecordStore, audit: AuditLogger | None = None) -> None:
        self._store = store
        self._audit = audit

    @property
    def entity_name(self) -> str:
        return self.record_type.entity_type

    def validate(self, candidate: Any) -> ValidationResult:
        """Every field failure of ``candidate``, keyed by path. Never raises."""
        return validate(self.record_type, candidate)

    def create(self, candidate: Any) -> R:
        """Validate ``candidate`` and insert it.

        Raises:
            RecordValidationError: If any field fails validation.
            DuplicateKeyError: If the store reports a unique-key collision.
        """
        entity = self._build(candidate)
        self._before_insert(entity)
        try:
            saved = self._store.insert(entity)
        except DuplicateKeyError as exc:
            logger.warning("Rejected %s: %s", self.entity_name, exc)
            self._audit_violation(FailureCode.DUPLICATE_KEY.value, candidate)
            raise
        logger.info("Created %s %s", self.entity_name, saved.id)
        if self._audit is not None:
            self._audit.log_created(self.entity_name, saved.id, self._payload(candidate))
        return saved

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _before_insert(self, entity: R) -> None:
        """Hook for pre-storage checks; the default does nothing."""

    def _build(self, candidate: Any, *, entity_id: str | None = None) -> R:
        """Normalize and validate ``candidate`` into a record, or raise."""
        if not isinstance(candidate, (Mapping, self.record_type)):
            self._reject(candidate, self.validate(candidate), entity_id=entity_id)
        values, result = CHECKS[self.record_type](candidate)
        if not result.is_valid:
            self._reject(candidate, result, entity_id=entity_id)
        if isinstance(candidate, self.record_type):
            return replace(candidate, **values)
        return self.record_type(**values)

    def _load(self, entity: Any) -> R:
        """The stored copy of ``entity``; callers may hold an outdated one."""
        stored = self._store.get(self.record_type, entity.id) if entity.id else None
        if stored is None:
            raise RecordNotFoundError(self.entity_name, str(entity.id))
        return stored

    def _save(self, entity: R, *, expected_status: Any = None) -> R:
        """Re-validate a changed record and persist it with ``store.update``."""
        normalized = self._build(entity, entity_id=entity.id)
        return self._store.update(normalized, expected_status=expected_status)

    def _transition(
        self,
        entity: Any,
        requested: Any,
        status_type: type[Enum],
        check: Callable[[Any, Any], TransitionOk | TransitionErr],
        changes: dict[str, Any],
    ) -> Any:
        """Move ``entity`` to ``requested`` and persist it together with ``changes``.

        Legality is decided against the stored status, not the caller's copy,
        and the write only lands while that status is still current. The
        resulting record is validated as a whole before it reaches the store.
        """
        if "status" in changes:
            result = ValidationResult()
            result.add(
                "status",
                FailureCode.ILLEGAL_TRANSITION,
                "status is set by the requested transition, not passed as a change",
            )
            self._reject(changes, result, entity_id=entity.id)

        stored = self._load(entity)
        current = status_type(stored.status)
        try:
            target = status_type(requested)
        except ValueError:
            self._refuse_transition(
                stored,
                IllegalTransitionError(
                    self.entity_name, current.value, str(requested), "unknown status"
                ),
            )
        outcome = check(current, target)
        if isinstance(outcome, TransitionErr):
            self._refuse_transition(
                stored,
                IllegalTransitionError(
                    self.entity_name, current.value, target.value, outcome.reason
                ),
            )
        if not outcome.changed and not changes:
            return stored

        try:
            saved = self._save(
                replace(stored, status=outcome.status, **changes), expected_status=current
            )
        except StaleRecordError as exc:
            self._refuse_transition(
                stored,
                IllegalTransitionError(
                    self.entity_name,
                    exc.current_status,
                    target.value,
                    f"status changed from {current.value} since it was read",
                ),
            )
        if outcome.changed:
            logger.info(
                "%s %s: %s -> %s", self.entity_name, saved.id, current.value, target.value
            )
            if self._audit is not None:
                self._audit.log_transition(self.entity_name, saved.id, current.value, target.value)
        return saved

    def _reject(
        self, candidate: Any, result: ValidationResult, *, entity_id: str | None = None
    ) -> None:
        logger.warning(
            "Rejected %s: invalid fields %s", self.entity_name, ", ".join(sorted(result.errors))
        )
        self._audit_violation(
            "validation", candidate, entity_id=entity_id, fields=sorted(result.errors)
        )
        raise RecordValidationError(self.entity_name, result)

    def _refuse_transition(self, entity: Any, error: IllegalTransitionError) -> None:
        logger.warning("%s", error)
        if self._audit is not None:
            self._audit.log_transition(
                self.entity_name,
                entity.id,
                error.current,
                error.requested,
                error_type=FailureCode.ILLEGAL_TRANSITION.value,
            )
        raise error

    def _audit_violation(
        self,
        error_type: str,
        candidate: Any,
        *,
        entity_id: str | None = None,
        fields: list[str] | None = None,
    ) -> None:
        if self._audit is None:
            return
        self._audit.log_violation(
            self.entity_name,
            error_type,
            entity_id=entity_id,
            payload=self._payload(candidate),
            fields=fields,
        )

    @staticmethod
    def _payload(candidate: Any) -> Any:
        try:
            return as_mapping(candidate)
        except TypeError:
            return repr(candidate)
