"""Application factory — wires storage, audit trail and the wellness services."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from serene.core.audit.logger import AuditLogger
from serene.core.config.settings import Settings, get_settings
from serene.core.storage.database import WellnessDatabase
from serene.core.storage.encryption import FieldEncryptor
from serene.core.storage.repository import WellnessRepository
from serene.domains.wellness.services.breathing import (
    BreathingPatternService,
    BreathingSessionService,
)
from serene.domains.wellness.services.chat import ChatMessageService
from serene.domains.wellness.services.social import FriendRequestService
from serene.domains.wellness.services.stress import StressLogService

logger = logging.getLogger(__name__)


@dataclass
class WellnessApp:
    """Everything a caller needs, sharing one database connection."""

    database: WellnessDatabase
    repository: WellnessRepository
    audit: AuditLogger
    patterns: BreathingPatternService
    sessions: BreathingSessionService
    messages: ChatMessageService
    friend_requests: FriendRequestService
    stress_logs: StressLogService

    def close(self) -> None:
        self.database.close()


def create_app(
    *,
    settings: Settings | None = None,
    database_override: WellnessDatabase | None = None,
) -> WellnessApp:
    """Create and configure the wellness services.

    1. Opens (and migrates) the SQLite database
    2. Builds the field encryptor from ``ENCRYPTION_KEY``
    3. Creates the repository, audit logger and per-record services
    4. Seeds the built-in breathing patterns when enabled

    Raises:
        EncryptionError: If ``ENCRYPTION_KEY`` is missing or malformed.
    """
    settings = settings or get_settings()

    encryptor = FieldEncryptor(settings.encryption_key)

    if database_override is not None:
        database = database_override
    else:
        database = WellnessDatabase(settings.db_path)
    database.initialize()
    logger.info(
        "Wellness store ready: %s (schema v%d)", settings.db_path, database.get_schema_version()
    )

    repository = WellnessRepository(database, encryptor)
    audit = AuditLogger(database)

    app = WellnessApp(
        database=database,
        repository=repository,
        audit=audit,
        patterns=BreathingPatternService(repository, audit),
        sessions=BreathingSessionService(repository, audit),
        messages=ChatMessageService(repository, audit),
        friend_requests=FriendRequestService(repository, audit),
        stress_logs=StressLogService(repository, audit),
    )

    if settings.seed_default_patterns:
        app.patterns.seed_defaults()

    return app
