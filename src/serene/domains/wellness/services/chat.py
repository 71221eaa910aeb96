"""Chat messages posted in wellness sessions."""

from __future__ import annotations

import logging
from dataclasses import replace

from serene.domains.wellness.domain_logic.entities import ChatMessage
from serene.domains.wellness.services.base import RecordService

logger = logging.getLogger(__name__)


class ChatMessageService(RecordService[ChatMessage]):
    """Content is stored trimmed; ``type`` defaults to ``text``."""

    record_type = ChatMessage

    def edit_content(self, message: ChatMessage, content: str) -> ChatMessage:
        """Replace the text of a stored message. ``updated_at`` advances on save."""
        updated = self._save(replace(self._load(message), content=content))
        logger.info("Edited chat message %s", updated.id)
        return updated
