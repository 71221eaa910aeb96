"""Bootstrap entry point — ``python -m serene.core.bootstrap.main``.

Creates or migrates the wellness database and seeds the built-in breathing
patterns, then exits.
"""

from __future__ import annotations

import logging

from serene.core.bootstrap.app import create_app
from serene.core.config.settings import get_settings
from serene.domains.wellness.domain_logic.entities import BreathingPattern


def run() -> None:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.serene_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    app = create_app(settings=settings)
    try:
        logger.info(
            "Wellness store at %s holds %d breathing patterns",
            settings.db_path,
            app.repository.count(BreathingPattern),
        )
    finally:
        app.close()


if __name__ == "__main__":
    run()
