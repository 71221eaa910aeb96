"""Tests for the application factory."""

from __future__ import annotations

import logging
import uuid

import pytest
from cryptography.fernet import Fernet

from serene.core.bootstrap.app import create_app
from serene.core.bootstrap.main import run
from serene.core.config.settings import Settings
from serene.core.storage.database import WellnessDatabase
from serene.core.storage.encryption import EncryptionError
from serene.domains.wellness.domain_logic.entities import BreathingPattern


@pytest.fixture
def settings() -> Settings:
    return Settings(db_path=":memory:", encryption_key=Fernet.generate_key().decode())


class TestCreateApp:
    def test_seeds_default_patterns(self, settings):
        app = create_app(settings=settings)
        try:
            assert app.repository.count(BreathingPattern) == 3
            assert app.patterns.get("BOX_BREATHING").cycle_seconds == 16
        finally:
            app.close()

    def test_seeding_can_be_disabled(self, settings):
        settings.seed_default_patterns = False
        app = create_app(settings=settings)
        try:
            assert app.repository.count(BreathingPattern) == 0
        finally:
            app.close()

    def test_missing_key_refuses_to_start(self):
        with pytest.raises(EncryptionError):
            create_app(settings=Settings(db_path=":memory:", encryption_key=""))

    def test_database_override(self, settings):
        db = WellnessDatabase(":memory:")
        app = create_app(settings=settings, database_override=db)
        try:
            assert app.database is db
            assert db.get_schema_version() >= 1
        finally:
            app.close()

    def test_services_share_the_store(self, settings):
        app = create_app(settings=settings)
        try:
            user = str(uuid.uuid4())
            session = app.sessions.start(user, "QUICK_BREATH")
            app.sessions.complete(session, completed_cycles=6)
            assert app.audit.count_events(action="status_transition") == 1
            assert app.repository.get_sessions_for_user(user)[0].is_completed
        finally:
            app.close()


class TestRun:
    def test_run_bootstraps_file_database(self, monkeypatch, tmp_path, caplog):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DB_PATH", str(tmp_path / "wellness.db"))
        monkeypatch.setenv("ENCRYPTION_KEY", Fernet.generate_key().decode())
        with caplog.at_level(logging.INFO):
            run()
        assert (tmp_path / "wellness.db").exists()
        assert "holds 3 breathing patterns" in caplog.text
