"""Application factory and logging setup."""

from __future__ import annotations

import logging

import pytest
import structlog

from cragline.app import create_app
from cragline.config import Settings
from cragline.logging_config import bind_session, setup_logging
from cragline.session import ANONYMOUS, Session
from cragline.store import MemoryDocumentStore


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    logging.getLogger().setLevel(logging.WARNING)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(store_backend="memory", pass_wallet_path=str(tmp_path / "passes.json"))


class TestCreateApp:
    """Test wiring of settings, logging, store and services."""

    def test_services_share_one_store(self, settings):
        app = create_app(settings)
        assert isinstance(app.store, MemoryDocumentStore)
        assert app.activities.store is app.store
        assert app.activities.users is app.users
        assert app.messages.store is app.store
        assert app.wallet.passes == []
        assert app.session is ANONYMOUS

    def test_explicit_store_wins(self, settings):
        store = MemoryDocumentStore()
        assert create_app(settings, store=store).store is store

    @pytest.mark.asyncio
    async def test_sign_in_and_out(self, settings, alice):
        app = create_app(settings)
        session = app.sign_in(alice.id)
        assert session.user_id == alice.id and app.session is session
        assert structlog.contextvars.get_contextvars()["user_id"] == alice.id

        app.sign_out()
        assert app.session is ANONYMOUS
        assert "user_id" not in structlog.contextvars.get_contextvars()


class TestSetupLogging:
    """Test structlog configuration."""

    def test_json_renderer_and_level(self):
        setup_logging(Settings(log_format="json", log_level="debug"))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("grpc").level == logging.WARNING

    def test_console_by_default(self):
        setup_logging(Settings())
        assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            setup_logging(Settings(log_level="chatty"))

    def test_bind_session(self):
        bind_session(Session(user_id="alice"))
        assert structlog.contextvars.get_contextvars() == {"user_id": "alice"}
        bind_session(ANONYMOUS)
        assert structlog.contextvars.get_contextvars() == {}
