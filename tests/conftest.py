from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from sms_forwarder.config import get_settings
from sms_forwarder.email_dispatch import DispatchError, get_email_dispatcher
from sms_forwarder.sms import EmailNotification
from sms_forwarder.store import get_config_store

TEST_AUTH_TOKEN = "test_auth_token"


class FakeDispatcher:
    """Fake email transport that records notifications instead of sending."""

    name = "fake"

    def __init__(self, fail_with: str | None = None) -> None:
        self.sent: list[EmailNotification] = []
        self.fail_with = fail_with

    async def send(self, notification: EmailNotification) -> None:
        self.sent.append(notification)
        if self.fail_with is not None:
            raise DispatchError(self.fail_with)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Point storage at tmp_path and drop credentials from the real environment."""
    for name in (
        "SENDGRID_API_KEY",
        "SMTP_HOST",
        "SMTP_USER",
        "SMTP_PASS",
        "SMTP_SECURE",
        "TWILIO_WEBHOOK_HOST",
        "TWILIO_WEBHOOK_PROTOCOL",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keeps a developer .env in the repo root out of the tests
    monkeypatch.setenv("PROJECT_ROOT", str(tmp_path))
    monkeypatch.setenv("STORAGE_FILE", str(tmp_path / "storage.json"))
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", TEST_AUTH_TOKEN)

    get_settings.cache_clear()
    get_config_store.cache_clear()
    get_email_dispatcher.cache_clear()
    yield
    get_settings.cache_clear()
    get_config_store.cache_clear()
    get_email_dispatcher.cache_clear()


@pytest.fixture
def storage_path(tmp_path: Path) -> Path:
    return tmp_path / "storage.json"


@pytest.fixture
def fake_dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def failing_dispatcher() -> FakeDispatcher:
    return FakeDispatcher(fail_with="SendGrid responded 401: unauthorized")
