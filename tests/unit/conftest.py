"""Pytest fixtures for unit tests requiring transport fakes.

What:
  Make ``tests/unit`` importable and expose fixtures that patch the IMAP and
  SMTP libraries with the in-memory fakes, plus settings pointing at them.

Why:
  Transport code constructs library clients itself. Patching the names inside
  :mod:`mailpulse.imap.client` and :mod:`mailpulse.smtp.client` keeps the
  production code paths intact while avoiding network access.

How:
  ``imap_backend`` replaces ``IMAPClient`` with
  :meth:`FakeImapBackend.connect`; ``smtp_server`` replaces ``SMTP`` and
  ``SMTP_SSL`` with :meth:`FakeSmtpServer.factory`. ``log_stream`` returns a
  buffer and a factory for loggers writing into it.

Interfaces:
  ``imap_backend``, ``smtp_server``, ``settings``, ``log_stream``.
"""

import io
import sys
from pathlib import Path

import pytest

from mailpulse.config.schema import EmailSettings
from mailpulse.utils.logging import JsonLogger

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend, FakeSmtpServer


@pytest.fixture
def imap_backend(monkeypatch: pytest.MonkeyPatch) -> FakeImapBackend:
    backend = FakeImapBackend()
    monkeypatch.setattr("mailpulse.imap.client.IMAPClient", backend.connect)
    return backend


@pytest.fixture
def smtp_server(monkeypatch: pytest.MonkeyPatch) -> FakeSmtpServer:
    server = FakeSmtpServer()
    monkeypatch.setattr("mailpulse.smtp.client.SMTP", server.factory(implicit_tls=False))
    monkeypatch.setattr("mailpulse.smtp.client.SMTP_SSL", server.factory(implicit_tls=True))
    return server


@pytest.fixture
def settings() -> EmailSettings:
    return EmailSettings.model_validate(
        {
            "smtp": {
                "host": "smtp.test",
                "port": 587,
                "username": "mailer",
                "password": "smtp-secret",
                "from_address": "robot@example.com",
                "from_display_name": "Robot",
            },
            "imap": {
                "host": "imap.test",
                "username": "reader",
                "password": "imap-secret",
            },
            "polling_interval_seconds": 30,
        }
    )


@pytest.fixture
def log_stream():
    """Return ``(buffer, make_logger)`` for assertions on JSON log lines."""

    buffer = io.StringIO()

    def make_logger(component: str = "test") -> JsonLogger:
        return JsonLogger(stream=buffer, component=component)

    return buffer, make_logger
