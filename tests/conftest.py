"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Establish project import paths and define fixtures that apply a canned
  runtime configuration to every test.

Why:
  Tests import the ``mailpulse`` package straight from the source tree rather
  than an installed wheel, so ``mailpulse/src`` is prepended to ``sys.path``.
  The logging threshold is process-wide, so the autouse fixture resets it
  around each test.

How:
  Point ``MAILPULSE_CONFIG_PATH`` at ``tests/data/mailpulse.yaml``, drop any
  password overrides inherited from the environment, and restore the logging
  threshold after the test.

Interfaces:
  :func:`runtime_config` (autouse fixture), :data:`CONFIG_PATH`.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailpulse" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailpulse.utils.logging import set_level

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "mailpulse.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test."""

    monkeypatch.setenv("MAILPULSE_CONFIG_PATH", str(CONFIG_PATH))
    monkeypatch.delenv("MAILPULSE_SMTP_PASSWORD", raising=False)
    monkeypatch.delenv("MAILPULSE_IMAP_PASSWORD", raising=False)
    set_level("INFO")
    try:
        yield CONFIG_PATH
    finally:
        set_level("INFO")
