"""Strict parsing and live-reload sources for the MailPulse configuration.

What:
  Locate, parse, and validate ``mailpulse.yaml``, and expose
  pull-based configuration sources that the polling loop and the email
  service re-read on every operation.

Why:
  Endpoint settings and the polling interval live outside the application and
  may change while the watcher runs. Centralising the parsing enforces the
  same validation on first load and on every reload, and a pull-based source
  lets the loop pick up new values on its next cycle without callbacks.

How:
  Resolve candidate file locations from an explicit argument, the
  ``MAILPULSE_CONFIG_PATH`` environment variable, and well-known defaults.
  Parse YAML with PyYAML's ``safe_load``, apply password overrides from the
  environment, and validate through :class:`RuntimeConfig`.
  :class:`FileConfigSource` fingerprints the file and reloads it only when
  :func:`mailpulse.config.watcher.has_changed` says so.

Interfaces:
  - :func:`resolve_config_path`: locate the configuration file.
  - :func:`parse_runtime_config`: validate an in-memory YAML document.
  - :class:`ConfigSource`, :class:`StaticConfigSource`,
    :class:`FileConfigSource`: live configuration accessors.

Invariants:
  - All external payloads pass strict Pydantic validation before callers see
    them.
  - A reload that fails validation never replaces the last good settings.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Protocol, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from ..utils.logging import JsonLogger, get_logger
from .schema import EmailSettings, RuntimeConfig
from .watcher import ConfigFingerprint, change_reason, fingerprint, has_changed


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``mailpulse.yaml`` cannot be located, read, or validated."""


_CONFIG_ENV = "MAILPULSE_CONFIG_PATH"
_PASSWORD_ENV = {
    "smtp": "MAILPULSE_SMTP_PASSWORD",
    "imap": "MAILPULSE_IMAP_PASSWORD",
}
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("mailpulse.yaml"),
    Path("/etc/mailpulse/config.yaml"),
)


def _candidate_paths() -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    ``MAILPULSE_CONFIG_PATH`` first, then the defaults. Duplicates are dropped
    while preserving that precedence.
    """

    seen: set[Path] = set()
    env_path = os.environ.get(_CONFIG_ENV)
    candidates = []
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(_DEFAULT_LOCATIONS)
    for candidate in candidates:
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _apply_env_overrides(payload: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay passwords supplied through the environment onto ``payload``."""

    email = payload.get("email")
    if email is None:
        email = {}
    if not isinstance(email, dict):
        return payload
    for section, variable in _PASSWORD_ENV.items():
        secret = environ.get(variable)
        if not secret:
            continue
        endpoint = email.get(section) or {}
        if isinstance(endpoint, dict):
            email[section] = {**endpoint, "password": secret}
    payload["email"] = email
    return payload


def parse_runtime_config(
    text: str,
    *,
    source: str = "<memory>",
    environ: Optional[Mapping[str, str]] = None,
) -> RuntimeConfig:
    """Parse and validate YAML ``text`` into a :class:`RuntimeConfig`.

    What:
      Turn a raw configuration document into the validated model.

    Why:
      Initial loads and live reloads must go through identical checks; sharing
      this function keeps error messages consistent.

    How:
      ``yaml.safe_load`` the text, require a top-level mapping, overlay
      environment passwords, and call :meth:`RuntimeConfig.model_validate`.

    Args:
      text: YAML document.
      source: Label used in error messages (usually the file path).
      environ: Environment mapping for password overrides; defaults to
        :data:`os.environ`.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If parsing or validation fails.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    payload = _apply_env_overrides(payload, os.environ if environ is None else environ)
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration in {source}: {exc}") from exc


def resolve_config_path(path: Optional[Path | str] = None) -> Path:
    """Return the first existing candidate configuration path.

    An explicit ``path`` is used as-is and never falls back to the defaults.

    Raises:
      RuntimeConfigError: If the explicit path or every candidate is missing.
    """

    requested = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if requested is not None:
        if not requested.exists():
            raise RuntimeConfigError(f"Configuration file missing: {requested}")
        return requested
    searched: list[str] = []
    for candidate in _candidate_paths():
        if candidate.exists():
            return candidate
        searched.append(str(candidate))
    raise RuntimeConfigError(
        f"Unable to locate mailpulse.yaml (searched: {', '.join(searched) or '<none>'})"
    )


class ConfigSource(Protocol):
    """Pull-based accessor returning the settings in force right now."""

    def current(self) -> EmailSettings:
        ...


class StaticConfigSource:
    """Configuration source that always returns the same settings.

    Tests and embedding hosts that manage configuration themselves can call
    :meth:`update` to swap the settings seen by the next cycle.
    """

    def __init__(self, settings: EmailSettings) -> None:
        self._settings = settings

    def current(self) -> EmailSettings:
        return self._settings

    def update(self, settings: EmailSettings) -> None:
        self._settings = settings


class FileConfigSource:
    """Configuration source backed by a YAML file with live reload.

    What:
      Serve the ``email`` section of a configuration file, re-reading the file
      whenever its fingerprint changes.

    Why:
      The polling loop asks for the current settings at the top of every
      cycle; edits to interval, endpoint, or credentials must apply on the next
      cycle without restarting the watcher.

    How:
      Each :meth:`current` call computes a cheap fingerprint (mtime, size, and
      a checksum of the bytes) and compares it to the last successfully loaded
      one with :func:`has_changed`. On change the file is parsed with
      :func:`parse_runtime_config`. Invalid edits are logged as
      ``config_reload_failed`` and the previous settings stay in force; a
      missing file behaves the same way.

    Args:
      path: Configuration file to watch.
      logger: Optional structured logger.
    """

    def __init__(self, path: Path | str, *, logger: Optional[JsonLogger] = None) -> None:
        self._path = Path(path).expanduser()
        self._logger = logger or get_logger("mailpulse.config")
        self._lock = threading.Lock()
        self._fingerprint: Optional[ConfigFingerprint] = None
        self._config: Optional[RuntimeConfig] = None
        self._failed = False
        self._failed_fingerprint: Optional[ConfigFingerprint] = None

    @property
    def path(self) -> Path:
        return self._path

    def runtime(self) -> RuntimeConfig:
        """Return the full runtime configuration, reloading when needed.

        Raises:
          RuntimeConfigError: On the very first load when the file is missing or
            invalid; later failures keep serving the last good document.
        """

        with self._lock:
            latest = fingerprint(self._path, previous=self._fingerprint)
            if self._config is not None and not has_changed(self._fingerprint, latest):
                return self._config
            if self._config is not None and self._failed and latest == self._failed_fingerprint:
                return self._config
            try:
                if latest is None:
                    raise RuntimeConfigError(f"Configuration file missing: {self._path}")
                config = parse_runtime_config(
                    self._path.read_text(encoding="utf-8"), source=str(self._path)
                )
            except (RuntimeConfigError, OSError) as exc:
                if self._config is None:
                    if isinstance(exc, RuntimeConfigError):
                        raise
                    raise RuntimeConfigError(f"Unable to read {self._path}: {exc}") from exc
                self._failed = True
                self._failed_fingerprint = latest
                self._logger.error("config_reload_failed", exc=exc, path=str(self._path))
                return self._config
            if self._config is not None:
                self._logger.info(
                    "config_reloaded",
                    path=str(self._path),
                    reason=change_reason(self._fingerprint, latest),
                )
            self._fingerprint = latest
            self._failed = False
            self._failed_fingerprint = None
            self._config = config
            return config

    def current(self) -> EmailSettings:
        return self.runtime().email
