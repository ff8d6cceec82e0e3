"""MailPulse logging helpers with deterministic JSON emission and redaction.

What:
  Offer a tiny facade over Python streams so every MailPulse component emits
  JSON log lines with consistent fields, a shared severity threshold, and
  automatic removal of credentials and message content.

Why:
  The polling loop runs unattended for days; operators grep its output to see
  when the unseen count moved and why a cycle failed. A structured layout keeps
  parsing trivial while preventing passwords, subjects, or previews from
  leaking into shared log storage.

How:
  Provide a :class:`JsonLogger` dataclass bound to a stream and a component
  name. Each call builds a payload with ``ts``/``lvl``/``msg``/``component``,
  merges a recursively redacted copy of the keyword context, and writes one
  line. :func:`set_level` adjusts the process-wide threshold below which
  entries are dropped.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`, :func:`set_level`.

Invariants & Safety:
  - Known sensitive keys (``password``, ``subject``, ``body``, ``preview``) are
    replaced with ``[redacted]`` even inside nested dictionaries.
  - Streams are flushed after every write so the last cycle before a crash is
    always visible.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"password", "subject", "body", "preview"})

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "WARNING": 30, "ERROR": 40}
_threshold = _LEVELS["INFO"]


def set_level(level: str) -> None:
    """Set the minimum severity emitted by every :class:`JsonLogger`.

    Args:
      level: ``DEBUG``, ``INFO``, ``WARN``/``WARNING`` or ``ERROR`` (any case).

    Raises:
      ValueError: If ``level`` is not recognised.
    """

    global _threshold
    try:
        _threshold = _LEVELS[level.upper()]
    except KeyError:
        raise ValueError(f"unknown log level {level!r}") from None


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits single-line JSON entries that include a timestamp, severity, a
      component tag, and optional supplemental fields.

    Why:
      Centralising structured logging keeps the redaction rules in one place
      and gives tests a stable schema to assert against.

    How:
      Stores the destination stream and component label, then exposes
      :meth:`debug`, :meth:`info`, :meth:`warning`, and :meth:`error` helpers
      that forward to :meth:`log`.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "mailpulse"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Entries below the threshold configured through :func:`set_level` are
        dropped before any serialisation work happens.

        Args:
          level: Severity (``"DEBUG"``, ``"INFO"``, ``"WARN"``, ``"ERROR"``).
          message: Event name, e.g. ``"polling_cycle_failed"``.
          extra: Optional context dictionary that will be redacted recursively.
        """

        level = level.upper()
        if _LEVELS.get(level, _LEVELS["ERROR"]) < _threshold:
            return
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level,
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, *, exc: Optional[BaseException] = None, **kwargs: Any) -> None:
        """Log an error entry, flattening ``exc`` into ``error`` fields.

        Args:
          message: Event name describing the failure.
          exc: Optional exception whose type and text are attached as
            ``error_type`` and ``error``.
          **kwargs: Additional fields for troubleshooting.
        """

        if exc is not None:
            kwargs.setdefault("error", str(exc))
            kwargs.setdefault("error_type", type(exc).__name__)
            cause = exc.__cause__
            if cause is not None:
                kwargs.setdefault("cause", f"{type(cause).__name__}: {cause}")
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive values masked, recursively."""

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component`` on ``stdout``."""

    return JsonLogger(component=component)
