"""MailPulse configuration package.

What:
  Provide a single import surface for configuration loading, validation, and
  the live configuration sources consumed by the polling loop.

Why:
  Callers should go through the validated schema types instead of reaching
  into raw YAML, and should not depend on the module split.

Interfaces:
  - resolve_config_path / parse_runtime_config: locate and validate
    ``mailpulse.yaml``.
  - ConfigSource / StaticConfigSource / FileConfigSource: pull-based
    accessors re-read on every operation.
  - RuntimeConfig / EmailSettings / SmtpSettings / ImapSettings /
    SecurityMode: Pydantic models.
"""

from .loader import (
    ConfigLoadError,
    ConfigSource,
    FileConfigSource,
    RuntimeConfigError,
    StaticConfigSource,
    parse_runtime_config,
    resolve_config_path,
)
from .schema import (
    MIN_POLLING_INTERVAL_SECONDS,
    EmailSettings,
    ImapSettings,
    LoggingSettings,
    RuntimeConfig,
    SecurityMode,
    SmtpSettings,
    ValidationError,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSource",
    "FileConfigSource",
    "RuntimeConfigError",
    "StaticConfigSource",
    "parse_runtime_config",
    "resolve_config_path",
    "MIN_POLLING_INTERVAL_SECONDS",
    "EmailSettings",
    "ImapSettings",
    "LoggingSettings",
    "RuntimeConfig",
    "SecurityMode",
    "SmtpSettings",
    "ValidationError",
]
