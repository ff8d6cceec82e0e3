"""Pydantic models describing the MailPulse configuration document."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


MIN_POLLING_INTERVAL_SECONDS = 5
"""Floor applied to the wait between polling cycles, whatever is configured."""


class ValidationError(ValueError):
    """Raised when configuration data does not satisfy the schema."""


class SecurityMode(str, Enum):
    """Transport security applied when connecting to a mail server."""

    NONE = "none"
    IMPLICIT_TLS = "implicit_tls"
    STARTTLS = "starttls"


_MODEL_CONFIG = ConfigDict(
    extra="forbid",
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


class _EndpointSettings(BaseModel):
    """Fields shared by the SMTP and IMAP endpoints."""

    model_config = _MODEL_CONFIG

    host: str = ""
    port: int = Field(default=0, ge=0, le=65535)
    use_ssl: bool = True
    security: Optional[SecurityMode] = None
    username: str = ""
    password: str = ""

    @field_validator("host")
    @classmethod
    def _strip_host(cls, value: str) -> str:
        return value.strip()

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username.strip())


class SmtpSettings(_EndpointSettings):
    """Outbound SMTP endpoint and sender identity."""

    port: int = Field(default=587, ge=0, le=65535)
    from_address: str = ""
    from_display_name: str = ""

    def resolved_security(self) -> SecurityMode:
        """Return the effective security mode.

        An explicit ``security`` wins; only ``security: none`` disables TLS.
        Otherwise port 465 without ``use_ssl`` implies TLS on connect and every
        other case upgrades with STARTTLS when the server offers it.
        """

        if self.security is not None:
            return self.security
        if not self.use_ssl and self.port == 465:
            return SecurityMode.IMPLICIT_TLS
        return SecurityMode.STARTTLS

    @property
    def sender_name(self) -> str:
        return self.from_display_name.strip() or self.from_address


class ImapSettings(_EndpointSettings):
    """Inbound IMAP endpoint and the folder being watched."""

    port: int = Field(default=993, ge=0, le=65535)
    folder: str = "INBOX"

    @field_validator("folder")
    @classmethod
    def _require_folder(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValidationError("imap.folder must not be empty")
        return value

    def resolved_security(self) -> SecurityMode:
        """Return the effective security mode.

        An explicit ``security`` wins; only ``security: none`` disables TLS.
        Otherwise ``use_ssl`` or port 993 selects TLS on connect, and any other
        port upgrades with STARTTLS when the server offers it.
        """

        if self.security is not None:
            return self.security
        if self.use_ssl or self.port == 993:
            return SecurityMode.IMPLICIT_TLS
        return SecurityMode.STARTTLS


class EmailSettings(BaseModel):
    """The ``email`` section: both endpoints plus polling cadence."""

    model_config = _MODEL_CONFIG

    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    imap: ImapSettings = Field(default_factory=ImapSettings)
    polling_interval_seconds: int = 60
    timeout_seconds: float = Field(default=30.0, gt=0)


class LoggingSettings(BaseModel):
    """The ``logging`` section."""

    model_config = _MODEL_CONFIG

    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}:
            raise ValidationError(f"unsupported log level '{value}'")
        return upper


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``mailpulse.yaml``."""

    model_config = _MODEL_CONFIG

    version: int = 1
    email: EmailSettings = Field(default_factory=EmailSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
