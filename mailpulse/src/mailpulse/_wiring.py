"""Helper utilities bridging the CLI with runtime subsystems.

What:
  Build the configuration source, email service, event registry, and polling
  loop used by :mod:`mailpulse.cli`, and resolve the watch interval.

Why:
  Keeping the assembly outside the command functions keeps them short and lets
  tests swap in a :class:`~mailpulse.config.loader.StaticConfigSource` or fake
  transports without going through Typer.

How:
  :func:`build_runtime` resolves the configuration path, performs the first
  load eagerly (so a broken file fails the command immediately), applies the
  configured log level, and returns a :class:`Runtime` bundle.

Interfaces:
  ``Runtime``, ``build_runtime``, ``resolve_interval``, ``format_summary``.

Invariants & Safety:
  - No helper logs raw email content; summaries printed by the CLI go to
    stdout only when the operator asked for them.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config.loader import ConfigSource, FileConfigSource, resolve_config_path
from .config.schema import EmailSettings
from .core.notifier import MailEvents
from .core.poller import PollingLoop, effective_interval
from .core.service import EmailService
from .imap.snapshot import MessageSummary
from .utils.logging import set_level


@dataclass
class Runtime:
    """Objects shared by one CLI invocation."""

    config_source: ConfigSource
    service: EmailService
    events: MailEvents

    def polling_loop(self, interval: Optional[int] = None) -> PollingLoop:
        return PollingLoop(
            self.service.snapshot,
            self.config_source,
            self.events,
            interval_override=interval,
        )


def build_runtime(config_path: Optional[Path | str] = None) -> Runtime:
    """Load configuration from ``config_path`` and assemble the runtime.

    Raises:
      RuntimeConfigError: If no configuration file can be found or the first
        load fails validation.
    """

    source = FileConfigSource(resolve_config_path(config_path))
    runtime_config = source.runtime()
    set_level(runtime_config.logging.level)
    return Runtime(
        config_source=source,
        service=EmailService(source),
        events=MailEvents(),
    )


def resolve_interval(settings: EmailSettings, override: Optional[int]) -> float:
    """Determine the polling interval for the watch command.

    Prefer ``override`` when positive, otherwise the configured
    ``polling_interval_seconds``; the floor from
    :func:`~mailpulse.core.poller.effective_interval` applies to both.
    """

    return effective_interval(settings.polling_interval_seconds, override)


def format_summary(summary: MessageSummary) -> str:
    """Render ``summary`` as one JSON line for ``mailpulse recent``."""

    return json.dumps(summary.to_dict(), ensure_ascii=False, sort_keys=True)
