"""MailPulse command-line interface wiring for operational flows.

What:
  Provide a Typer-based command-line entry point for the MailPulse runtime.
  The module exposes ``send``, ``check``, ``recent``, ``watch``, and
  ``health`` so operators can exercise every public operation from a shell.

Why:
  The same configuration file drives the embedded service and the CLI, which
  makes the CLI the quickest way to confirm that endpoints and credentials work
  before a host starts the polling loop.

How:
  A Typer callback captures the global ``--config`` option. Each command calls
  :func:`mailpulse._wiring.build_runtime` and forwards to
  :class:`~mailpulse.core.service.EmailService` or
  :class:`~mailpulse.core.poller.PollingLoop`. ``watch`` installs ``SIGINT``
  and ``SIGTERM`` handlers that cancel the loop's token.

Interfaces:
  ``app`` (Typer application), ``send``, ``check``, ``recent``, ``watch``,
  ``health``, ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - ``watch`` exits ``0`` after a signal-driven shutdown.
"""
from __future__ import annotations

import json
import logging
import signal
from pathlib import Path
from typing import Optional

import typer

from ._wiring import Runtime, build_runtime, format_summary, resolve_interval
from .config.loader import ConfigLoadError
from .core.health import config_health
from .errors import MailPulseError
from .utils.cancel import CancellationToken


app = typer.Typer(help="MailPulse email integration entry point")

LOGGER = logging.getLogger("mailpulse.cli")


def _runtime(ctx: typer.Context) -> Runtime:
    config_path = (ctx.obj or {}).get("config")
    try:
        return build_runtime(config_path)
    except ConfigLoadError as exc:
        LOGGER.error("runtime_load_failed: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.callback()
def _main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to mailpulse.yaml (defaults to MAILPULSE_CONFIG_PATH, then ./mailpulse.yaml)",
    ),
) -> None:
    ctx.obj = {"config": config}


@app.command("send")
def send(
    ctx: typer.Context,
    to_address: str = typer.Argument(..., metavar="TO", help="Recipient address"),
    subject: str = typer.Argument(..., help="Subject line"),
    body: str = typer.Argument(..., help="Message body"),
    from_address: Optional[str] = typer.Option(
        None, "--from", help="Override the configured sender address"
    ),
    text: bool = typer.Option(False, "--text", help="Send the body as plain text instead of HTML"),
) -> None:
    """Send one message through the configured SMTP server."""

    runtime = _runtime(ctx)
    try:
        if from_address:
            runtime.service.send_email_from(
                from_address, to_address, subject, body, is_html=not text
            )
        else:
            runtime.service.send_email(to_address, subject, body, is_html=not text)
    except (MailPulseError, ValueError) as exc:
        LOGGER.error("send_failed: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"sent to {to_address}")


@app.command("check")
def check(ctx: typer.Context) -> None:
    """Print the number of unseen messages in the configured folder."""

    runtime = _runtime(ctx)
    try:
        count = runtime.service.check_new_emails()
    except MailPulseError as exc:
        LOGGER.error("check_failed: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(str(count))


@app.command("recent")
def recent(
    ctx: typer.Context,
    take: int = typer.Option(10, "--take", "-n", help="Number of messages to list"),
) -> None:
    """List the most recent messages as JSON lines, newest first."""

    runtime = _runtime(ctx)
    try:
        summaries = runtime.service.get_recent_emails(take)
    except MailPulseError as exc:
        LOGGER.error("recent_failed: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    for summary in summaries:
        typer.echo(format_summary(summary))


@app.command("watch")
def watch(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(
        None, help="Override the polling interval in seconds (minimum 5)"
    ),
) -> None:
    """Poll the unseen count until interrupted, printing every change.

    What:
      Runs the polling loop on the main thread and prints ``unseen=<n>`` each
      time the count changes.

    Why:
      Lets operators observe the notification stream a host would receive.

    How:
      Subscribe a printer to the event registry, install signal handlers that
      cancel the token, and restore the previous handlers on exit.
    """

    runtime = _runtime(ctx)
    settings = runtime.config_source.current()
    loop = runtime.polling_loop(interval)
    runtime.events.subscribe(lambda count: typer.echo(f"unseen={count}"))
    token = CancellationToken()

    def _handle_signal(signum, frame) -> None:
        LOGGER.info("watch_signal_received signal=%s", signum)
        token.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle_signal)
    typer.echo(
        f"Watching {settings.imap.folder} on {settings.imap.endpoint} "
        f"every {resolve_interval(settings, interval):g} seconds"
    )
    try:
        loop.run(token)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
    LOGGER.info("watch_stopped")


@app.command("health")
def health(ctx: typer.Context) -> None:
    """Print the configuration health report as JSON; exit 1 when degraded."""

    runtime = _runtime(ctx)
    report = config_health(runtime.config_source.current())
    typer.echo(json.dumps(report.to_dict(), sort_keys=True))
    if report.status != "ok":
        raise typer.Exit(code=1)


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
