"""
Module: tests/unit/test_config_loader.py

What:
    Validate the configuration loader helpers: YAML parsing, schema defaults,
    environment overrides, path resolution, and the live-reload
    :class:`FileConfigSource`.

Why:
    The polling loop re-reads configuration every cycle; a broken edit must
    never take the watcher down and a valid edit must apply on the next cycle.

How:
    Write YAML payloads into ``tmp_path``, load them through the public
    helpers, and assert on the resulting models and raised exceptions.
"""

import os
import textwrap

import pytest

from fakes import read_logs
from mailpulse.config.loader import (
    ConfigLoadError,
    FileConfigSource,
    RuntimeConfigError,
    StaticConfigSource,
    parse_runtime_config,
    resolve_config_path,
)
from mailpulse.config.schema import EmailSettings, SecurityMode


MINIMAL = textwrap.dedent(
    """
    email:
      smtp:
        host: smtp.local
      imap:
        host: imap.local
    """
)


def _write(path, text):
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


def _bump_mtime(path):
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))


def test_defaults_are_applied():
    config = parse_runtime_config(MINIMAL, environ={})
    assert config.email.smtp.port == 587
    assert config.email.imap.port == 993
    assert config.email.imap.folder == "INBOX"
    assert config.email.polling_interval_seconds == 60
    assert config.email.timeout_seconds == 30.0
    assert config.logging.level == "INFO"


def test_camel_case_aliases_are_accepted():
    config = parse_runtime_config(
        textwrap.dedent(
            """
            email:
              pollingIntervalSeconds: 15
              smtp: {host: smtp.local, useSsl: false, fromAddress: a@b.c, fromDisplayName: Bot}
              imap: {host: imap.local, useSsl: true}
            """
        ),
        environ={},
    )
    assert config.email.polling_interval_seconds == 15
    assert config.email.smtp.from_display_name == "Bot"
    assert config.email.smtp.use_ssl is False


def test_security_resolution():
    config = parse_runtime_config(MINIMAL, environ={})
    assert config.email.smtp.resolved_security() is SecurityMode.STARTTLS
    assert config.email.imap.resolved_security() is SecurityMode.IMPLICIT_TLS

    tls_ports = EmailSettings.model_validate(
        {"smtp": {"use_ssl": False, "port": 465}, "imap": {"use_ssl": False, "port": 993}}
    )
    assert tls_ports.smtp.resolved_security() is SecurityMode.IMPLICIT_TLS
    assert tls_ports.imap.resolved_security() is SecurityMode.IMPLICIT_TLS

    other_ports = EmailSettings.model_validate(
        {"smtp": {"use_ssl": False, "port": 587}, "imap": {"use_ssl": False, "port": 143}}
    )
    assert other_ports.smtp.resolved_security() is SecurityMode.STARTTLS
    assert other_ports.imap.resolved_security() is SecurityMode.STARTTLS

    disabled = EmailSettings.model_validate(
        {"smtp": {"security": "none", "port": 25}, "imap": {"security": "none", "port": 143}}
    )
    assert disabled.smtp.resolved_security() is SecurityMode.NONE
    assert disabled.imap.resolved_security() is SecurityMode.NONE

    explicit = EmailSettings.model_validate({"imap": {"security": "starttls", "port": 143}})
    assert explicit.imap.resolved_security() is SecurityMode.STARTTLS


def test_environment_passwords_override_file():
    config = parse_runtime_config(
        MINIMAL,
        environ={"MAILPULSE_SMTP_PASSWORD": "s3", "MAILPULSE_IMAP_PASSWORD": "i3"},
    )
    assert config.email.smtp.password == "s3"
    assert config.email.imap.password == "i3"


@pytest.mark.parametrize(
    "payload",
    [
        "email: [1, 2",
        "- just\n- a list\n",
        "email:\n  unknown_key: 1\n",
        "email:\n  imap:\n    folder: '  '\n",
        "email:\n  timeout_seconds: 0\n",
        "logging:\n  level: LOUD\n",
    ],
)
def test_invalid_payloads_raise(payload):
    with pytest.raises(RuntimeConfigError):
        parse_runtime_config(payload, environ={})


def test_errors_share_base_class():
    assert issubclass(RuntimeConfigError, ConfigLoadError)


def test_resolve_uses_env_path(runtime_config):
    assert resolve_config_path() == runtime_config


def test_explicit_path_wins_over_env(tmp_path):
    path = _write(tmp_path / "custom.yaml", MINIMAL)
    assert resolve_config_path(path) == path
    assert resolve_config_path(str(path)) == path


def test_explicit_missing_path_does_not_fall_back(tmp_path):
    with pytest.raises(RuntimeConfigError):
        resolve_config_path(tmp_path / "absent.yaml")


def test_missing_config_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("MAILPULSE_CONFIG_PATH", str(tmp_path / "absent.yaml"))
    monkeypatch.chdir(tmp_path)
    with pytest.raises(RuntimeConfigError):
        resolve_config_path()


def test_static_source_update():
    settings = EmailSettings()
    source = StaticConfigSource(settings)
    assert source.current() is settings
    newer = settings.model_copy(update={"polling_interval_seconds": 5})
    source.update(newer)
    assert source.current() is newer


def test_file_source_reloads_on_change(tmp_path, log_stream):
    buffer, make_logger = log_stream
    path = _write(tmp_path / "live.yaml", MINIMAL)
    source = FileConfigSource(path, logger=make_logger())

    first = source.current()
    assert source.current() is first

    _write(path, MINIMAL.replace("imap.local", "imap2.local"))
    _bump_mtime(path)
    second = source.current()

    assert second.imap.host == "imap2.local"
    reloads = [entry for entry in read_logs(buffer) if entry["msg"] == "config_reloaded"]
    assert reloads[0]["reason"] == "checksum change"


def test_file_source_touch_without_edit_keeps_instance(tmp_path):
    path = _write(tmp_path / "live.yaml", MINIMAL)
    source = FileConfigSource(path)
    first = source.current()
    _bump_mtime(path)
    assert source.current() is first


def test_file_source_keeps_last_good_settings_on_bad_edit(tmp_path, log_stream):
    buffer, make_logger = log_stream
    path = _write(tmp_path / "live.yaml", MINIMAL)
    source = FileConfigSource(path, logger=make_logger())
    good = source.current()

    _write(path, "email:\n  polling_interval_seconds: [not, a, number]\n")
    _bump_mtime(path)
    assert source.current() is good
    assert source.current() is good

    failures = [entry for entry in read_logs(buffer) if entry["msg"] == "config_reload_failed"]
    assert len(failures) == 1
    assert failures[0]["lvl"] == "ERROR"

    _write(path, MINIMAL.replace("smtp.local", "smtp-fixed.local"))
    _bump_mtime(path)
    assert source.current().smtp.host == "smtp-fixed.local"


def test_file_source_survives_deleted_file(tmp_path, log_stream):
    buffer, make_logger = log_stream
    path = _write(tmp_path / "live.yaml", MINIMAL)
    source = FileConfigSource(path, logger=make_logger())
    good = source.current()

    path.unlink()
    assert source.current() is good
    assert source.current() is good
    failures = [entry for entry in read_logs(buffer) if entry["msg"] == "config_reload_failed"]
    assert len(failures) == 1


def test_file_source_first_load_failure_raises(tmp_path):
    with pytest.raises(RuntimeConfigError):
        FileConfigSource(tmp_path / "missing.yaml").current()

    broken = _write(tmp_path / "broken.yaml", "email: [")
    with pytest.raises(RuntimeConfigError):
        FileConfigSource(broken).runtime()
