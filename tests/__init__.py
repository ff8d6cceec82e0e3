"""MailPulse test suite.

``tests/unit`` covers each module against in-memory IMAP and SMTP fakes,
``tests/e2e`` drives the CLI and the polling loop against real configuration
files, and ``tests/test_cli_wiring.py`` checks the Typer commands.
"""
