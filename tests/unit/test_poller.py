"""
Module: tests/unit/test_poller.py

What:
    Exercise :class:`PollingLoop` end to end with a scripted snapshot and an
    injected wait primitive.

Why:
    The loop's guarantees (interval floor, failure isolation, prompt stop,
    configuration pickup) only show up across several cycles; a fake wait makes
    those cycles instantaneous and observable.

How:
    ``ScriptedSnapshot`` returns or raises the next scripted outcome on each
    ``unseen_count`` call. ``StoppingWait`` records requested durations and
    cancels the token after a fixed number of waits.

Invariants & Safety Rules:
    - No test sleeps for the configured interval; waits are recorded instead.
"""

import pytest

from fakes import read_logs
from mailpulse.config.loader import StaticConfigSource
from mailpulse.core.notifier import MailEvents
from mailpulse.core.poller import PollingLoop, PollPhase, effective_interval
from mailpulse.errors import OperationCancelled, TransportError
from mailpulse.utils.cancel import CancellationToken


class ScriptedSnapshot:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def unseen_count(self, config, token, *, timeout=None):
        self.calls.append((config, timeout))
        outcome = self.outcomes.pop(0) if self.outcomes else 0
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class StoppingWait:
    def __init__(self, stop_after):
        self.stop_after = stop_after
        self.requested = []
        self.hooks = {}

    def __call__(self, token, seconds):
        self.requested.append(seconds)
        hook = self.hooks.get(len(self.requested))
        if hook is not None:
            hook()
        if len(self.requested) >= self.stop_after:
            token.cancel()
            return True
        return False


def _transport_error():
    return TransportError("connection refused", operation="imap.connect", endpoint="imap.test:993")


@pytest.fixture
def events():
    return MailEvents()


@pytest.fixture
def received(events):
    payloads = []
    events.subscribe(payloads.append)
    return payloads


def _loop(snapshot, settings, events, wait, logger=None, **kwargs):
    return PollingLoop(
        snapshot,
        StaticConfigSource(settings),
        events,
        wait=wait,
        logger=logger,
        **kwargs,
    )


@pytest.mark.parametrize(
    "configured, override, expected",
    [
        (60, None, 60.0),
        (1, None, 5.0),
        (0, None, 5.0),
        (-3, None, 5.0),
        (60, 10, 10.0),
        (60, 2, 5.0),
        (30, 0, 30.0),
    ],
)
def test_effective_interval_applies_floor(configured, override, expected):
    assert effective_interval(configured, override) == expected


def test_loop_emits_only_changes(settings, events, received, log_stream):
    buffer, make_logger = log_stream
    snapshot = ScriptedSnapshot([0, 0, 3, 3, 0])
    wait = StoppingWait(stop_after=5)
    loop = _loop(snapshot, settings, events, wait, logger=make_logger())

    loop.run(CancellationToken())

    assert received == [0, 3, 0]
    assert len(snapshot.calls) == 5
    assert loop.phase is PollPhase.STOPPED
    messages = [entry["msg"] for entry in read_logs(buffer)]
    assert messages[0] == "polling_started"
    assert messages[-1] == "polling_stopped"
    assert messages.count("new_mail_detected") == 2


def test_wait_uses_configured_interval_with_floor(settings, events):
    tiny = settings.model_copy(update={"polling_interval_seconds": 1})
    wait = StoppingWait(stop_after=2)
    _loop(ScriptedSnapshot([1, 1]), tiny, events, wait).run(CancellationToken())
    assert wait.requested == [5.0, 5.0]


def test_failed_cycle_keeps_state_and_loop_continues(settings, events, received, log_stream):
    buffer, make_logger = log_stream
    snapshot = ScriptedSnapshot([2, _transport_error(), 2, 4])
    wait = StoppingWait(stop_after=4)
    loop = _loop(snapshot, settings, events, wait, logger=make_logger())
    failures_after_second_cycle = []
    wait.hooks[2] = lambda: failures_after_second_cycle.append(
        (loop.last_count, loop.consecutive_failures, loop.last_error)
    )

    loop.run(CancellationToken())

    assert received == [2, 4]
    assert len(snapshot.calls) == 4
    last_count, failures, last_error = failures_after_second_cycle[0]
    assert last_count == 2
    assert failures == 1
    assert "connection refused" in last_error
    assert loop.consecutive_failures == 0
    errors = [entry for entry in read_logs(buffer) if entry["lvl"] == "ERROR"]
    assert [entry["msg"] for entry in errors] == ["polling_cycle_failed"]
    assert errors[0]["error_type"] == "TransportError"


def test_consecutive_failures_accumulate(settings, events, received):
    snapshot = ScriptedSnapshot([_transport_error(), _transport_error(), _transport_error()])
    loop = _loop(snapshot, settings, events, StoppingWait(stop_after=3))
    loop.run(CancellationToken())
    assert loop.consecutive_failures == 3
    assert loop.last_count is None
    assert received == []


def test_cancellation_during_wait_stops_without_another_cycle(settings, events):
    snapshot = ScriptedSnapshot([1, 2, 3])
    wait = StoppingWait(stop_after=1)
    _loop(snapshot, settings, events, wait).run(CancellationToken())
    assert len(snapshot.calls) == 1


def test_cancelled_token_prevents_first_cycle(settings, events, received):
    snapshot = ScriptedSnapshot([1])
    token = CancellationToken()
    token.cancel()
    loop = _loop(snapshot, settings, events, StoppingWait(stop_after=1))

    loop.run(token)

    assert snapshot.calls == []
    assert received == []
    assert loop.phase is PollPhase.STOPPED


def test_cancellation_inside_query_is_not_an_error(settings, events, log_stream):
    buffer, make_logger = log_stream
    token = CancellationToken()

    class CancellingSnapshot:
        def unseen_count(self, config, token_arg, *, timeout=None):
            token.cancel()
            raise OperationCancelled("imap search cancelled")

    wait = StoppingWait(stop_after=10)
    _loop(CancellingSnapshot(), settings, events, wait, logger=make_logger()).run(token)

    assert wait.requested == []
    assert all(entry["lvl"] != "ERROR" for entry in read_logs(buffer))


def test_transport_error_after_cancel_is_treated_as_shutdown(settings, events, log_stream):
    buffer, make_logger = log_stream
    token = CancellationToken()

    class AbortedSnapshot:
        def unseen_count(self, config, token_arg, *, timeout=None):
            token.cancel()
            raise _transport_error()

    loop = _loop(AbortedSnapshot(), settings, events, StoppingWait(stop_after=10), logger=make_logger())
    loop.run(token)

    assert loop.consecutive_failures == 0
    assert all(entry["lvl"] != "ERROR" for entry in read_logs(buffer))


def test_settings_are_reread_every_cycle(settings, events):
    source = StaticConfigSource(settings)
    snapshot = ScriptedSnapshot([1, 1])
    wait = StoppingWait(stop_after=2)
    moved = settings.model_copy(
        update={
            "polling_interval_seconds": 90,
            "imap": settings.imap.model_copy(update={"folder": "Archive"}),
        }
    )
    wait.hooks[1] = lambda: source.update(moved)
    loop = PollingLoop(snapshot, source, events, wait=wait)

    loop.run(CancellationToken())

    assert [config.folder for config, _ in snapshot.calls] == ["INBOX", "Archive"]
    assert wait.requested == [30.0, 90.0]
    assert snapshot.calls[0][1] == settings.timeout_seconds


def test_interval_override_wins_over_settings(settings, events):
    wait = StoppingWait(stop_after=1)
    _loop(ScriptedSnapshot([0]), settings, events, wait, interval_override=12).run(
        CancellationToken()
    )
    assert wait.requested == [12.0]


def test_subscriber_failure_is_logged_and_count_kept(settings, events, log_stream):
    buffer, make_logger = log_stream
    calls = []

    def flaky(count):
        calls.append(count)
        raise RuntimeError("subscriber exploded")

    events.subscribe(flaky)
    loop = _loop(ScriptedSnapshot([3, 3]), settings, events, StoppingWait(stop_after=2), logger=make_logger())

    loop.run(CancellationToken())

    assert calls == [3]
    assert loop.last_count == 3
    failures = [entry for entry in read_logs(buffer) if entry["msg"] == "polling_cycle_failed"]
    assert len(failures) == 1
    assert failures[0]["error_type"] == "RuntimeError"


def test_run_cycle_reports_cancellation(settings, events):
    token = CancellationToken()
    loop = _loop(ScriptedSnapshot([OperationCancelled("stop")]), settings, events, StoppingWait(1))
    assert loop.run_cycle(token) is False
    assert loop.run_cycle(token) is True


def test_start_and_stop_background_thread(settings, events, received):
    loop = PollingLoop(ScriptedSnapshot([6]), StaticConfigSource(settings), events)

    token = loop.start()
    with pytest.raises(RuntimeError):
        loop.start()
    for _ in range(200):
        if received:
            break
        token.wait(0.01)
    assert loop.stop(timeout=5) is True

    assert received == [6]
    assert token.cancelled
    assert loop.phase is PollPhase.STOPPED


def test_stop_without_start_is_noop(settings, events):
    loop = PollingLoop(ScriptedSnapshot([]), StaticConfigSource(settings), events)
    assert loop.stop() is True
    assert loop.phase is PollPhase.IDLE
