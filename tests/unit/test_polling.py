"""Unit tests for site_deploy.polling."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

import pytest

from site_deploy.exceptions import WaitTimeoutError
from site_deploy.polling import PollSettings, log_status_once, wait_for_status


def _statuses(*values: str) -> Callable[[], str]:
    it: Iterator[str] = iter(values)
    return lambda: next(it)


class _SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ---------------------------------------------------------------------------
# PollSettings
# ---------------------------------------------------------------------------


def test_default_settings_are_bounded() -> None:
    settings = PollSettings()
    assert settings.delay_seconds == 5.0
    assert settings.max_attempts == 360


@pytest.mark.parametrize(
    ("delay", "attempts"),
    [(5.0, 0), (-1.0, 10)],
)
def test_invalid_settings_rejected(delay: float, attempts: int) -> None:
    with pytest.raises(ValueError):
        PollSettings(delay_seconds=delay, max_attempts=attempts)


# ---------------------------------------------------------------------------
# log_status_once
# ---------------------------------------------------------------------------


def test_log_status_once_logs_new_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="site_deploy.polling")
    seen = log_status_once(frozenset(), "InProgress", label="Invalidation")
    assert seen == frozenset({"InProgress"})
    assert "Invalidation: InProgress" in caplog.text


def test_log_status_once_suppresses_seen_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="site_deploy.polling")
    seen = frozenset({"InProgress"})
    assert log_status_once(seen, "InProgress", label="Invalidation") is seen
    assert caplog.text == ""


def test_log_status_once_warns_on_flagged_status(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="site_deploy.polling")
    log_status_once(
        frozenset(),
        "ROLLBACK_IN_PROGRESS",
        label="Stack Status",
        warn_on=frozenset({"ROLLBACK_IN_PROGRESS"}),
        warning="check the console",
    )
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "check the console" in warnings[0].getMessage()


# ---------------------------------------------------------------------------
# wait_for_status
# ---------------------------------------------------------------------------


def test_wait_returns_first_terminal_status() -> None:
    sleep = _SleepRecorder()
    result = wait_for_status(
        _statuses("InProgress", "InProgress", "Completed"),
        lambda status: status == "Completed",
        label="Invalidation",
        settings=PollSettings(delay_seconds=2.0, max_attempts=10),
        sleep=sleep,
    )
    assert result.status == "Completed"
    assert result.attempts == 3
    assert result.seen == frozenset({"InProgress", "Completed"})
    assert sleep.calls == [2.0, 2.0]


def test_wait_does_not_sleep_when_done_immediately() -> None:
    sleep = _SleepRecorder()
    result = wait_for_status(
        _statuses("Completed"),
        lambda status: status == "Completed",
        label="Invalidation",
        sleep=sleep,
    )
    assert result.attempts == 1
    assert sleep.calls == []


def test_wait_times_out_after_max_attempts() -> None:
    sleep = _SleepRecorder()
    with pytest.raises(WaitTimeoutError) as exc_info:
        wait_for_status(
            lambda: "InProgress",
            lambda status: status == "Completed",
            label="Invalidation",
            settings=PollSettings(delay_seconds=1.0, max_attempts=4),
            sleep=sleep,
        )
    assert exc_info.value.attempts == 4
    assert exc_info.value.last_status == "InProgress"
    assert len(sleep.calls) == 3


def test_wait_threads_seen_state_between_loops(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="site_deploy.polling")
    first = wait_for_status(
        _statuses("CREATE_PENDING", "CREATE_COMPLETE"),
        lambda status: status == "CREATE_COMPLETE",
        label="ChangeSet",
        sleep=_SleepRecorder(),
    )
    caplog.clear()

    second = wait_for_status(
        _statuses("CREATE_COMPLETE"),
        lambda status: status == "CREATE_COMPLETE",
        label="ChangeSet",
        seen=first.seen,
        sleep=_SleepRecorder(),
    )

    assert second.seen == first.seen
    assert caplog.text == ""


def test_independent_loops_do_not_share_state(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="site_deploy.polling")
    for _ in range(2):
        wait_for_status(
            _statuses("Completed"),
            lambda status: status == "Completed",
            label="Invalidation",
            sleep=_SleepRecorder(),
        )
    assert caplog.text.count("Invalidation: Completed") == 2


def test_fetch_errors_propagate() -> None:
    def fetch() -> str:
        raise RuntimeError("throttled")

    with pytest.raises(RuntimeError, match="throttled"):
        wait_for_status(fetch, lambda status: True, label="X", sleep=_SleepRecorder())
