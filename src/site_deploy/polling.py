"""
site_deploy.polling — Bounded status polling for CloudFormation and CloudFront.

Each wait loop calls a status fetcher on a fixed delay until a predicate
accepts the status or max_attempts is exhausted (WaitTimeoutError).

Status lines are logged once per distinct status. The set of statuses
already logged is plain data: it is passed into wait_for_status and returned
in PollResult.seen, so a caller that wants to continue a loop's dedup state
can thread it through, and a fresh loop starts from an empty set.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from site_deploy.exceptions import WaitTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 5.0
DEFAULT_MAX_ATTEMPTS = 360  # 30 minutes at the default delay


@dataclass(frozen=True)
class PollSettings:
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")


@dataclass(frozen=True)
class PollResult:
    status: str
    attempts: int
    seen: frozenset[str]


def log_status_once(
    seen: frozenset[str],
    status: str,
    *,
    label: str,
    warn_on: frozenset[str] = frozenset(),
    warning: str = "",
) -> frozenset[str]:
    """Log status unless it is already in seen. Returns the updated set."""
    if status in seen:
        return seen
    if status in warn_on:
        logger.warning("%s %s detected! %s", label, status, warning)
    logger.info("%s: %s", label, status)
    return seen | {status}


def wait_for_status(
    fetch_status: Callable[[], str],
    is_done: Callable[[str], bool],
    *,
    label: str,
    settings: PollSettings | None = None,
    seen: frozenset[str] = frozenset(),
    warn_on: frozenset[str] = frozenset(),
    warning: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Poll fetch_status until is_done accepts it.

    Raises WaitTimeoutError after settings.max_attempts fetches without a
    terminal status. Exceptions raised by fetch_status propagate unchanged.
    """
    settings = settings or PollSettings()
    status: str | None = None
    for attempt in range(1, settings.max_attempts + 1):
        status = fetch_status()
        seen = log_status_once(seen, status, label=label, warn_on=warn_on, warning=warning)
        if is_done(status):
            return PollResult(status=status, attempts=attempt, seen=seen)
        if attempt < settings.max_attempts:
            sleep(settings.delay_seconds)
    raise WaitTimeoutError(label=label, attempts=settings.max_attempts, last_status=status)
