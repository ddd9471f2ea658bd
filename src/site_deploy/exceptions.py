"""
site_deploy.exceptions — Deployment error taxonomy.

Every error that aborts a deployment run derives from DeployError so the CLI
can report it as the run's failure reason with a single except clause.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class DeployError(RuntimeError):
    """Base class for deployment errors."""


class ConfigError(DeployError):
    """Raised when required configuration values are missing or invalid."""


class UnknownContentTypeError(DeployError):
    """Raised when a file extension maps to no known MIME type."""

    def __init__(self, *, extension: str, path: Path | str) -> None:
        self.extension = extension
        self.path = str(path)
        super().__init__(f"Unable to detect content-type for {extension or '<none>'} ({path})")


@dataclass(frozen=True)
class FileSyncFailure:
    key: str
    path: str
    error: Exception


class SyncError(DeployError):
    """
    Raised after a sync pass in which one or more files failed.

    The pass attempts every file before raising. ``changed_keys`` holds the
    keys that were uploaded successfully so callers can still invalidate them.
    """

    def __init__(self, *, failures: list[FileSyncFailure], changed_keys: list[str]) -> None:
        self.failures = failures
        self.changed_keys = changed_keys
        summary = "; ".join(f"{f.key}: {f.error}" for f in failures)
        super().__init__(f"{len(failures)} file(s) failed to sync: {summary}")


class ObjectDeletionError(DeployError):
    """Raised when DeleteObjects reports per-key failures."""


class InvalidationSubmissionError(DeployError):
    """Raised when CloudFront accepts an invalidation but returns no Id."""


class StackLookupError(DeployError):
    """Raised when a stack, or one of its outputs, cannot be found."""


class StackOperationError(DeployError):
    """Raised when a stack create/update settles in a failed status."""


class WaitTimeoutError(DeployError):
    """Raised when a polling loop exhausts its attempts without reaching a terminal status."""

    def __init__(self, *, label: str, attempts: int, last_status: str | None) -> None:
        self.label = label
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Timed out waiting for {label} after {attempts} attempts "
            f"(last status: {last_status or 'unknown'})"
        )


class GitHubError(DeployError):
    """Raised when the GitHub REST API returns a non-success response."""

    def __init__(self, *, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
