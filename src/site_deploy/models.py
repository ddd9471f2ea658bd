"""
site_deploy.models — Value types shared by the sync, invalidation and deploy layers.

Storage layout:
    root/<relative path>              — production site (CloudFront origin path /root)
    preview/<branch>/<relative path>  — preview sites (CloudFront origin path /preview)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

ROOT_PREFIX = "root"
PREVIEW_PREFIX = "preview"

# CloudFormation output keys holding each distribution's id
ROOT_DISTRIBUTION_OUTPUT = "CFDistributionId"
PREVIEW_DISTRIBUTION_OUTPUT = "CFDistributionPreviewId"

_BRANCH_ID_MAX_LENGTH = 63  # DNS label limit; the branch id becomes a subdomain


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CacheControlPolicy(StrEnum):
    """Cache-Control header values. Chosen by file extension only."""

    # HTML: browsers always revalidate, CloudFront keeps it until invalidated.
    REVALIDATE = "public,max-age=0,s-maxage=31536000,must-revalidate"
    IMMUTABLE = "public,max-age=31536000,immutable"


class TargetKind(StrEnum):
    ROOT = "root"
    PREVIEW = "preview"


# ---------------------------------------------------------------------------
# Local / remote file records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocalFile:
    """Snapshot of one file in the build output directory."""

    path: Path
    relative_path: str  # POSIX separators, relative to the build root
    content: bytes

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()

    @classmethod
    def read(cls, build_root: Path, path: Path) -> LocalFile:
        return cls(
            path=path,
            relative_path=path.relative_to(build_root).as_posix(),
            content=path.read_bytes(),
        )


@dataclass(frozen=True)
class ObjectMetadata:
    """The subset of S3 HeadObject output that decides whether to re-upload."""

    content_type: str | None
    cache_control: str | None
    fingerprint: str | None  # S3 ETag, including its surrounding quotes


# ---------------------------------------------------------------------------
# Deployment target
# ---------------------------------------------------------------------------


def slugify_branch(branch: str) -> str:
    """Normalise a branch name into a DNS-label-safe identifier."""
    text = re.sub(r"[^a-z0-9]+", "-", branch.lower())
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text[:_BRANCH_ID_MAX_LENGTH].rstrip("-")


@dataclass(frozen=True)
class DeploymentTarget:
    kind: TargetKind
    branch_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind is TargetKind.PREVIEW and not self.branch_id:
            raise ValueError("preview targets require a branch_id")
        if self.kind is TargetKind.ROOT and self.branch_id is not None:
            raise ValueError("root targets do not take a branch_id")

    @classmethod
    def root(cls) -> DeploymentTarget:
        return cls(kind=TargetKind.ROOT)

    @classmethod
    def preview(cls, branch: str) -> DeploymentTarget:
        branch_id = slugify_branch(branch)
        if not branch_id:
            raise ValueError(f"branch {branch!r} does not produce a usable preview id")
        return cls(kind=TargetKind.PREVIEW, branch_id=branch_id)

    @property
    def prefix(self) -> str:
        if self.kind is TargetKind.PREVIEW:
            return f"{PREVIEW_PREFIX}/{self.branch_id}"
        return ROOT_PREFIX

    @property
    def distribution_output_key(self) -> str:
        if self.kind is TargetKind.PREVIEW:
            return PREVIEW_DISTRIBUTION_OUTPUT
        return ROOT_DISTRIBUTION_OUTPUT
