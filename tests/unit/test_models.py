"""Unit tests for site_deploy.models."""

from __future__ import annotations

from pathlib import Path

import pytest

from site_deploy.models import (
    PREVIEW_DISTRIBUTION_OUTPUT,
    ROOT_DISTRIBUTION_OUTPUT,
    CacheControlPolicy,
    DeploymentTarget,
    LocalFile,
    TargetKind,
    slugify_branch,
)

# ---------------------------------------------------------------------------
# slugify_branch
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("branch", "expected"),
    [
        ("main", "main"),
        ("feature/Login-Page", "feature-login-page"),
        ("fix__double//slash", "fix-double-slash"),
        ("-leading-and-trailing-", "leading-and-trailing"),
        ("dependabot/npm_and_yarn/next-14.2.3", "dependabot-npm-and-yarn-next-14-2-3"),
    ],
)
def test_slugify_branch(branch: str, expected: str) -> None:
    assert slugify_branch(branch) == expected


def test_slugify_branch_fits_a_dns_label() -> None:
    slug = slugify_branch("feature/" + "a" * 100)
    assert len(slug) <= 63
    assert not slug.endswith("-")


# ---------------------------------------------------------------------------
# DeploymentTarget
# ---------------------------------------------------------------------------


def test_root_target() -> None:
    target = DeploymentTarget.root()
    assert target.kind is TargetKind.ROOT
    assert target.prefix == "root"
    assert target.distribution_output_key == ROOT_DISTRIBUTION_OUTPUT


def test_preview_target_uses_slugified_branch() -> None:
    target = DeploymentTarget.preview("feature/Login")
    assert target.kind is TargetKind.PREVIEW
    assert target.branch_id == "feature-login"
    assert target.prefix == "preview/feature-login"
    assert target.distribution_output_key == PREVIEW_DISTRIBUTION_OUTPUT


def test_preview_target_rejects_unusable_branch() -> None:
    with pytest.raises(ValueError, match="usable preview id"):
        DeploymentTarget.preview("///")


def test_preview_kind_requires_branch_id() -> None:
    with pytest.raises(ValueError):
        DeploymentTarget(kind=TargetKind.PREVIEW)


def test_root_kind_rejects_branch_id() -> None:
    with pytest.raises(ValueError):
        DeploymentTarget(kind=TargetKind.ROOT, branch_id="main")


# ---------------------------------------------------------------------------
# LocalFile / CacheControlPolicy
# ---------------------------------------------------------------------------


def test_local_file_read(tmp_path: Path) -> None:
    (tmp_path / "docs").mkdir()
    path = tmp_path / "docs" / "Guide.HTML"
    path.write_bytes(b"<p>guide</p>")

    local = LocalFile.read(tmp_path, path)

    assert local.relative_path == "docs/Guide.HTML"
    assert local.content == b"<p>guide</p>"
    assert local.extension == ".html"


def test_cache_control_values() -> None:
    assert CacheControlPolicy.REVALIDATE == "public,max-age=0,s-maxage=31536000,must-revalidate"
    assert CacheControlPolicy.IMMUTABLE == "public,max-age=31536000,immutable"
