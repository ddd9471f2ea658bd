"""Shared fixtures for site_deploy unit tests."""

from __future__ import annotations

from pathlib import Path

import pytest

_REGION = "eu-west-2"


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fake credentials so boto3 never reaches for a real profile; moto intercepts every call."""
    monkeypatch.setenv("AWS_REGION", _REGION)
    monkeypatch.setenv("AWS_DEFAULT_REGION", _REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    """A small build output tree:

    out/
        index.html
        favicon.ico
        css/style.css
        blog/index.html
        blog/post.html
    """
    root = tmp_path / "out"
    (root / "css").mkdir(parents=True)
    (root / "blog").mkdir()
    (root / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (root / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")
    (root / "css" / "style.css").write_text("body { margin: 0 }", encoding="utf-8")
    (root / "blog" / "index.html").write_text("<h1>blog</h1>", encoding="utf-8")
    (root / "blog" / "post.html").write_text("<h1>post</h1>", encoding="utf-8")
    return root
