"""Unit tests for site_deploy.keys and site_deploy.fingerprint."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from site_deploy.fingerprint import fingerprint
from site_deploy.keys import map_to_object_key, relative_key_path

_ROOT = Path("/build/out")


# ---------------------------------------------------------------------------
# map_to_object_key
# ---------------------------------------------------------------------------


def test_key_keeps_html_extension_by_default() -> None:
    key = map_to_object_key(_ROOT, _ROOT / "blog" / "post.html", "root", False)
    assert key == "root/blog/post.html"


def test_key_strips_html_extension_when_enabled() -> None:
    key = map_to_object_key(_ROOT, _ROOT / "blog" / "post.html", "root", True)
    assert key == "root/blog/post"


def test_strip_is_case_insensitive() -> None:
    key = map_to_object_key(_ROOT, _ROOT / "ABOUT.HTML", "root", True)
    assert key == "root/ABOUT"


@pytest.mark.parametrize("name", ["style.css", "app.js", "page.htm", "data.html.gz"])
def test_strip_leaves_other_extensions_alone(name: str) -> None:
    key = map_to_object_key(_ROOT, _ROOT / name, "root", True)
    assert key == f"root/{name}"


def test_preview_prefix_is_nested() -> None:
    key = map_to_object_key(_ROOT, _ROOT / "index.html", "preview/feature-login", False)
    assert key == "preview/feature-login/index.html"


def test_surrounding_slashes_on_prefix_are_ignored() -> None:
    key = map_to_object_key(_ROOT, _ROOT / "index.html", "/root/", False)
    assert key == "root/index.html"


def test_empty_prefix_returns_relative_path() -> None:
    assert map_to_object_key(_ROOT, _ROOT / "a" / "b.css", "", False) == "a/b.css"


def test_key_mapping_is_deterministic() -> None:
    first = map_to_object_key(_ROOT, _ROOT / "x" / "y.html", "root", True)
    second = map_to_object_key(_ROOT, _ROOT / "x" / "y.html", "root", True)
    assert first == second


def test_file_outside_build_root_is_rejected() -> None:
    with pytest.raises(ValueError):
        relative_key_path(_ROOT, Path("/elsewhere/index.html"))


# ---------------------------------------------------------------------------
# fingerprint
# ---------------------------------------------------------------------------


def test_fingerprint_is_quoted_md5() -> None:
    content = b"<h1>hello</h1>"
    assert fingerprint(content) == f'"{hashlib.md5(content).hexdigest()}"'


def test_fingerprint_of_empty_content() -> None:
    assert fingerprint(b"") == '"d41d8cd98f00b204e9800998ecf8427e"'


def test_fingerprint_differs_for_different_content() -> None:
    assert fingerprint(b"a") != fingerprint(b"b")
