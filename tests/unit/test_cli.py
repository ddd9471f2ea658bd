"""Unit tests for site_deploy.cli."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from site_deploy import cli
from site_deploy.config import ENV_NAMES


def _clear_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for env_name in ENV_NAMES.values():
        if not env_name.startswith("AWS_"):
            monkeypatch.delenv(env_name, raising=False)


# ---------------------------------------------------------------------------
# parse_args
# ---------------------------------------------------------------------------


def test_parse_args_root() -> None:
    args = cli.parse_args(["root", "--bucket-name", "b", "--out-dir", "dist"])
    assert args.command == "root"
    assert args.bucket_name == "b"
    assert args.out_dir == "dist"
    assert args.strip_html_extension is None


def test_parse_args_preview_requires_branch_and_pr() -> None:
    args = cli.parse_args(["preview", "--branch", "feature/x", "--pr-number", "12"])
    assert args.branch == "feature/x"
    assert args.pr_number == 12
    with pytest.raises(SystemExit):
        cli.parse_args(["preview", "--branch", "feature/x"])


def test_parse_args_boolean_flags() -> None:
    args = cli.parse_args(["root", "--strip-html-extension", "--execute-stack-change-set"])
    assert args.strip_html_extension is True
    assert args.execute_stack_change_set is True


def test_parse_args_rejects_unknown_command() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["publish"])


def test_every_setting_but_the_token_has_a_flag() -> None:
    args = cli.parse_args(["root"])
    for name in ENV_NAMES:
        assert hasattr(args, name) is (name != "github_token")


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


def test_main_returns_1_on_missing_config(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_config_env(monkeypatch)
    assert cli.main(["root"]) == 1


def test_main_runs_teardown(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_config_env(monkeypatch)
    monkeypatch.setenv("S3_BUCKET_NAME", "site-bucket")
    monkeypatch.setenv("GITHUB_TOKEN", "t")
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/site")
    calls: list[dict[str, Any]] = []

    def fake_teardown(clients: Any, config: Any, **kwargs: Any) -> int:
        calls.append({"bucket": config.bucket_name, **kwargs})
        return 0

    monkeypatch.setattr(cli, "teardown_preview", fake_teardown)
    monkeypatch.setattr(cli.DeployClients, "from_region", classmethod(lambda cls, r: MagicMock()))

    assert cli.main(["teardown", "--branch", "feature/x", "--pr-number", "3"]) == 0
    assert calls == [{"bucket": "site-bucket", "branch": "feature/x", "pr_number": 3}]


def test_main_returns_1_when_workflow_fails(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    _clear_config_env(monkeypatch)

    def failing_root(clients: Any, config: Any) -> Any:
        raise FileNotFoundError("Build output directory not found")

    monkeypatch.setattr(cli, "deploy_root", failing_root)
    monkeypatch.setattr(cli.DeployClients, "from_region", classmethod(lambda cls, r: MagicMock()))
    argv = ["root", "--out-dir", str(tmp_path / "missing")]
    for flag in (
        "--stack-name",
        "--bucket-name",
        "--allowed-origins",
        "--root-hosts",
        "--preview-hosts",
        "--cache-cors-path-pattern",
        "--certificate-arn",
        "--lambda-version",
    ):
        argv += [flag, "x"]

    assert cli.main(argv) == 1
