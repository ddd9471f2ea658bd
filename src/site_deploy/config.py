"""
site_deploy.config — Deployment configuration.

Each setting can be given as a CLI flag or an environment variable; the flag
wins. Which settings are required depends on the command being run:

    root      stack + bucket + build output + stack parameters
    preview   as root, plus GitHub repository/token and preview URL host
    teardown  bucket + GitHub repository/token
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from site_deploy.exceptions import ConfigError
from site_deploy.polling import DEFAULT_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS, PollSettings

DEFAULT_REGION = "us-east-1"  # CloudFront certificates must live in us-east-1
DEFAULT_TEMPLATE_PATH = "cloudformation/s3bucket_with_cloudfront.yml"
DEFAULT_SYNC_MAX_WORKERS = 1

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}

# config attribute -> environment variable
ENV_NAMES: dict[str, str] = {
    "stack_name": "CF_STACK_NAME",
    "bucket_name": "S3_BUCKET_NAME",
    "allowed_origins": "S3_ALLOWED_ORIGINS",
    "root_hosts": "ROOT_CLOUDFRONT_HOSTS",
    "preview_hosts": "PREVIEW_CLOUDFRONT_HOSTS",
    "cache_cors_path_pattern": "CACHE_CORS_PATH_PATTERN",
    "certificate_arn": "CERTIFICATE_ARN",
    "lambda_version": "LAMBDA_VERSION",
    "out_dir": "OUT_DIR",
    "preview_url_host": "PREVIEW_URL_HOST",
    "template_path": "CF_TEMPLATE_PATH",
    "github_token": "GITHUB_TOKEN",
    "github_repository": "GITHUB_REPOSITORY",
    "region": "AWS_REGION",
    "strip_html_extension": "REMOVE_EXTENSION_FROM_HTML_FILES",
    "execute_stack_change_set": "EXECUTE_STACK_CHANGE_SET",
    "poll_delay_seconds": "POLL_DELAY_SECONDS",
    "poll_max_attempts": "POLL_MAX_ATTEMPTS",
    "sync_max_workers": "SYNC_MAX_WORKERS",
}

_STACK_SETTINGS = (
    "stack_name",
    "bucket_name",
    "allowed_origins",
    "root_hosts",
    "preview_hosts",
    "cache_cors_path_pattern",
    "certificate_arn",
    "lambda_version",
    "out_dir",
)

REQUIRED_SETTINGS: dict[str, tuple[str, ...]] = {
    "root": _STACK_SETTINGS,
    "preview": (*_STACK_SETTINGS, "preview_url_host", "github_token", "github_repository"),
    "teardown": ("bucket_name", "github_token", "github_repository"),
}


@dataclass(frozen=True)
class DeployConfig:
    bucket_name: str
    stack_name: str = ""
    allowed_origins: str = ""
    root_hosts: str = ""
    preview_hosts: str = ""
    cache_cors_path_pattern: str = ""
    certificate_arn: str = ""
    lambda_version: str = ""
    out_dir: Path = Path("out")
    preview_url_host: str = ""
    template_path: Path = Path(DEFAULT_TEMPLATE_PATH)
    github_token: str = field(default="", repr=False)
    github_repository: str = ""
    region: str = DEFAULT_REGION
    strip_html_extension: bool = False
    execute_stack_change_set: bool = False
    poll: PollSettings = field(default_factory=PollSettings)
    sync_max_workers: int = DEFAULT_SYNC_MAX_WORKERS


def parse_bool(raw: str | bool | None, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return raw.strip().lower() in _TRUE_VALUES


def _parse_number(name: str, raw: Any, kind: type[int] | type[float], default: Any) -> Any:
    if raw is None:
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_NAMES[name]} must be a number, got {raw!r}") from exc


def _raw_settings(args: Any, environ: Mapping[str, str]) -> dict[str, Any]:
    """Merge CLI flags over environment variables. Empty strings count as unset."""
    values: dict[str, Any] = {}
    for name, env_name in ENV_NAMES.items():
        value = getattr(args, name, None)
        if value is None or value == "":
            value = environ.get(env_name, "").strip() or None
        values[name] = value
    return values


def load_config(
    args: Any,
    *,
    command: str,
    environ: Mapping[str, str] | None = None,
) -> DeployConfig:
    """Build a DeployConfig for command, raising ConfigError listing every missing setting."""
    env = os.environ if environ is None else environ
    raw = _raw_settings(args, env)

    missing = [ENV_NAMES[name] for name in REQUIRED_SETTINGS[command] if not raw.get(name)]
    if missing:
        raise ConfigError(f"Missing required configuration for {command}: {', '.join(missing)}")

    try:
        poll = PollSettings(
            delay_seconds=_parse_number(
                "poll_delay_seconds", raw["poll_delay_seconds"], float, DEFAULT_DELAY_SECONDS
            ),
            max_attempts=_parse_number(
                "poll_max_attempts", raw["poll_max_attempts"], int, DEFAULT_MAX_ATTEMPTS
            ),
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    sync_max_workers = _parse_number(
        "sync_max_workers", raw["sync_max_workers"], int, DEFAULT_SYNC_MAX_WORKERS
    )

    return DeployConfig(
        bucket_name=str(raw["bucket_name"]),
        stack_name=str(raw["stack_name"] or ""),
        allowed_origins=str(raw["allowed_origins"] or ""),
        root_hosts=str(raw["root_hosts"] or ""),
        preview_hosts=str(raw["preview_hosts"] or ""),
        cache_cors_path_pattern=str(raw["cache_cors_path_pattern"] or ""),
        certificate_arn=str(raw["certificate_arn"] or ""),
        lambda_version=str(raw["lambda_version"] or ""),
        out_dir=Path(raw["out_dir"] or "out"),
        preview_url_host=str(raw["preview_url_host"] or ""),
        template_path=Path(raw["template_path"] or DEFAULT_TEMPLATE_PATH),
        github_token=str(raw["github_token"] or ""),
        github_repository=str(raw["github_repository"] or ""),
        region=str(raw["region"] or DEFAULT_REGION),
        strip_html_extension=parse_bool(raw["strip_html_extension"]),
        execute_stack_change_set=parse_bool(raw["execute_stack_change_set"]),
        poll=poll,
        sync_max_workers=max(1, sync_max_workers),
    )
