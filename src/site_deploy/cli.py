"""
site-deploy — Deploy a static site build to S3 + CloudFront.

Usage:
    site-deploy root --out-dir out
    site-deploy preview --branch feature/login --pr-number 42
    site-deploy teardown --branch feature/login --pr-number 42

Every flag can also be supplied through the environment variable listed in
site_deploy.config.ENV_NAMES (e.g. --bucket-name / S3_BUCKET_NAME).

Exit codes:
    0  Deployment completed
    1  Deployment failed (reason logged)
"""

from __future__ import annotations

import argparse
import logging

from site_deploy.config import DeployConfig, load_config
from site_deploy.deploy import DeployClients, deploy_preview, deploy_root, teardown_preview

logger = logging.getLogger("site_deploy")

_STRING_FLAGS: dict[str, str] = {
    "--stack-name": "CloudFormation stack name",
    "--bucket-name": "S3 bucket holding every site version",
    "--allowed-origins": "CORS origins allowed on the bucket",
    "--root-hosts": "CloudFront aliases of the root distribution",
    "--preview-hosts": "CloudFront aliases of the preview distribution",
    "--cache-cors-path-pattern": "Path pattern cached with CORS headers",
    "--certificate-arn": "ACM certificate ARN (us-east-1)",
    "--lambda-version": "Viewer-request function version",
    "--out-dir": "Build output directory to upload",
    "--preview-url-host": "Host under which preview sites are served",
    "--template-path": "CloudFormation template file",
    "--github-repository": "owner/name of the repository (for PR comments)",
    "--region": "AWS region (default us-east-1)",
    "--poll-delay-seconds": "Delay between status polls",
    "--poll-max-attempts": "Maximum status polls before timing out",
    "--sync-max-workers": "Files uploaded concurrently",
}


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    for flag, help_text in _STRING_FLAGS.items():
        parser.add_argument(flag, default=None, help=help_text)
    parser.add_argument(
        "--strip-html-extension",
        action="store_true",
        default=None,
        help="Store .html files without their extension",
    )
    parser.add_argument(
        "--execute-stack-change-set",
        action="store_true",
        default=None,
        help="Apply stack changes instead of only reporting them",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Deploy a static site build to S3 and invalidate CloudFront"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    root = subparsers.add_parser("root", help="Deploy the production site")
    _add_common_flags(root)

    for name, help_text in (
        ("preview", "Deploy a preview site for a pull request"),
        ("teardown", "Remove a pull request's preview site"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        _add_common_flags(sub)
        sub.add_argument("--branch", required=True, help="Branch the preview is built from")
        sub.add_argument("--pr-number", required=True, type=int, help="Pull request number")

    return parser.parse_args(argv)


def run(args: argparse.Namespace, config: DeployConfig, clients: DeployClients) -> None:
    if args.command == "root":
        result = deploy_root(clients, config)
        logger.info("Root deployment complete: %d files changed", len(result.changed_keys))
    elif args.command == "preview":
        result = deploy_preview(clients, config, branch=args.branch, pr_number=args.pr_number)
        logger.info("Preview deployment complete: %d files changed", len(result.changed_keys))
    elif args.command == "teardown":
        teardown_preview(clients, config, branch=args.branch, pr_number=args.pr_number)
    else:
        raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = parse_args(argv)
    try:
        config = load_config(args, command=args.command)
        run(args, config, DeployClients.from_region(config.region))
    except Exception as exc:
        logger.error("site-deploy %s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
