"""
site_deploy.deploy — Root, preview and teardown workflows.

    root      apply stack changes -> sync root/ -> invalidate root distribution
    preview   sync preview/<branch>/ -> invalidate preview distribution
              -> PR comment with the preview URL and proposed stack changes
    teardown  empty preview/<branch>/ -> delete the PR comment

Any error aborts the run. Files already uploaded and invalidations already
issued are not rolled back.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

import boto3

from site_deploy.config import DeployConfig
from site_deploy.exceptions import SyncError
from site_deploy.github import (
    PullRequestComments,
    delete_preview_comment,
    preview_url,
    publish_preview_comment,
)
from site_deploy.invalidation import derive_invalidation_paths, invalidate
from site_deploy.models import PREVIEW_PREFIX, DeploymentTarget
from site_deploy.stack import (
    CHANGE_SET_CREATE,
    CHANGE_SET_UPDATE,
    build_stack_parameters,
    create_change_set,
    delete_change_set,
    describe_change_set,
    describe_stack,
    execute_change_set,
    find_existing_stack,
    get_stack_output,
    prepare_stack,
    read_template,
    should_delete_existing_stack,
)
from site_deploy.storage import S3ObjectStore
from site_deploy.sync import sync_files

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeployClients:
    s3: Any
    cloudfront: Any
    cloudformation: Any
    http_session: Any = None  # requests.Session for GitHub; a new one when None

    @classmethod
    def from_region(cls, region: str) -> DeployClients:
        return cls(
            s3=boto3.client("s3", region_name=region),
            cloudfront=boto3.client("cloudfront", region_name=region),
            cloudformation=boto3.client("cloudformation", region_name=region),
        )


@dataclass(frozen=True)
class DeployResult:
    target: DeploymentTarget
    changed_keys: list[str]
    invalidation_paths: set[str] = field(default_factory=set)
    invalidation_id: str | None = None
    stack_changes: list[dict[str, Any]] | None = None


# ---------------------------------------------------------------------------
# Site sync + invalidation
# ---------------------------------------------------------------------------


def _invalidate_keys(
    clients: DeployClients,
    config: DeployConfig,
    target: DeploymentTarget,
    distribution_id: str,
    keys: list[str],
    sleep: Callable[[float], None],
) -> tuple[set[str], str | None]:
    paths = derive_invalidation_paths(
        keys,
        target.prefix,
        PREVIEW_PREFIX,
        strip_html_extension=config.strip_html_extension,
    )
    invalidation_id = invalidate(
        clients.cloudfront, distribution_id, paths, settings=config.poll, sleep=sleep
    )
    return paths, invalidation_id


def deploy_site(
    clients: DeployClients,
    config: DeployConfig,
    target: DeploymentTarget,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> DeployResult:
    """Sync the build output for target and invalidate the HTML documents that changed.

    When some files fail to sync, the files that did upload are still
    invalidated before SyncError propagates.
    """
    stack = describe_stack(clients.cloudformation, config.stack_name)
    distribution_id = get_stack_output(stack, target.distribution_output_key)
    store = S3ObjectStore(config.bucket_name, s3_client=clients.s3)

    logger.info("Syncing %s to s3://%s/%s/", config.out_dir, config.bucket_name, target.prefix)
    try:
        changed_keys = sync_files(
            store,
            config.out_dir,
            target.prefix,
            config.strip_html_extension,
            max_workers=config.sync_max_workers,
        )
    except SyncError as exc:
        if exc.changed_keys:
            _invalidate_keys(clients, config, target, distribution_id, exc.changed_keys, sleep)
        raise

    paths, invalidation_id = _invalidate_keys(
        clients, config, target, distribution_id, changed_keys, sleep
    )
    return DeployResult(
        target=target,
        changed_keys=changed_keys,
        invalidation_paths=paths,
        invalidation_id=invalidation_id,
    )


# ---------------------------------------------------------------------------
# Stack changes
# ---------------------------------------------------------------------------


def apply_stack_changes(
    clients: DeployClients,
    config: DeployConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> list[dict[str, Any]]:
    """Create a change set for the stack and execute it when configured to.

    The change set is deleted instead of executed when execution is disabled
    or when it contains no changes. Returns the changes.
    """
    cfn = clients.cloudformation
    update = prepare_stack(cfn, config.stack_name, settings=config.poll, sleep=sleep)
    change_set_id = create_change_set(
        cfn,
        config.stack_name,
        change_set_type=CHANGE_SET_UPDATE if update else CHANGE_SET_CREATE,
        template_body=read_template(config.template_path),
        parameters=build_stack_parameters(config),
    )
    changes = describe_change_set(
        cfn, config.stack_name, change_set_id, settings=config.poll, sleep=sleep
    )
    if config.execute_stack_change_set and changes:
        execute_change_set(
            cfn, config.stack_name, change_set_id, settings=config.poll, sleep=sleep
        )
    else:
        if not changes:
            logger.info("No stack changes")
        delete_change_set(cfn, config.stack_name, change_set_id)
    return changes


def preview_stack_changes(
    clients: DeployClients,
    config: DeployConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> list[dict[str, Any]] | None:
    """Return the changes the current template would make, without applying them.

    Returns None when there is no updatable stack to compare against.
    """
    cfn = clients.cloudformation
    if find_existing_stack(cfn, config.stack_name) is None:
        return None
    if should_delete_existing_stack(describe_stack(cfn, config.stack_name)):
        return None
    change_set_id = create_change_set(
        cfn,
        config.stack_name,
        change_set_type=CHANGE_SET_UPDATE,
        template_body=read_template(config.template_path),
        parameters=build_stack_parameters(config),
    )
    try:
        return describe_change_set(
            cfn, config.stack_name, change_set_id, settings=config.poll, sleep=sleep
        )
    finally:
        delete_change_set(cfn, config.stack_name, change_set_id)


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


def deploy_root(
    clients: DeployClients,
    config: DeployConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> DeployResult:
    changes = apply_stack_changes(clients, config, sleep=sleep)
    result = deploy_site(clients, config, DeploymentTarget.root(), sleep=sleep)
    return replace(result, stack_changes=changes)


def _pull_request(
    clients: DeployClients, config: DeployConfig, pr_number: int
) -> PullRequestComments:
    return PullRequestComments(
        config.github_repository,
        pr_number,
        config.github_token,
        session=clients.http_session,
    )


def deploy_preview(
    clients: DeployClients,
    config: DeployConfig,
    *,
    branch: str,
    pr_number: int,
    sleep: Callable[[float], None] = time.sleep,
) -> DeployResult:
    target = DeploymentTarget.preview(branch)
    changes = preview_stack_changes(clients, config, sleep=sleep)
    result = deploy_site(clients, config, target, sleep=sleep)

    url = preview_url(str(target.branch_id), config.preview_url_host)
    publish_preview_comment(_pull_request(clients, config, pr_number), url=url, changes=changes)
    logger.info("Preview site deployed to: %s", url)
    return replace(result, stack_changes=changes)


def teardown_preview(
    clients: DeployClients,
    config: DeployConfig,
    *,
    branch: str,
    pr_number: int,
) -> int:
    """Remove a preview site's objects and its PR comment. Returns the number of objects deleted."""
    target = DeploymentTarget.preview(branch)
    store = S3ObjectStore(config.bucket_name, s3_client=clients.s3)
    deleted = store.empty_prefix(target.prefix)
    delete_preview_comment(_pull_request(clients, config, pr_number))
    logger.info("Preview %s torn down (%d objects removed)", target.branch_id, deleted)
    return deleted
