"""
site_deploy.stack — CloudFormation stack and change-set orchestration.

The stack (S3 bucket, root + preview CloudFront distributions, viewer-request
function, certificate binding) is described by a template file; this module
only drives it:

    prepare_stack        delete a ROLLBACK_COMPLETE stack so it can be re-created
    create_change_set    CREATE or UPDATE change set from the template
    describe_change_set  wait for the change set and return its changes
    execute_change_set   apply it and wait for a terminal stack status

Every wait is bounded by PollSettings and raises WaitTimeoutError.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from botocore.exceptions import ClientError

from site_deploy.config import DeployConfig
from site_deploy.exceptions import StackLookupError, StackOperationError
from site_deploy.polling import PollResult, PollSettings, wait_for_status

logger = logging.getLogger(__name__)

CHANGE_SET_CREATE = "CREATE"
CHANGE_SET_UPDATE = "UPDATE"

ROLLBACK_IN_PROGRESS = "ROLLBACK_IN_PROGRESS"
ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
DELETE_COMPLETE = "DELETE_COMPLETE"

SUCCESS_STATUSES = frozenset({"CREATE_COMPLETE", "UPDATE_COMPLETE"})
TERMINAL_STATUSES = frozenset(
    {
        "CREATE_COMPLETE",
        "CREATE_FAILED",
        "DELETE_COMPLETE",
        "DELETE_FAILED",
        "IMPORT_COMPLETE",
        "IMPORT_ROLLBACK_COMPLETE",
        "IMPORT_ROLLBACK_FAILED",
        "ROLLBACK_COMPLETE",
        "ROLLBACK_FAILED",
        "UPDATE_COMPLETE",
        "UPDATE_FAILED",
        "UPDATE_ROLLBACK_COMPLETE",
        "UPDATE_ROLLBACK_FAILED",
    }
)

_ROLLBACK_WARNING = (
    "Check the CloudFormation events in the AWS Console for more information. "
    f"{ROLLBACK_IN_PROGRESS} can take a while to complete; you can delete the stack "
    "manually in the AWS Console or wait until this process completes."
)


def read_template(path: Path) -> str:
    if not path.exists():
        raise FileNotFoundError(f"CloudFormation template not found: {path}")
    return path.read_text(encoding="utf-8")


def build_stack_parameters(config: DeployConfig) -> list[dict[str, str]]:
    """Template parameters in CloudFormation's ParameterKey/ParameterValue shape."""
    values = {
        "ProjectName": config.stack_name,
        "S3BucketName": config.bucket_name,
        "S3AllowedOrigins": config.allowed_origins,
        "RootCloudFrontHosts": config.root_hosts,
        "PreviewCloudFrontHosts": config.preview_hosts,
        "CacheCorsPathPattern": config.cache_cors_path_pattern,
        "CertificateARN": config.certificate_arn,
        "LambdaVersion": config.lambda_version,
    }
    return [{"ParameterKey": key, "ParameterValue": value} for key, value in values.items()]


# ---------------------------------------------------------------------------
# Stack lookup
# ---------------------------------------------------------------------------


def list_stacks(cloudformation_client: Any) -> list[dict[str, Any]]:
    paginator = cloudformation_client.get_paginator("list_stacks")
    stacks: list[dict[str, Any]] = []
    for page in paginator.paginate():
        stacks.extend(page.get("StackSummaries", []))
    logger.debug("Found %d stacks", len(stacks))
    return stacks


def find_existing_stack(cloudformation_client: Any, stack_name: str) -> dict[str, Any] | None:
    """Return the live stack summary for stack_name, ignoring deleted stacks."""
    logger.debug("Searching for existing stack with name: %s", stack_name)
    for summary in list_stacks(cloudformation_client):
        if summary.get("StackName") != stack_name:
            continue
        if summary.get("StackStatus") != DELETE_COMPLETE:
            return summary
    return None


def describe_stack(cloudformation_client: Any, stack_name: str) -> dict[str, Any]:
    try:
        response = cloudformation_client.describe_stacks(StackName=stack_name)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") == "ValidationError":
            raise StackLookupError(f"Stack not found: {stack_name}") from exc
        raise
    stacks = response.get("Stacks", [])
    if not stacks:
        raise StackLookupError(f"Stack not found: {stack_name}")
    return stacks[0]


def get_stack_output(stack: dict[str, Any], output_key: str) -> str:
    for output in stack.get("Outputs", []):
        if output.get("OutputKey") == output_key and output.get("OutputValue"):
            return str(output["OutputValue"])
    raise StackLookupError(f"{output_key} output not found on stack {stack.get('StackName')}")


def should_delete_existing_stack(stack: dict[str, Any]) -> bool:
    # A stack that rolled back its creation cannot be updated, only deleted and re-created.
    return stack.get("StackStatus") == ROLLBACK_COMPLETE


# ---------------------------------------------------------------------------
# Stack status waits
# ---------------------------------------------------------------------------


def _stack_status_fetcher(cloudformation_client: Any, stack_name: str) -> Callable[[], str]:
    def fetch() -> str:
        return str(describe_stack(cloudformation_client, stack_name).get("StackStatus", ""))

    return fetch


def wait_for_terminal_status(
    cloudformation_client: Any,
    stack_name: str,
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    return wait_for_status(
        _stack_status_fetcher(cloudformation_client, stack_name),
        lambda status: status in TERMINAL_STATUSES,
        label="Stack Status",
        settings=settings,
        warn_on=frozenset({ROLLBACK_IN_PROGRESS}),
        warning=_ROLLBACK_WARNING,
        sleep=sleep,
    )


def wait_for_stack_deleted(
    cloudformation_client: Any,
    stack_name: str,
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Wait until the stack reports DELETE_COMPLETE or no longer exists."""

    fetch_status = _stack_status_fetcher(cloudformation_client, stack_name)

    def fetch() -> str:
        try:
            return fetch_status()
        except StackLookupError:
            return DELETE_COMPLETE

    return wait_for_status(
        fetch,
        lambda status: status in {DELETE_COMPLETE, "DELETE_FAILED"},
        label="Stack Status",
        settings=settings,
        sleep=sleep,
    )


def delete_stack(
    cloudformation_client: Any,
    stack_name: str,
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    cloudformation_client.delete_stack(StackName=stack_name)
    result = wait_for_stack_deleted(
        cloudformation_client, stack_name, settings=settings, sleep=sleep
    )
    if result.status != DELETE_COMPLETE:
        raise StackOperationError(f"Stack {stack_name} deletion ended in {result.status}")
    logger.info("Stack %s successfully deleted", stack_name)


def prepare_stack(
    cloudformation_client: Any,
    stack_name: str,
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Return True when the stack exists and should be updated, False when it must be created."""
    summary = find_existing_stack(cloudformation_client, stack_name)
    logger.debug("Found existing stack: %s", summary is not None)
    if summary is None:
        return False

    stack = describe_stack(cloudformation_client, stack_name)
    if should_delete_existing_stack(stack):
        logger.warning(
            "Deleting existing stack %s, due to %s status", stack_name, ROLLBACK_COMPLETE
        )
        delete_stack(cloudformation_client, stack_name, settings=settings, sleep=sleep)
        return False
    return True


# ---------------------------------------------------------------------------
# Change sets
# ---------------------------------------------------------------------------


def create_change_set(
    cloudformation_client: Any,
    stack_name: str,
    *,
    change_set_type: str,
    template_body: str,
    parameters: list[dict[str, str]],
) -> str:
    """Create a change set and return its Id (ARN)."""
    response = cloudformation_client.create_change_set(
        StackName=stack_name,
        ChangeSetName=f"{stack_name}-changeset-{int(time.time() * 1000)}",
        ChangeSetType=change_set_type,
        TemplateBody=template_body,
        Parameters=parameters,
        Capabilities=["CAPABILITY_IAM"],
    )
    change_set_id = response.get("Id")
    if not change_set_id:
        raise StackOperationError("Change set did not generate an ARN")
    logger.info("Created %s change set %s", change_set_type, change_set_id)
    return str(change_set_id)


def _describe_change_set_pages(
    cloudformation_client: Any, stack_name: str, change_set_id: str
) -> tuple[str, str, list[dict[str, Any]]]:
    """Return (status, status reason, every change) for a change set."""
    changes: list[dict[str, Any]] = []
    kwargs: dict[str, Any] = {"StackName": stack_name, "ChangeSetName": change_set_id}
    while True:
        response = cloudformation_client.describe_change_set(**kwargs)
        changes.extend(response.get("Changes", []))
        next_token = response.get("NextToken")
        if not next_token:
            return str(response.get("Status", "")), str(response.get("StatusReason", "")), changes
        kwargs["NextToken"] = next_token


def describe_change_set(
    cloudformation_client: Any,
    stack_name: str,
    change_set_id: str,
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[dict[str, Any]]:
    """Wait for the change set to finish computing and return its changes.

    A FAILED change set (typically "didn't contain changes") yields no changes.
    """
    logger.info("Generating list of changes...")
    latest: dict[str, Any] = {}

    def fetch() -> str:
        status, reason, changes = _describe_change_set_pages(
            cloudformation_client, stack_name, change_set_id
        )
        latest.update(reason=reason, changes=changes)
        return status

    result = wait_for_status(
        fetch,
        lambda status: status in {"FAILED", "CREATE_COMPLETE"},
        label="ChangeSet",
        settings=settings,
        sleep=sleep,
    )
    if result.status == "FAILED":
        logger.debug("ChangeSet failed: %s", latest["reason"])
        return []
    return list(latest["changes"])


def delete_change_set(cloudformation_client: Any, stack_name: str, change_set_id: str) -> None:
    cloudformation_client.delete_change_set(StackName=stack_name, ChangeSetName=change_set_id)


def execute_change_set(
    cloudformation_client: Any,
    stack_name: str,
    change_set_id: str,
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Apply a change set and wait for the stack to settle. Returns the final status."""
    cloudformation_client.execute_change_set(StackName=stack_name, ChangeSetName=change_set_id)
    result = wait_for_terminal_status(
        cloudformation_client, stack_name, settings=settings, sleep=sleep
    )
    if result.status not in SUCCESS_STATUSES:
        raise StackOperationError(f"Stack {stack_name} change set ended in {result.status}")
    logger.info("Stack %s successfully updated (%s)", stack_name, result.status)
    return result.status
