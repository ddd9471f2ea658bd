"""
site_deploy.invalidation — CloudFront invalidation paths and requests.

Only HTML documents are invalidated: every other asset is uploaded with an
immutable Cache-Control header and is expected to be content-addressed.

Path derivation for a key uploaded under prefix ``preview/change-1``:

    preview/change-1/blog.html
        /blog.html              viewer-request URI on change-1.preview.example.com
        /change-1/blog.html     URI after the viewer-request function rewrote it,
                                relative to the distribution's /preview origin path

CloudFront may hold cache entries under either URI, so both are purged. An
index document additionally purges its directory path (``/`` for the site
root) because CloudFront serves ``/`` and ``/index.html`` as distinct entries.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import quote
from uuid import uuid4

from site_deploy.exceptions import InvalidationSubmissionError
from site_deploy.keys import HTML_EXTENSION
from site_deploy.polling import PollResult, PollSettings, wait_for_status
from site_deploy.sync import has_content_type

logger = logging.getLogger(__name__)

INDEX_DOCUMENT = "index.html"
INVALIDATION_COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Path derivation (pure)
# ---------------------------------------------------------------------------


def _is_document_key(key: str, strip_html_extension: bool) -> bool:
    extension = PurePosixPath(key).suffix.lower()
    if extension == HTML_EXTENSION:
        return True
    if not strip_html_extension:
        return False
    # A stripped page keeps any dot in its stem (release-1.2.html -> release-1.2). Every other
    # uploaded key ends in an extension with a known content type.
    return not has_content_type(extension)


def _remove_leading_component(path: str, component: str) -> str:
    """Remove /component from the start of an absolute path, if present."""
    head = "/" + component.strip("/")
    if head == "/":
        return path
    if path == head:
        return "/"
    if path.startswith(head + "/"):
        return path[len(head) :]
    return path


def _index_directory(path: str, strip_html_extension: bool) -> str | None:
    """Return the directory URI served by an index document, else None."""
    name = PurePosixPath(path).name
    if name.lower() == INDEX_DOCUMENT or (strip_html_extension and name.lower() == "index"):
        return path[: -len(name)]
    return None


def _with_index_directory(path: str, strip_html_extension: bool) -> list[str]:
    directory = _index_directory(path, strip_html_extension)
    return [path] if directory is None else [path, directory]


def derive_invalidation_paths(
    changed_keys: Iterable[str],
    prefix: str,
    preview_prefix: str | None = None,
    *,
    strip_html_extension: bool = False,
) -> set[str]:
    """Map uploaded object keys to the CloudFront paths that must be purged.

    Args:
        changed_keys:         Keys written by the sync pass.
        prefix:               The deployment's key prefix (the distribution's origin path).
        preview_prefix:       Origin path shared by all preview sites, e.g. ``preview``.
                              Keys under it also get their rewritten-URI variant.
        strip_html_extension: Extension-less keys are HTML documents.

    Returns a deduplicated set; empty input yields an empty set.
    """
    paths: set[str] = set()
    for key in changed_keys:
        if not _is_document_key(key, strip_html_extension):
            continue
        absolute = "/" + key.lstrip("/")
        viewer_path = _remove_leading_component(absolute, prefix)
        paths.update(_with_index_directory(viewer_path, strip_html_extension))

        if preview_prefix and absolute.startswith("/" + preview_prefix.strip("/") + "/"):
            rewritten = _remove_leading_component(absolute, preview_prefix)
            paths.update(_with_index_directory(rewritten, strip_html_extension))
    return paths


# ---------------------------------------------------------------------------
# Invalidation requests
# ---------------------------------------------------------------------------


def encode_path(path: str) -> str:
    """Percent-encode characters CloudFront requires to be encoded in invalidation paths."""
    return quote(path, safe="/~")


def caller_reference() -> str:
    return f"invalidate-paths-{uuid4()}"


def create_invalidation(cloudfront_client: Any, distribution_id: str, paths: list[str]) -> str:
    """Submit one invalidation batch and return its Id."""
    response = cloudfront_client.create_invalidation(
        DistributionId=distribution_id,
        InvalidationBatch={
            "Paths": {"Quantity": len(paths), "Items": paths},
            "CallerReference": caller_reference(),
        },
    )
    invalidation_id = response.get("Invalidation", {}).get("Id")
    if not invalidation_id:
        raise InvalidationSubmissionError(
            f"CreateInvalidation for distribution {distribution_id} returned no Id"
        )
    return str(invalidation_id)


def wait_for_invalidation(
    cloudfront_client: Any,
    distribution_id: str,
    invalidation_id: str,
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    def fetch_status() -> str:
        response = cloudfront_client.get_invalidation(
            DistributionId=distribution_id, Id=invalidation_id
        )
        return str(response.get("Invalidation", {}).get("Status", ""))

    return wait_for_status(
        fetch_status,
        lambda status: status.lower() == INVALIDATION_COMPLETED,
        label=f"Invalidation {invalidation_id}",
        settings=settings,
        sleep=sleep,
    )


def invalidate(
    cloudfront_client: Any,
    distribution_id: str,
    paths: Iterable[str],
    *,
    settings: PollSettings | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str | None:
    """Invalidate paths and block until CloudFront reports completion.

    Returns the invalidation Id, or None when there was nothing to invalidate.
    """
    items = sorted({encode_path(path) for path in paths})
    if not items:
        logger.info("No CloudFront paths to invalidate")
        return None

    invalidation_id = create_invalidation(cloudfront_client, distribution_id, items)
    logger.info("Requested a CloudFront cache invalidation (%s), waiting...", invalidation_id)
    wait_for_invalidation(
        cloudfront_client,
        distribution_id,
        invalidation_id,
        settings=settings,
        sleep=sleep,
    )
    logger.info(
        "Successfully invalidated CloudFront cache (%d items) with paths: %s",
        len(items),
        ", ".join(items),
    )
    return invalidation_id
