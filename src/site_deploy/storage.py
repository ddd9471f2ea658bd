"""
site_deploy.storage — S3 object store used by the sync engine and preview teardown.

Wraps a boto3 S3 client bound to one bucket. A missing object on HeadObject
is a normal outcome (returned as None); every other ClientError propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

import boto3
from botocore.exceptions import ClientError

from site_deploy.exceptions import ObjectDeletionError
from site_deploy.models import ObjectMetadata

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
# DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code", "") in _NOT_FOUND_CODES


class S3ObjectStore:
    """Object store for a single S3 bucket."""

    def __init__(self, bucket: str, *, s3_client: Any = None, region: str | None = None) -> None:
        self.bucket = bucket
        self._s3: Any = s3_client or boto3.client("s3", region_name=region)

    def head_object(self, key: str) -> ObjectMetadata | None:
        """Return the remote metadata for key, or None when the object does not exist."""
        try:
            response = self._s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                return None
            raise
        return ObjectMetadata(
            content_type=response.get("ContentType"),
            cache_control=response.get("CacheControl"),
            fingerprint=response.get("ETag"),
        )

    def put_object(self, key: str, body: bytes, *, content_type: str, cache_control: str) -> None:
        """Write body and its headers in a single PutObject."""
        self._s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            CacheControl=cache_control,
        )

    def iter_keys(self, prefix: str) -> Iterator[str]:
        paginator = self._s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                yield obj["Key"]

    def list_keys(self, prefix: str) -> list[str]:
        return list(self.iter_keys(prefix))

    def delete_keys(self, keys: Iterable[str]) -> int:
        """Delete keys in batches. Returns the number of keys requested for deletion."""
        pending = list(keys)
        for start in range(0, len(pending), DELETE_BATCH_SIZE):
            batch = pending[start : start + DELETE_BATCH_SIZE]
            response = self._s3.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            errors = response.get("Errors", [])
            if errors:
                first = errors[0]
                raise ObjectDeletionError(
                    f"Failed to delete {len(errors)} object(s) from {self.bucket}: "
                    f"{first.get('Key')}: {first.get('Code')} {first.get('Message')}"
                )
        return len(pending)

    def empty_prefix(self, prefix: str) -> int:
        """Delete every object under prefix/. Returns the number of objects deleted."""
        directory = prefix.strip("/") + "/"
        deleted = self.delete_keys(self.list_keys(directory))
        logger.info("Deleted %d objects under s3://%s/%s", deleted, self.bucket, directory)
        return deleted
