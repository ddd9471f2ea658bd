"""
site_deploy.sync — Incremental upload of a build output directory to S3.

For every regular file under the build root:
    1. Map it to an object key (site_deploy.keys).
    2. Derive Cache-Control and Content-Type from its extension.
    3. Compare (Cache-Control, Content-Type, ETag) with HeadObject.
    4. PutObject only when the object is missing or any of the three differ.

Error policy: a failing file does not stop the pass. Every file is attempted,
then SyncError is raised listing the failures together with the keys that
were uploaded, so the caller can still invalidate what changed.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from site_deploy.exceptions import FileSyncFailure, SyncError, UnknownContentTypeError
from site_deploy.fingerprint import fingerprint
from site_deploy.keys import HTML_EXTENSION, map_to_object_key
from site_deploy.models import CacheControlPolicy, LocalFile
from site_deploy.storage import S3ObjectStore

logger = logging.getLogger(__name__)

# Web types that mimetypes does not know on every platform
_EXTRA_CONTENT_TYPES: dict[str, str] = {
    ".webmanifest": "application/manifest+json",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".map": "application/json",
    ".avif": "image/avif",
    ".webp": "image/webp",
}


def cache_control_for_extension(extension: str) -> CacheControlPolicy:
    if extension.lower() == HTML_EXTENSION:
        return CacheControlPolicy.REVALIDATE
    return CacheControlPolicy.IMMUTABLE


def content_type_for_extension(extension: str, *, path: Path | str = "") -> str:
    """Return the MIME type for extension, or raise UnknownContentTypeError."""
    ext = extension.lower()
    if ext in _EXTRA_CONTENT_TYPES:
        return _EXTRA_CONTENT_TYPES[ext]
    content_type = mimetypes.guess_type(f"file{ext}", strict=False)[0] if ext else None
    if content_type is None:
        raise UnknownContentTypeError(extension=ext, path=path)
    return content_type


def has_content_type(extension: str) -> bool:
    try:
        content_type_for_extension(extension)
    except UnknownContentTypeError:
        return False
    return True


def iter_build_files(build_root: Path) -> Iterator[Path]:
    """Yield every regular file under build_root in a deterministic walk order."""
    for dirpath, dirnames, filenames in os.walk(build_root):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path


def maybe_upload(store: S3ObjectStore, key: str, local_file: LocalFile) -> bool:
    """Upload local_file to key unless the remote copy is already identical.

    Returns True when an upload happened.
    """
    cache_control = cache_control_for_extension(local_file.extension)
    content_type = content_type_for_extension(local_file.extension, path=local_file.path)
    etag = fingerprint(local_file.content)

    remote = store.head_object(key)
    should_upload = (
        remote is None
        or remote.cache_control != cache_control
        or remote.content_type != content_type
        or remote.fingerprint != etag
    )
    if should_upload:
        store.put_object(
            key,
            local_file.content,
            content_type=content_type,
            cache_control=cache_control,
        )
    return should_upload


def _sync_one(
    store: S3ObjectStore,
    build_root: Path,
    path: Path,
    prefix: str,
    strip_html_extension: bool,
) -> tuple[str, bool]:
    key = map_to_object_key(build_root, path, prefix, strip_html_extension)
    uploaded = maybe_upload(store, key, LocalFile.read(build_root, path))
    return key, uploaded


def sync_files(
    store: S3ObjectStore,
    build_root: Path | str,
    prefix: str,
    strip_html_extension: bool,
    *,
    max_workers: int = 1,
) -> list[str]:
    """Sync build_root to store under prefix and return the uploaded keys.

    Keys are returned in directory-walk order regardless of max_workers.
    Raises SyncError after the pass if any file failed.
    """
    root = Path(build_root).resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Build output directory not found: {root}")

    files = list(iter_build_files(root))
    outcomes: list[tuple[str, bool] | FileSyncFailure] = []

    def attempt(path: Path) -> tuple[str, bool] | FileSyncFailure:
        try:
            return _sync_one(store, root, path, prefix, strip_html_extension)
        except Exception as exc:
            key = map_to_object_key(root, path, prefix, strip_html_extension)
            logger.error("Failed to sync %s: %s", key, exc)
            return FileSyncFailure(key=key, path=str(path), error=exc)

    if max_workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            # map() yields results in submission order
            outcomes = list(pool.map(attempt, files))
    else:
        outcomes = [attempt(path) for path in files]

    changed_keys: list[str] = []
    failures: list[FileSyncFailure] = []
    for outcome in outcomes:
        if isinstance(outcome, FileSyncFailure):
            failures.append(outcome)
            continue
        key, uploaded = outcome
        if uploaded:
            logger.info("Synced %s", key)
            changed_keys.append(key)
        else:
            logger.info("Skipped %s (no change)", key)

    logger.info("Synced %d files", len(changed_keys))
    if failures:
        raise SyncError(failures=failures, changed_keys=changed_keys)
    return changed_keys
