"""
site_deploy.fingerprint — Content fingerprints for change detection.

The token is the MD5 hex digest wrapped in double quotes, which is exactly
what S3 returns as the ETag of an object written with a single PutObject.
Local and remote tokens can therefore be compared as plain strings.

MD5 is used for change detection only, never for integrity or security.
"""

from __future__ import annotations

import hashlib


def fingerprint(content: bytes) -> str:
    """Return the quoted MD5 hex digest of content."""
    digest = hashlib.md5(content, usedforsecurity=False).hexdigest()
    return f'"{digest}"'
