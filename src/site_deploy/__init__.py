"""
site_deploy — Static site deployment to S3 + CloudFront.

Incrementally syncs a build output directory to S3 (only files whose
content or headers changed are uploaded) and invalidates the CloudFront
paths of the HTML documents that changed, for the root site or for
per-pull-request preview sites.
"""

from site_deploy.exceptions import DeployError, SyncError, UnknownContentTypeError
from site_deploy.invalidation import derive_invalidation_paths, invalidate
from site_deploy.keys import map_to_object_key
from site_deploy.models import DeploymentTarget
from site_deploy.sync import maybe_upload, sync_files

__all__ = [
    "DeployError",
    "DeploymentTarget",
    "SyncError",
    "UnknownContentTypeError",
    "derive_invalidation_paths",
    "invalidate",
    "map_to_object_key",
    "maybe_upload",
    "sync_files",
]
