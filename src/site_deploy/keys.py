"""
site_deploy.keys — Map build output files to S3 object keys.

    root_dir/blog/post.html  --prefix root-->            root/blog/post.html
    root_dir/blog/post.html  --prefix root, strip html--> root/blog/post

Pure path arithmetic: nothing here touches the filesystem.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

HTML_EXTENSION = ".html"


def relative_key_path(build_root: Path | str, file_path: Path | str) -> PurePosixPath:
    """Return file_path relative to build_root using POSIX separators."""
    relative = Path(file_path).relative_to(Path(build_root))
    return PurePosixPath(relative.as_posix())


def map_to_object_key(
    build_root: Path | str,
    file_path: Path | str,
    prefix: str,
    strip_html_extension: bool,
) -> str:
    """Return the object key for file_path under prefix.

    When strip_html_extension is set, a ``.html`` suffix (any case) is dropped
    entirely so ``blog.html`` is stored as ``blog``. Every other extension is
    kept as-is.
    """
    relative = relative_key_path(build_root, file_path)
    if strip_html_extension and relative.suffix.lower() == HTML_EXTENSION:
        relative = relative.with_suffix("")
    clean_prefix = prefix.strip("/")
    if not clean_prefix:
        return str(relative)
    return f"{clean_prefix}/{relative}"
