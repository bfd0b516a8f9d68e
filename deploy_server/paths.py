"""Path containment checks for caller-supplied names.

Every path that arrives from a request (the relative_path form field, the
export type, template names, uploaded filenames, archive entry names) goes
through this module before anything is written to disk.

All checks are lexical: paths are joined and normalized as strings, so a
target never has to exist and symlinks on disk are never consulted.

Usage:
    from deploy_server.paths import resolve_within

    target = resolve_within("/srv/deploy/hugo", "blog/posts")
    # -> Path('/srv/deploy/hugo/blog/posts')

    resolve_within("/srv/deploy/hugo", "../../etc")
    # -> raises UnsafePathError
"""

from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path, PurePosixPath, PureWindowsPath

from .errors import UnsafePathError

# Single path segment: letters, digits, underscore, dot, hyphen
SEGMENT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _split_segments(candidate: str) -> list[str]:
    return candidate.replace("\\", "/").split("/")


def has_traversal_segment(candidate: str) -> bool:
    """Check whether a path contains a '..' segment.

    Both '/' and '\\' count as separators, so 'a\\..\\b' is caught too.

    Args:
        candidate: Caller-supplied relative path.

    Returns:
        True if any segment is exactly '..'.
    """
    return ".." in _split_segments(candidate)


def is_rooted(candidate: str) -> bool:
    """Check whether a path is absolute or drive-rooted.

    Catches POSIX absolute paths ('/etc/passwd') as well as Windows forms
    ('C:\\x', 'C:x', '\\\\server\\share') that a client may send.
    """
    if not candidate:
        return False
    normalized = candidate.replace("\\", "/")
    if PurePosixPath(normalized).is_absolute():
        return True
    return bool(PureWindowsPath(candidate).drive)


def resolve_within(root: str | os.PathLike, candidate: str) -> Path:
    """Join a relative path onto root and verify it stays inside.

    The result must equal root or be nested strictly inside it after
    normalizing '.' and '..' segments.

    Args:
        root: Containment directory, already absolute.
        candidate: Caller-supplied relative path ('' means root itself).

    Returns:
        The normalized absolute target path.

    Raises:
        UnsafePathError: The candidate is rooted or escapes root.
    """
    base = os.path.normpath(os.fspath(root))
    if is_rooted(candidate):
        raise UnsafePathError(candidate)

    relative = "/".join(_split_segments(candidate))
    target = os.path.normpath(os.path.join(base, relative)) if relative else base

    prefix = base if base.endswith(os.sep) else base + os.sep
    if target != base and not target.startswith(prefix):
        raise UnsafePathError(candidate)
    return Path(target)


def validate_segment_name(name: str) -> bool:
    """Validate that a name is usable as a single directory segment.

    Args:
        name: Export type or template name.

    Returns:
        True if the name is one safe segment, False otherwise.
    """
    if not name or name in (".", ".."):
        return False
    return bool(SEGMENT_NAME_PATTERN.match(name))


def base_filename(filename: str) -> str:
    """Strip any directory components from an uploaded filename.

    Example:
        >>> base_filename("../../etc/passwd")
        'passwd'
        >>> base_filename("C:\\\\Users\\\\me\\\\a.txt")
        'a.txt'
    """
    return _split_segments(filename)[-1]


def join_relative(relative_path: str, filename: str) -> str:
    """Build the manifest path of a saved file, relative to the export dir."""
    relative = "/".join(_split_segments(relative_path)) if relative_path else ""
    return posixpath.normpath(posixpath.join(relative, filename))
