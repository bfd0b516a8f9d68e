"""Named site templates provisioned from a local directory.

Alternative to uploading a template archive: the server keeps a library of
ready-made site skeletons, one directory per template, and copies one into
the deployment path on request.

Directory Structure:
    <templates_path>/
    +-- hugo-basic/
    |   +-- config.toml
    |   +-- content/
    +-- plain-html/
        +-- index.html
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from .errors import BadRequestError, UnsafePathError
from .paths import resolve_within, validate_segment_name

_LOG = logging.getLogger(__name__)


def copy_template_tree(src: Path, dst: Path) -> int:
    """Recursively copy a directory tree, preserving permission bits.

    Existing files in dst are overwritten; other files in dst are left alone.

    Args:
        src: Source directory.
        dst: Destination directory (created if missing).

    Returns:
        Number of files copied.

    Raises:
        NotADirectoryError: src is not a directory.
        OSError: Any filesystem failure while copying.
    """
    if not src.is_dir():
        raise NotADirectoryError(f"{src} is not a directory")

    dst.mkdir(mode=src.stat().st_mode & 0o777, parents=True, exist_ok=True)

    copied = 0
    for entry in sorted(src.iterdir()):
        target = dst / entry.name
        if entry.is_dir():
            copied += copy_template_tree(entry, target)
        else:
            shutil.copyfile(entry, target)
            shutil.copymode(entry, target)
            copied += 1
    return copied


class TemplateLibrary:
    """Lookup of named templates under a single root directory.

    Attributes:
        root: Absolute path of the templates directory.
    """

    def __init__(self, root: str | os.PathLike) -> None:
        self.root = Path(os.path.abspath(root))

    def resolve(self, name: str) -> Path:
        """Get the directory of a named template.

        Raises:
            BadRequestError: Invalid name or no such template.
        """
        if not validate_segment_name(name):
            raise BadRequestError(f"Invalid template name: {name}")
        try:
            path = resolve_within(self.root, name)
        except UnsafePathError as e:
            raise BadRequestError(f"Invalid template name: {name}") from e
        if not path.is_dir():
            raise BadRequestError(f"Unknown template: {name}")
        return path

    def install(self, name: str, dest: Path) -> int:
        """Copy a named template into dest.

        Returns:
            Number of files copied.
        """
        src = self.resolve(name)
        count = copy_template_tree(src, dest)
        _LOG.info("Copied template %s (%d files) to %s", name, count, dest)
        return count
