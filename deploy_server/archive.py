"""ZIP site-template extraction with zip-slip protection.

Entries are processed in the order they are stored in the archive's central
directory. Each entry name is checked against the destination directory
before anything is written for it; the first unsafe entry aborts the whole
extraction.

Extraction is fail-fast with no rollback: entries written before a failure
stay on disk, and the destination directory is never removed.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from .errors import ExtractionError, ExtractionErrorKind, UnsafePathError
from .paths import resolve_within

_LOG = logging.getLogger(__name__)

DEFAULT_DIR_MODE: int = 0o755
"""Mode for directories whose archive entry carries no Unix attributes."""

DEFAULT_FILE_MODE: int = 0o644
"""Mode for files whose archive entry carries no Unix attributes."""

COPY_BUFFER_SIZE: int = 64 * 1024
"""Chunk size for streaming decompressed entry data to disk."""

# Errors raised by zipfile/zlib for corrupt, encrypted or unsupported data
_MALFORMED_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, ValueError)


@dataclass
class ArchiveEntry:
    """One member of a ZIP archive, as read from the central directory.

    Attributes:
        name: Entry name as stored in the archive.
        is_dir: Whether the entry is a directory marker.
        mode: Permission bits to create the entry with.
        size: Uncompressed length in bytes.
    """

    name: str
    is_dir: bool
    mode: int
    size: int
    info: zipfile.ZipInfo = field(repr=False, compare=False)

    @classmethod
    def from_zipinfo(cls, info: zipfile.ZipInfo) -> ArchiveEntry:
        is_dir = info.is_dir()
        mode = stat.S_IMODE(info.external_attr >> 16)
        if not mode:
            mode = DEFAULT_DIR_MODE if is_dir else DEFAULT_FILE_MODE
        return cls(
            name=info.filename,
            is_dir=is_dir,
            mode=mode,
            size=info.file_size,
            info=info,
        )


def read_entries(zf: zipfile.ZipFile) -> list[ArchiveEntry]:
    """List archive entries in stored order."""
    return [ArchiveEntry.from_zipinfo(info) for info in zf.infolist()]


def _write_entry(zf: zipfile.ZipFile, entry: ArchiveEntry, target: Path) -> None:
    if entry.is_dir:
        os.makedirs(target, mode=entry.mode, exist_ok=True)
        return

    os.makedirs(target.parent, mode=DEFAULT_DIR_MODE, exist_ok=True)
    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, entry.mode)
    with os.fdopen(fd, "wb") as dst, zf.open(entry.info) as src:
        shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)


def extract_zip(archive: str | os.PathLike | BinaryIO, dest_dir: str | os.PathLike) -> int:
    """Extract a ZIP archive into dest_dir.

    Args:
        archive: Path to the archive, or a seekable binary file object.
        dest_dir: Absolute destination directory (created if missing).

    Returns:
        Number of entries written (directories and files).

    Raises:
        ExtractionError: MALFORMED if the archive or an entry's data is
            corrupt, UNSAFE_PATH if an entry escapes dest_dir, IO_FAILURE
            if the filesystem refuses a write.
    """
    dest = Path(os.path.normpath(os.fspath(dest_dir)))
    try:
        zf = zipfile.ZipFile(archive)
    except _MALFORMED_ERRORS as e:
        raise ExtractionError(ExtractionErrorKind.MALFORMED, f"not a valid zip archive: {e}") from e

    written = 0
    with zf:
        try:
            os.makedirs(dest, mode=DEFAULT_DIR_MODE, exist_ok=True)
        except OSError as e:
            raise ExtractionError(ExtractionErrorKind.IO_FAILURE, str(e)) from e

        for entry in read_entries(zf):
            try:
                target = resolve_within(dest, entry.name)
            except UnsafePathError as e:
                raise ExtractionError(
                    ExtractionErrorKind.UNSAFE_PATH,
                    f"illegal file path: {entry.name}",
                    entry_name=entry.name,
                ) from e

            try:
                _write_entry(zf, entry, target)
            except _MALFORMED_ERRORS as e:
                raise ExtractionError(
                    ExtractionErrorKind.MALFORMED,
                    f"corrupt archive entry {entry.name}: {e}",
                    entry_name=entry.name,
                ) from e
            except OSError as e:
                raise ExtractionError(
                    ExtractionErrorKind.IO_FAILURE,
                    f"cannot write {entry.name}: {e}",
                    entry_name=entry.name,
                ) from e
            written += 1

    _LOG.debug("Extracted %d entries to %s", written, dest)
    return written
