"""Upload intake: turns a parsed deploy request into files on disk.

Two modes:
    1. Template initialization (init=true with a template_zip archive or a
       named template): the template is unpacked into the deploy path and
       no per-file manifest is produced.
    2. Normal upload: each uploaded file is saved into the deploy path under
       its base filename. A file that cannot be saved is logged and skipped;
       the manifest lists only the files that made it to disk.

Layout:
    <deployment root>/<export type>/<relative path>/<filename>
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from .archive import extract_zip
from .config import Settings
from .errors import BadRequestError, ExtractionError, InternalError, UnsafePathError
from .paths import (
    base_filename,
    has_traversal_segment,
    join_relative,
    resolve_within,
    validate_segment_name,
)
from .responses import FileRecord
from .templates import TemplateLibrary

_LOG = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """One file part of a multipart upload.

    Attributes:
        filename: Name supplied by the client (may contain directories).
        content_type: Content type declared for the part.
        stream: Readable binary stream with the part's data.
    """

    filename: str
    content_type: str
    stream: BinaryIO


@dataclass
class DeployRequest:
    """Form fields of a /deploy request."""

    export_type: str = ""
    relative_path: str = ""
    is_init: bool = False
    archive: BinaryIO | None = None
    template: str = ""
    files: list[UploadedFile] = field(default_factory=list)


@dataclass
class DeployResult:
    """Outcome of a successful deploy.

    Attributes:
        message: Summary for the response envelope.
        deploy_path: Directory the request wrote into.
        files: Saved-file manifest; None for template initialization.
    """

    message: str
    deploy_path: Path
    files: list[FileRecord] | None = None


class UploadIntake:
    """Resolves deploy targets and persists uploads under the deployment root.

    Holds no per-request state; one instance serves all requests.

    Attributes:
        settings: Server configuration.
        templates: Library of named site templates.
    """

    def __init__(self, settings: Settings, templates: TemplateLibrary | None = None) -> None:
        self.settings = settings
        self.root = settings.deployment_root
        self.templates = templates or TemplateLibrary(settings.templates_path)

    def resolve_export_type(self, requested: str) -> str:
        """Pick the export type: request value, else configured default.

        Raises:
            BadRequestError: The export type is not a single safe segment.
        """
        export_type = requested or self.settings.default_export_type
        if not validate_segment_name(export_type):
            raise BadRequestError("Invalid export type")
        return export_type

    def resolve_target(self, export_type: str, relative_path: str) -> Path:
        """Compute root/export_type/relative_path without touching the disk.

        Raises:
            BadRequestError: relative_path contains '..' or escapes the export dir.
        """
        try:
            export_dir = resolve_within(self.root, export_type)
        except UnsafePathError as e:
            raise BadRequestError("Invalid export type") from e
        if export_dir == self.root:
            raise BadRequestError("Invalid export type")

        if not relative_path:
            return export_dir
        if has_traversal_segment(relative_path):
            raise BadRequestError("Invalid relative path")
        try:
            return resolve_within(export_dir, relative_path)
        except UnsafePathError as e:
            raise BadRequestError("Invalid relative path") from e

    def handle(self, request: DeployRequest) -> DeployResult:
        """Process a deploy request.

        Raises:
            BadRequestError: Bad export type or relative path, unknown
                template, or no files in normal mode.
            InternalError: Directory creation, temp storage, or extraction failed.
        """
        export_type = self.resolve_export_type(request.export_type)
        deploy_path = self.resolve_target(export_type, request.relative_path)

        try:
            deploy_path.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            _LOG.error("Error creating deployment directory: %s", e)
            raise InternalError(f"Error creating deployment directory: {e}") from e

        if request.is_init:
            if request.archive is not None:
                self.extract_template_archive(request.archive, deploy_path)
                return DeployResult(
                    message=f"Successfully initialized {export_type} site template at {deploy_path}",
                    deploy_path=deploy_path,
                )
            if request.template:
                self.install_named_template(request.template, deploy_path)
                return DeployResult(
                    message=(
                        f"Successfully initialized {export_type} site template "
                        f"'{request.template}' at {deploy_path}"
                    ),
                    deploy_path=deploy_path,
                )
            _LOG.info("Init requested without a template, treating as a normal upload")

        if not request.files:
            raise BadRequestError("No files sent")

        saved = self.save_files(request.files, deploy_path, request.relative_path)
        return DeployResult(
            message=f"Successfully saved {len(saved)} files to {deploy_path}",
            deploy_path=deploy_path,
            files=saved,
        )

    def extract_template_archive(self, archive: BinaryIO, deploy_path: Path) -> int:
        """Spool an uploaded ZIP to a temp file and extract it into deploy_path.

        The temp file is removed whether or not extraction succeeds. Files
        already extracted before a failure are left in place.

        Returns:
            Number of archive entries written.
        """
        try:
            tmp = tempfile.NamedTemporaryFile(prefix="template-", suffix=".zip", delete=False)
        except OSError as e:
            _LOG.error("Error creating temporary file: %s", e)
            raise InternalError(f"Error creating temporary file: {e}") from e

        tmp_path = Path(tmp.name)
        try:
            try:
                with tmp:
                    shutil.copyfileobj(archive, tmp)
            except OSError as e:
                _LOG.error("Error copying ZIP file: %s", e)
                raise InternalError(f"Error copying ZIP file: {e}") from e

            _LOG.info("Received template ZIP file (%d bytes)", tmp_path.stat().st_size)
            try:
                count = extract_zip(tmp_path, deploy_path)
            except ExtractionError as e:
                _LOG.error("Error extracting ZIP file: %s", e.message)
                raise ExtractionError(
                    e.kind, f"Error extracting ZIP file: {e.message}", e.entry_name
                ) from e
        finally:
            tmp_path.unlink(missing_ok=True)

        _LOG.info("Extracted template ZIP file (%d entries) to %s", count, deploy_path)
        return count

    def install_named_template(self, name: str, deploy_path: Path) -> int:
        """Copy a template from the local template library into deploy_path."""
        try:
            return self.templates.install(name, deploy_path)
        except OSError as e:
            _LOG.error("Error copying template %s: %s", name, e)
            raise InternalError(f"Error copying template {name}: {e}") from e

    def save_files(
        self, files: list[UploadedFile], deploy_path: Path, relative_path: str
    ) -> list[FileRecord]:
        """Save uploads in submission order, skipping any that fail."""
        saved: list[FileRecord] = []
        for upload in files:
            filename = base_filename(upload.filename)
            if filename in ("", ".", ".."):
                _LOG.warning("Skipping upload with unusable filename %r", upload.filename)
                continue

            target = deploy_path / filename
            try:
                size = _write_stream(upload.stream, target)
            except OSError as e:
                _LOG.warning("Error saving file %s: %s", target, e)
                continue

            saved.append(
                FileRecord(
                    path=join_relative(relative_path, filename),
                    content_type=upload.content_type or "",
                    size=size,
                )
            )
            _LOG.info("File saved successfully: %s (%d bytes)", target, size)
        return saved


def _write_stream(src: BinaryIO, target: Path) -> int:
    """Create/truncate target and stream src into it; returns bytes written."""
    with open(target, "wb") as dst:
        shutil.copyfileobj(src, dst)
        return dst.tell()
