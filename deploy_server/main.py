"""Deployment API - token-protected upload endpoint for static site files.

Endpoints (all require "Authorization: Bearer <token>"):
    POST /deploy - Save uploaded files, or initialize a site template
    GET  /health - Health check
    GET  /info   - Deployment path, server time, and version

POST /deploy form fields:
    export_type: Site flavor, first path segment under the deployment root
        (default: configured export_type, else "hugo")
    relative_path: Subdirectory inside the export type directory (optional)
    init: "true" to initialize a site template instead of uploading files
    template_zip: ZIP archive unpacked into the deploy path when init=true
    template: Name of a server-side template copied when init=true and no
        template_zip is sent
    files: One or more files saved into the deploy path

Security:
    - Every request passes the bearer-token gate before reaching a route
    - relative_path, export_type, filenames and archive entries are all
      confined to the deployment root
    - Request bodies over max_body_size are refused before parsing
"""

from __future__ import annotations

from datetime import datetime

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .auth import AuthGate
from .config import Settings
from .errors import DeployError
from .intake import DeployRequest, UploadedFile, UploadIntake
from .pipeline import BodySizeLimit, PipelineMiddleware
from .responses import error_response, send_response


def create_app(settings: Settings) -> FastAPI:
    """Build the application for the given settings.

    Args:
        settings: Validated server configuration.

    Returns:
        FastAPI app with routes, request pipeline, and error handlers.
    """
    app = FastAPI(title="Deployment API", version=__version__)
    app.state.settings = settings

    gate = AuthGate(settings)
    intake = UploadIntake(settings)

    app.add_middleware(
        PipelineMiddleware,
        stages=[gate, BodySizeLimit(settings.max_body_size)],
        headers=gate.cors_headers(),
    )

    # =========================================================================
    # Error Handlers
    # =========================================================================

    @app.exception_handler(DeployError)
    async def deploy_error_handler(request: Request, exc: DeployError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return send_response(False, str(exc.detail), exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return send_response(False, f"Invalid request: {errors}", 400)

    # =========================================================================
    # Endpoints
    # =========================================================================

    @app.post("/deploy")
    def deploy(
        export_type: str = Form(""),
        relative_path: str = Form(""),
        init: str = Form(""),
        template: str = Form(""),
        template_zip: UploadFile | None = File(None),
        files: list[UploadFile] | None = File(None),
    ) -> JSONResponse:
        """Save uploaded files or initialize a site template.

        Runs in the worker threadpool, so copying and extraction do not
        block other requests.
        """
        request = DeployRequest(
            export_type=export_type,
            relative_path=relative_path,
            is_init=init == "true",
            archive=template_zip.file if template_zip is not None else None,
            template=template,
            files=[
                UploadedFile(
                    filename=upload.filename or "",
                    content_type=upload.content_type or "",
                    stream=upload.file,
                )
                for upload in files or []
            ],
        )
        result = intake.handle(request)
        return send_response(True, result.message, 200, files=result.files)

    @app.get("/health")
    def health() -> JSONResponse:
        """Health check endpoint for monitoring and load balancers."""
        return send_response(True, "Server is running properly")

    @app.get("/info")
    def info() -> dict:
        """Server information: deployment path, local time (RFC3339), version."""
        return {
            "deployment_path": settings.deployment_path,
            "server_time": datetime.now().astimezone().isoformat(timespec="seconds"),
            "version": __version__,
        }

    return app
