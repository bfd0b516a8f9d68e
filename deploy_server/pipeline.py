"""Request pipeline run in front of every route.

A stage is any callable taking the request and returning either None
(continue to the next stage) or a Response (stop and send it). Stages run
in the order given; the route handler only runs when every stage passes.
Fixed headers (CORS) are applied to whatever response comes out, so they
are present on short-circuited rejections and unexpected failures too.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from .errors import BadRequestError, InternalError, LengthRequiredError, PayloadTooLargeError
from .responses import error_response

_LOG = logging.getLogger(__name__)

Stage = Callable[[Request], Response | None]


class BodySizeLimit:
    """Stage rejecting requests whose body may exceed a ceiling.

    Runs before multipart parsing, so an oversized upload is refused
    without reading it. A body sent without a declared length (chunked
    transfer encoding) cannot be checked up front and is refused with 411.
    """

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes

    def __call__(self, request: Request) -> Response | None:
        content_length = request.headers.get("content-length")
        if content_length is None:
            if "transfer-encoding" in request.headers:
                _LOG.warning(
                    "Rejected %s %s: body without Content-Length",
                    request.method,
                    request.url.path,
                )
                return error_response(LengthRequiredError("Content-Length header required"))
            return None
        try:
            length = int(content_length)
        except ValueError:
            return error_response(BadRequestError("Invalid Content-Length header"))
        if length > self.max_bytes:
            _LOG.warning(
                "Rejected %s %s: body of %d bytes exceeds limit",
                request.method,
                request.url.path,
                length,
            )
            return error_response(PayloadTooLargeError("Request body too large"))
        return None


class PipelineMiddleware(BaseHTTPMiddleware):
    """Runs request stages in order, then the route; adds fixed headers.

    An exception escaping a stage or the route becomes a 500 envelope here,
    inside the header pass, rather than a plain-text server error.
    """

    def __init__(
        self,
        app: ASGIApp,
        stages: Sequence[Stage],
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(app)
        self.stages = list(stages)
        self.headers = dict(headers or {})

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            response = None
            for stage in self.stages:
                response = stage(request)
                if response is not None:
                    break
            if response is None:
                response = await call_next(request)
        except Exception:
            _LOG.exception("Unhandled error in %s %s", request.method, request.url.path)
            response = error_response(InternalError("Internal server error"))

        for name, value in self.headers.items():
            response.headers[name] = value
        return response
