"""
Request body size limits for the upload routes.

`BodySizeLimitMiddleware` is a plain ASGI middleware. For POSTs to a route with
a configured ceiling it:
- answers 413 straight away when the declared Content-Length is over the limit,
  without calling the application, and
- counts body bytes as the application reads them and raises PayloadTooLarge
  as soon as the running total crosses the limit (chunked or lying clients).

The ceilings apply to the whole multipart body, so each one is the file limit
plus MULTIPART_OVERHEAD_BYTES for boundaries and part headers. The exact
per-file limit is enforced again by the upload receiver.
"""

import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.errors import PayloadTooLarge


logger = logging.getLogger(__name__)

MULTIPART_OVERHEAD_BYTES = 64 * 1024


class BodySizeLimitMiddleware:
    """
    Reject oversized request bodies on selected routes.

    Args:
        app: Wrapped ASGI application
        limits: Maps a path suffix (e.g. "/upload") to the file size ceiling in bytes
    """

    def __init__(self, app: ASGIApp, limits: dict[str, int]) -> None:
        self.app = app
        self.limits = {suffix: size + MULTIPART_OVERHEAD_BYTES for suffix, size in limits.items()}

    def limit_for(self, path: str) -> int | None:
        for suffix, limit in self.limits.items():
            if path.rstrip("/").endswith(suffix):
                return limit
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "POST":
            await self.app(scope, receive, send)
            return

        limit = self.limit_for(scope["path"])
        if limit is None:
            await self.app(scope, receive, send)
            return

        declared = _content_length(scope)
        if declared is not None and declared > limit:
            logger.warning(
                "Rejected request body over the size limit",
                extra={"path": scope["path"], "content_length": declared, "limit": limit},
            )
            error = PayloadTooLarge(f"Request body exceeds the maximum size of {limit} bytes")
            response = JSONResponse(error.to_dict(), status_code=error.status_code)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    raise PayloadTooLarge(
                        f"Request body exceeds the maximum size of {limit} bytes"
                    )
            return message

        await self.app(scope, limited_receive, send)


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


__all__ = ["MULTIPART_OVERHEAD_BYTES", "BodySizeLimitMiddleware"]
