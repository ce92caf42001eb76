"""X-Request-ID correlation and the access log.

Every request carries a correlation id: a valid incoming X-Request-ID is
kept (UUIDs lowercased), anything else is replaced with a fresh UUID4. The
id is bound to the logging context while the request runs and echoed on
the response, error envelopes included.

One access log entry is written per request. Besides the status and
timing it names the matched route template and, on story routes, the story
id from the path, so entries group by endpoint and story.

Must be the outermost middleware (added last), so every other layer runs
inside the request context.
"""

import re
import time
import uuid
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from forkline.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_TOKEN_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

logger = get_logger(__name__)


def is_valid_request_id(value: str) -> bool:
    """A UUID, or 1-128 bytes of letters, digits, dots, hyphens and underscores."""
    if len(value.encode("utf-8")) > MAX_REQUEST_ID_LENGTH:
        return False
    return bool(_UUID_RE.match(value) or _TOKEN_RE.match(value))


def normalize_request_id(value: str) -> str:
    """Lowercase UUIDs; leave other valid ids untouched."""
    return value.lower() if _UUID_RE.match(value) else value


def resolve_request_id(incoming: str | None) -> str:
    """The id to use for a request given its X-Request-ID header, if any."""
    if incoming and is_valid_request_id(incoming):
        return normalize_request_id(incoming)
    return str(uuid.uuid4())


def access_log_fields(request: Request, status_code: int, duration_ms: float) -> dict[str, Any]:
    """Fields of the access log entry for a finished request.

    The route and path params are only known once routing has run.
    """
    fields: dict[str, Any] = {"status_code": status_code, "duration_ms": round(duration_ms, 2)}

    template = getattr(request.scope.get("route"), "path", None)
    if template:
        fields["route"] = template

    story_id = request.path_params.get("story_id")
    if story_id:
        fields["story_id"] = str(story_id)

    return fields


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Binds the request id for logging, echoes it, and writes the access log.

    Args:
        app: The ASGI application.
        log_requests: Write one access log entry per request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.monotonic()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
        except Exception:
            # unhandled_exception_handler renders the envelope
            logger.exception("request_failed")
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            if self.log_requests:
                elapsed_ms = (time.monotonic() - started) * 1000
                logger.info(
                    "request_completed",
                    **access_log_fields(request, response.status_code, elapsed_ms),
                )
            return response
        finally:
            clear_request_context()
