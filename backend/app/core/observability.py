"""
Request correlation middleware.

Assigns every request a correlation id, exposes it to handlers through
``request.state.request_id`` and echoes it back in ``X-Request-ID``.
"""

import time
import uuid
import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.exceptions import generic_exception_handler

REQUEST_ID_HEADER = "X-Request-ID"
# Column widths of audit_logs
MAX_REQUEST_ID_LENGTH = 64
MAX_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 500

logger = logging.getLogger("feastfrenzy.http")

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Correlation id of the request currently being handled, if any."""
    return request_id_var.get()


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse the caller's id when it is short printable ASCII, otherwise mint one."""
    if (
        incoming
        and len(incoming) <= MAX_REQUEST_ID_LENGTH
        and incoming.isascii()
        and incoming.isprintable()
    ):
        return incoming
    return str(uuid.uuid4())


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the client IP address from the request.

    Checks X-Forwarded-For first (first hop is the original client), then
    X-Real-IP, then falls back to the socket peer. Header values are
    client-controlled, so the result is cut to the width of an IPv6 address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()[:MAX_IP_LENGTH] or None

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()[:MAX_IP_LENGTH] or None

    if request.client:
        return request.client.host

    return None


@dataclass(frozen=True)
class RequestMeta:
    """Who/where/which-request context attached to audit entries."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestMeta":
        user_agent = request.headers.get("user-agent")
        return cls(
            ip_address=get_client_ip(request),
            user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
            request_id=getattr(request.state, "request_id", None),
        )


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # 1. Reuse the caller's request id or mint one
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            # 2. Unhandled errors still leave with the envelope and the headers
            response = await generic_exception_handler(request, exc)
        finally:
            request_id_var.reset(token)

        process_time = (time.perf_counter() - start_time) * 1000  # ms

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.2f}"

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(process_time, 2),
            "ip": get_client_ip(request) or "unknown",
        }

        # Log level based on status
        if response.status_code >= 500:
            logger.error("Request failed", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request error", extra=log_data)
        else:
            logger.info("Request served", extra=log_data)

        return response
