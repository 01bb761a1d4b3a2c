"""
RequestContext Middleware - Adds request tracking to all requests.

Every request gets:
- request_id: from the caller's X-Request-ID header, or a new UUID
- ip_address: client IP (X-Forwarded-For only from trusted proxies)

Both are stored in request.state and bound to the structlog context so every
log line emitted while handling the request carries them. The request id is
echoed back in the X-Request-ID response header.
"""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from tagask.config import settings
from tagask.infrastructure.observability.logging import bind_request_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        ip_address = self._extract_client_ip(request)
        request.state.ip_address = ip_address

        bind_request_context(request_id=request_id, ip_address=ip_address)

        logger.debug("Request started", method=request.method, path=request.url.path)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Extract client IP address with proxy spoofing protection.

        X-Forwarded-For is only trusted when TRUST_X_FORWARDED_FOR is enabled
        and the direct peer is one of TRUSTED_PROXY_IPS.
        """
        direct_ip = request.client.host if request.client else None

        if not settings.TRUST_X_FORWARDED_FOR:
            return direct_ip

        if direct_ip in settings.TRUSTED_PROXY_IPS:
            forwarded_for = request.headers.get("x-forwarded-for")
            if forwarded_for:
                # "client, proxy1, proxy2" - first entry is the original client
                return forwarded_for.split(",")[0].strip()

        return direct_ip
