"""HTTP middleware: tenant resolution and request audit logging"""
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger("api.audit")

TENANT_HEADER = "X-Hotel-Id"
REQUEST_ID_HEADER = "X-Request-Id"


class TenantMiddleware(BaseHTTPMiddleware):
    """Puts the hotel id from X-Hotel-Id on request.state.tenant_id (None when absent)"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        tenant_id = request.headers.get(TENANT_HEADER)
        request.state.tenant_id = tenant_id.strip() if tenant_id and tenant_id.strip() else None
        return await call_next(request)


class AuditLogMiddleware(BaseHTTPMiddleware):
    """One log line per request, with request id, tenant, status and duration"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                tenant_id=getattr(request.state, "tenant_id", None),
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        logger.info(
            "request_completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            tenant_id=getattr(request.state, "tenant_id", None),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
