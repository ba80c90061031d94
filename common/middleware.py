"""
common.middleware
~~~~~~~~~~~~~~~~~
Structured JSON request-logging middleware powered by structlog.

Binds ``request_id`` (from ``X-Request-ID`` or a fresh UUID) and, for
tenant-scoped URLs, ``tenant_id`` into structlog context variables so every
record logged while serving the request carries them.  Emits one
``http_request`` record per request/response cycle.
"""
import time
import uuid

import structlog

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "HTTP_X_REQUEST_ID"


class StructuredLoggingMiddleware:
    """
    Log record fields:
        event       – "http_request"
        method      – HTTP verb (GET, PUT, …)
        path        – URL path
        status      – HTTP response status code (int)
        duration_ms – Round-trip duration in milliseconds (float, 2 dp)
        request_id  – bound for the whole request
        tenant_id   – bound once the URL resolves with a ``tenant_id`` kwarg
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        structlog.contextvars.clear_contextvars()
        request_id = request.META.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.monotonic()
        try:
            response = self.get_response(request)
            duration_ms = round((time.monotonic() - start) * 1000, 2)

            logger.info(
                "http_request",
                method=request.method,
                path=request.get_full_path(),
                status=response.status_code,
                duration_ms=duration_ms,
            )
            response["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    def process_view(self, request, view_func, view_args, view_kwargs):
        tenant_id = view_kwargs.get("tenant_id")
        if tenant_id:
            structlog.contextvars.bind_contextvars(tenant_id=tenant_id)
        return None
