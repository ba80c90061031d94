"""
common.health
~~~~~~~~~~~~~
GET /health/ – lightweight liveness + readiness probe.

Returns:
    200  {"status": "ok", "db": "ok", "autosave_cache": "ok"}
    503  {"status": "degraded", ...} – a dependency is unreachable
"""
import structlog
from django.conf import settings
from django.core.cache import caches
from django.db import OperationalError, connection
from django.http import JsonResponse

logger = structlog.get_logger(__name__)

PROBE_KEY = "health-probe"


def _check_db() -> str:
    try:
        connection.ensure_connection()
    except OperationalError as exc:
        logger.error("health_check_db_failure", error=str(exc))
        return f"error: {exc}"
    return "ok"


def _check_autosave_cache() -> str:
    alias = getattr(settings, "AUTOSAVE_CACHE_ALIAS", "autosave")
    try:
        cache = caches[alias]
        cache.set(PROBE_KEY, "ok", timeout=5)
        cache.get(PROBE_KEY)
    except Exception as exc:
        logger.error("health_check_cache_failure", alias=alias, error=str(exc))
        return f"error: {exc}"
    return "ok"


def health_check(request):
    """Return service health including database and autosave cache status."""
    checks = {
        "db": _check_db(),
        "autosave_cache": _check_autosave_cache(),
    }
    healthy = all(value == "ok" for value in checks.values())

    payload = {"status": "ok" if healthy else "degraded", **checks}
    return JsonResponse(payload, status=200 if healthy else 503)
