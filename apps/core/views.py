"""
Health / Readiness probes
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """Liveness probe. Always 200 while the process is up."""
    return JsonResponse({"status": "ok"})


def readiness_check(request):
    """Readiness probe: database and cache connectivity."""
    checks = {"db": "ok", "cache": "ok"}
    status_code = 200

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as exc:
        logger.warning("readiness_db_failed error=%s", exc)
        checks["db"] = str(exc)
        status_code = 503

    cache.set("_readiness_probe", "1", timeout=5)
    if cache.get("_readiness_probe") != "1":
        checks["cache"] = "read-back failed"
        status_code = 503

    overall = "ready" if status_code == 200 else "not_ready"
    return JsonResponse({"status": overall, **checks}, status=status_code)
