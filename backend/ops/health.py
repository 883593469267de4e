"""
Health check endpoints for operations monitoring.

Provides health checks for:
- Database connectivity (all configured databases)
- Redis/Celery broker connectivity
- Reaction backlog (events whose reactions have not all succeeded)

Endpoints:
- /_health/live    - Kubernetes liveness probe (is the process running?)
- /_health/ready   - Kubernetes readiness probe (can we serve traffic?)
- /_health/full    - Full health report (for debugging/dashboards)
"""
import logging
import time
from typing import Dict, Any

import redis
from django.conf import settings
from django.db import connections
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.time() - start) * 1000, 2)


class HealthCheck:
    """Health check implementation."""

    @staticmethod
    def check_database(alias: str = "default") -> Dict[str, Any]:
        """Check database connectivity."""
        start = time.time()
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return {"status": "healthy", "alias": alias, "duration_ms": _elapsed_ms(start)}
        except Exception as e:
            logger.warning("health_database_failed", extra={"alias": alias, "error": str(e)})
            return {"status": "unhealthy", "alias": alias, "error": str(e), "duration_ms": _elapsed_ms(start)}

    @staticmethod
    def check_all_databases() -> Dict[str, Any]:
        results = {alias: HealthCheck.check_database(alias) for alias in settings.DATABASES}
        all_healthy = all(r["status"] == "healthy" for r in results.values())
        return {
            "status": "healthy" if all_healthy else "degraded",
            "databases": results,
        }

    @staticmethod
    def check_broker() -> Dict[str, Any]:
        """Check the Celery broker. Skipped while reactions run inline."""
        if getattr(settings, "REACTIONS_SYNC", False):
            return {"status": "skipped", "reason": "reactions run inline"}

        broker_url = getattr(settings, "CELERY_BROKER_URL", None)
        if not broker_url:
            return {"status": "skipped", "reason": "broker not configured"}

        start = time.time()
        try:
            redis.from_url(broker_url).ping()
            return {"status": "healthy", "duration_ms": _elapsed_ms(start)}
        except Exception as e:
            logger.warning("health_broker_failed", extra={"error": str(e)})
            return {"status": "unhealthy", "error": str(e), "duration_ms": _elapsed_ms(start)}

    @staticmethod
    def check_reaction_backlog() -> Dict[str, Any]:
        """Unreconciled events against RECONCILE_LAG_THRESHOLD."""
        from events.models import ReactionRun
        from events.reconciliation import count_unreconciled

        try:
            unreconciled = count_unreconciled()
            failed = ReactionRun.objects.filter(status=ReactionRun.Status.FAILED).count()
        except Exception as e:
            logger.warning("health_backlog_failed", extra={"error": str(e)})
            return {"status": "error", "error": str(e)}

        threshold = getattr(settings, "RECONCILE_LAG_THRESHOLD", 100)
        return {
            "status": "healthy" if unreconciled < threshold else "degraded",
            "unreconciled_events": unreconciled,
            "failed_runs": failed,
            "threshold": threshold,
        }

    @staticmethod
    def get_full_health() -> Dict[str, Any]:
        """Get comprehensive health report."""
        checks = {
            "databases": HealthCheck.check_all_databases(),
            "broker": HealthCheck.check_broker(),
            "reactions": HealthCheck.check_reaction_backlog(),
        }

        statuses = [c.get("status", "unknown") for c in checks.values()]
        if all(s in ("healthy", "skipped") for s in statuses):
            overall = "healthy"
        elif any(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"

        return {
            "status": overall,
            "checks": checks,
            "version": getattr(settings, "VERSION", "unknown"),
            "environment": "production" if not settings.DEBUG else "development",
        }


class LivenessView(View):
    """Returns 200 while the process is running; touches nothing external."""

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """Returns 200 when the default database answers."""

    def get(self, request):
        db_check = HealthCheck.check_database("default")
        if db_check["status"] == "healthy":
            return JsonResponse({"status": "ready", "database": db_check})
        return JsonResponse({"status": "not_ready", "database": db_check}, status=503)


class FullHealthView(View):
    """
    Full health check for debugging and dashboards.

    Should be protected in production (internal network only).
    """

    def get(self, request):
        health = HealthCheck.get_full_health()
        status_code = 200 if health["status"] == "healthy" else 503
        return JsonResponse(health, status=status_code)
