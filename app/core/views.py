"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the business domain but are
essential for application infrastructure, such as health checks.
"""

from django.db import connection
from django.http import JsonResponse

from payments.config import PaymentConfig


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Used by Docker health checks, Kubernetes probes and load balancers.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - payments: "enabled" or "disabled"
        - gateways: Gateways with credentials configured

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "payments": "enabled",
            "gateways": ["paystack", "stripe"]
        }
    """
    config = PaymentConfig.from_settings()
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "payments": "enabled" if config.enabled else "disabled",
        # A missing gateway is a deployment concern, not an outage
        "gateways": sorted(str(gateway) for gateway in config.gateways),
    }
    is_healthy = True

    # Check database connectivity
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)
