"""
Core views - Health checks.
"""
import redis
from django.conf import settings
from django.db import connection
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)


class HealthCheckView(APIView):
    """
    Health check endpoint for monitoring and load balancers.

    Checks:
    - API is responding
    - Database connection
    - Redis (Celery broker) connection
    - Object store tier buckets

    Returns:
    - 200 OK if all systems are healthy
    - 503 Service Unavailable if any system is down
    """
    permission_classes = [AllowAny]

    def get(self, request):
        health_status = {
            'status': 'ok',
            'version': settings.VERSION,
            'database': 'unknown',
            'redis': 'unknown',
            'object_store': 'unknown',
        }

        all_healthy = True

        # Check database
        try:
            connection.ensure_connection()
            health_status['database'] = 'ok'
        except Exception as e:
            health_status['database'] = f'error: {str(e)}'
            all_healthy = False

        # Check Redis
        try:
            r = redis.Redis.from_url(settings.CELERY_BROKER_URL)
            r.ping()
            health_status['redis'] = 'ok'
        except Exception as e:
            health_status['redis'] = f'error: {str(e)}'
            all_healthy = False

        # Check tier buckets
        from apps.documents import storage
        try:
            missing = storage.get_object_store().missing_tier_buckets()
            if missing:
                health_status['object_store'] = f"missing buckets: {', '.join(missing)}"
                all_healthy = False
            else:
                health_status['object_store'] = 'ok'
        except Exception as e:
            health_status['object_store'] = f'error: {str(e)}'
            all_healthy = False

        if not all_healthy:
            health_status['status'] = 'degraded'
            logger.warning(
                'Health check degraded',
                extra={'event': 'health_check_failed', 'checks': health_status}
            )
            return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(health_status, status=status.HTTP_200_OK)
