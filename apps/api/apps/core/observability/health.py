"""
Health check endpoints: /healthz (liveness) and /readyz (readiness).
"""
import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


class HealthzView(View):
    """Returns 200 while the process is up. No dependency checks."""

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }
        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash
        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Returns 200 when the database answers and the numbering counters
    table is reachable, 503 otherwise.
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
            'sequence_counters': self._check_sequence_counters(),
        }
        all_healthy = all(checks.values())
        return JsonResponse(
            {'status': 'ready' if all_healthy else 'not_ready', 'checks': checks},
            status=200 if all_healthy else 503
        )

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
            return True
        except DatabaseError as e:
            logger.error(
                'Database health check failed',
                extra={'event': 'health_check_failed', 'check': 'database', 'error': str(e)}
            )
            return False

    def _check_sequence_counters(self):
        from apps.core.models import SequenceCounter

        try:
            SequenceCounter.objects.exists()
            return True
        except DatabaseError as e:
            logger.error(
                'Sequence counter health check failed',
                extra={'event': 'health_check_failed', 'check': 'sequence_counters', 'error': str(e)}
            )
            return False
