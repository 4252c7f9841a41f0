import logging

from django.db import connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET

logger = logging.getLogger(__name__)


@require_GET
def healthz(request):
    return JsonResponse({'status': 'ok'})


@require_GET
def readyz(request):
    try:
        connection.ensure_connection()
    except Exception as exc:
        logger.exception('Readiness check failed')
        return JsonResponse({'status': 'not ready', 'error': str(exc)}, status=503)

    return JsonResponse({'status': 'ready', 'database': 'ok'})
