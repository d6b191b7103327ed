import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET

logger = logging.getLogger(__name__)


@require_GET
def health(request):
    database = 'ok'
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
    except DatabaseError as e:
        logger.error('Health check database failure: %s', e)
        database = 'error'

    ok = database == 'ok'
    return JsonResponse(
        {'success': ok, 'status': 'ok' if ok else 'degraded', 'database': database},
        status=200 if ok else 503,
    )
