import logging

from django.http import JsonResponse

logger = logging.getLogger(__name__)


def csrf_failure(request, reason=''):
    logger.warning('CSRF validation failed for %s %s: %s', request.method, request.path, reason)
    return JsonResponse(
        {
            'success': False,
            'error': 'Token CSRF inválido o ausente. Recargue la página e intente de nuevo.',
            'code': 'CSRF_FAILED',
        },
        status=403,
    )


def not_found(request, exception=None):
    return JsonResponse({'success': False, 'error': 'Recurso no encontrado.', 'code': 'NOT_FOUND'}, status=404)


def server_error(request):
    return JsonResponse(
        {'success': False, 'error': 'Error interno del servidor.', 'code': 'INTERNAL_ERROR'},
        status=500,
    )
