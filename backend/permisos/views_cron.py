from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from permisos.management.commands.expire_applications import run_expire_applications


@csrf_exempt
@require_http_methods(["POST"])
def expire_applications_view(request):
    """HTTP endpoint for the scheduled maintenance job.

    Protected by a shared secret header so only the scheduler (or other
    trusted callers) can invoke it.
    """
    expected = settings.CRON_SECRET
    provided = request.headers.get("X-Cron-Secret", "")
    if not expected or provided != expected:
        return JsonResponse({'success': False, 'error': 'Forbidden'}, status=403)

    result = run_expire_applications()
    return JsonResponse({'success': True, **result})
