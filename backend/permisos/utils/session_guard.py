from functools import wraps

from django.http import JsonResponse


def authentication_block_response(request):
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return JsonResponse(
            {
                'success': False,
                'error': 'Usuario no autenticado.',
                'code': 'AUTHENTICATION_REQUIRED',
            },
            status=401,
        )
    if not user.is_active:
        return JsonResponse(
            {
                'success': False,
                'error': 'Su cuenta está desactivada.',
                'code': 'ACCOUNT_DISABLED',
            },
            status=403,
        )
    return None


def admin_block_response(request):
    blocked = authentication_block_response(request)
    if blocked is not None:
        return blocked
    if not request.user.is_admin:
        return JsonResponse(
            {
                'success': False,
                'error': 'Acceso restringido a administradores.',
                'code': 'ADMIN_REQUIRED',
            },
            status=403,
        )
    return None


def api_login_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        blocked = authentication_block_response(request)
        if blocked is not None:
            return blocked
        return view(request, *args, **kwargs)
    return wrapper


def api_admin_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        blocked = admin_block_response(request)
        if blocked is not None:
            return blocked
        return view(request, *args, **kwargs)
    return wrapper
