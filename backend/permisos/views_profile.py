import logging

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .forms import ProfileForm, form_errors
from .utils.request_helpers import InvalidJSONBody, invalid_json_response, request_data, validation_error_response
from .utils.session_guard import api_login_required

logger = logging.getLogger(__name__)


@require_http_methods(['GET', 'PUT'])
@api_login_required
def user_profile(request):
    user = request.user
    if request.method == 'GET':
        return JsonResponse({'success': True, 'user': user.to_dict()})

    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = ProfileForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    user.first_name = form.cleaned_data['first_name']
    user.last_name = form.cleaned_data['last_name']
    user.save(update_fields=['first_name', 'last_name', 'updated_at'])
    logger.info('User %s updated profile', user.id)
    return JsonResponse({'success': True, 'message': 'Perfil actualizado.', 'user': user.to_dict()})
