import logging

from django.conf import settings
from django.contrib.auth import authenticate, login, logout, update_session_auth_hash
from django.db import IntegrityError, transaction
from django.http import JsonResponse
from django.middleware.csrf import get_token
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_http_methods

from .email_notifications import send_password_reset_email
from .forms import (
    ChangePasswordForm,
    ForgotPasswordForm,
    LoginForm,
    RegisterForm,
    ResetPasswordForm,
    form_errors,
)
from .models import PasswordResetToken, User
from .utils.rate_limit import is_rate_limited, register_attempt, reset_attempts
from .utils.request_helpers import (
    InvalidJSONBody,
    client_ip,
    error_response,
    invalid_json_response,
    request_data,
    validation_error_response,
)
from .utils.security_audit import log_activity
from .utils.session_guard import api_login_required

logger = logging.getLogger(__name__)


def _session_user_payload(request, user):
    data = user.to_dict()
    data['accessDetails'] = {
        'isAdmin': user.is_admin,
        'hasAdminPortalAccess': user.is_admin and bool(request.session.get('is_admin_portal')),
    }
    return data


@require_GET
@ensure_csrf_cookie
def csrf_token(request):
    return JsonResponse({'success': True, 'csrfToken': get_token(request)})


@require_http_methods(['POST'])
def register(request):
    ip = client_ip(request) or 'unknown'
    if is_rate_limited('registration', ip, settings.REGISTRATION_RATE_LIMIT):
        log_activity(request, 'registration_rate_limited')
        return error_response(
            'Demasiados intentos de registro. Por favor, inténtelo de nuevo más tarde.',
            status=429, code='RATE_LIMITED',
        )

    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = RegisterForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    register_attempt('registration', ip, settings.REGISTRATION_RATE_WINDOW_SECONDS)
    cleaned = form.cleaned_data
    if User.objects.filter(email__iexact=cleaned['email']).exists():
        log_activity(request, 'registration_failed', email=cleaned['email'], reason='email_exists')
        return error_response('Ya existe un usuario con este correo electrónico.', status=409, code='EMAIL_EXISTS')

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                cleaned['email'],
                cleaned['password'],
                first_name=cleaned['first_name'],
                last_name=cleaned['last_name'],
            )
    except IntegrityError:
        return error_response('Ya existe un usuario con este correo electrónico.', status=409, code='EMAIL_EXISTS')

    login(request, user, backend='django.contrib.auth.backends.ModelBackend')
    log_activity(request, 'registration', user=user)
    logger.info('User %s registered', user.id)
    return JsonResponse(
        {'success': True, 'message': 'Registro exitoso.', 'user': _session_user_payload(request, user)},
        status=201,
    )


@require_http_methods(['POST'])
def login_view(request):
    ip = client_ip(request) or 'unknown'
    if is_rate_limited('failed_login', ip, settings.LOGIN_RATE_LIMIT):
        log_activity(request, 'login_rate_limited')
        return error_response(
            'Demasiados intentos de inicio de sesión fallidos. Por favor, inténtelo de nuevo más tarde.',
            status=429, code='RATE_LIMITED',
        )

    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = LoginForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    email = form.cleaned_data['email'].lower()
    user = authenticate(request, username=email, password=form.cleaned_data['password'])
    if user is None:
        register_attempt('failed_login', ip, settings.LOGIN_RATE_WINDOW_SECONDS)
        log_activity(request, 'failed_login', email=email)
        logger.warning('Failed login for %s from %s', email, ip)
        return error_response('Correo electrónico o contraseña incorrectos.', status=401, code='INVALID_CREDENTIALS')

    is_admin_portal = (request.headers.get('X-Portal-Type') or '').lower() == 'admin'
    if is_admin_portal and not user.is_admin:
        log_activity(request, 'admin_portal_denied', user=user)
        return error_response('Acceso restringido a administradores.', status=403, code='ADMIN_REQUIRED')

    reset_attempts('failed_login', ip)
    login(request, user)
    request.session['is_admin_portal'] = is_admin_portal
    log_activity(request, 'login', user=user, admin_portal=is_admin_portal)
    logger.info('User %s logged in (admin_portal=%s)', user.id, is_admin_portal)
    return JsonResponse({
        'success': True,
        'message': 'Inicio de sesión exitoso.',
        'user': _session_user_payload(request, user),
    })


@require_http_methods(['POST'])
def logout_view(request):
    user = request.user if request.user.is_authenticated else None
    if user is not None:
        log_activity(request, 'logout', user=user)
    logout(request)
    response = JsonResponse({'success': True, 'message': 'Cierre de sesión exitoso.'})
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path='/')
    return response


@require_GET
def auth_status(request):
    if request.user.is_authenticated:
        return JsonResponse({
            'success': True,
            'isLoggedIn': True,
            'user': _session_user_payload(request, request.user),
        })
    return JsonResponse({'success': True, 'isLoggedIn': False})


@require_http_methods(['POST'])
@api_login_required
def change_password(request):
    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = ChangePasswordForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    user = request.user
    if not user.check_password(form.cleaned_data['currentPassword']):
        log_activity(request, 'password_change_failed', user=user)
        return error_response('La contraseña actual es incorrecta.', status=401, code='INVALID_CURRENT_PASSWORD')

    user.set_password(form.cleaned_data['newPassword'])
    user.save(update_fields=['password', 'updated_at'])
    update_session_auth_hash(request, user)
    log_activity(request, 'password_changed', user=user)
    return JsonResponse({'success': True, 'message': 'Contraseña cambiada exitosamente.'})


@require_http_methods(['POST'])
def forgot_password(request):
    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = ForgotPasswordForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    user = User.objects.filter(email__iexact=form.cleaned_data['email'], is_active=True).first()
    if user is not None:
        reset = PasswordResetToken.issue(user)
        send_password_reset_email(user, reset.token)
        log_activity(request, 'password_reset_requested', user=user)

    # Same answer whether or not the account exists
    return JsonResponse({
        'success': True,
        'message': 'Si el correo está registrado, recibirá un enlace para restablecer su contraseña.',
    })


@require_http_methods(['POST'])
def reset_password(request):
    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = ResetPasswordForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    with transaction.atomic():
        reset = (
            PasswordResetToken.objects
            .select_for_update()
            .select_related('user')
            .filter(token=form.cleaned_data['token'])
            .first()
        )
        if reset is None or not reset.is_valid:
            return error_response('El enlace de restablecimiento es inválido o ha expirado.', code='INVALID_TOKEN')

        user = reset.user
        user.set_password(form.cleaned_data['password'])
        user.save(update_fields=['password', 'updated_at'])
        reset.used = True
        reset.save(update_fields=['used'])

    log_activity(request, 'password_reset', user=user)
    return JsonResponse({'success': True, 'message': 'Contraseña restablecida exitosamente.'})
