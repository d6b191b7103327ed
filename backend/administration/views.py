import logging
from datetime import timedelta

from django.core.paginator import EmptyPage, Paginator
from django.db.models import Count, Q
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from permisos import workflow
from permisos.forms import RejectPaymentForm, StatusChangeForm, VerifyPaymentForm, form_errors
from permisos.models import InvalidTransition, PaymentVerificationLog, PermitApplication, User
from permisos.storage import StorageError, UploadRejected
from permisos.utils.request_helpers import (
    InvalidJSONBody,
    coerce_int,
    error_response,
    invalid_json_response,
    request_data,
    validation_error_response,
)
from permisos.utils.security_audit import log_activity
from permisos.utils.session_guard import api_admin_required
from permisos.views_applications import file_response

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _not_found():
    return error_response('Solicitud no encontrada.', status=404, code='NOT_FOUND')


def _transition_error(exc):
    return error_response(
        str(exc), status=409, code='INVALID_STATUS',
        currentStatus=exc.current, targetStatus=exc.target,
    )


def _admin_application_dict(application):
    data = application.to_detail_dict()
    data['user'] = {
        'id': application.user_id,
        'email': application.user.email,
        'full_name': application.user.full_name,
    }
    verifier = application.payment_verified_by
    data['payment_verified_by'] = verifier.full_name if verifier is not None else None
    return data


def _history(application):
    logs = application.verification_logs.select_related('verified_by').order_by('created_at', 'id')
    return [log.to_dict() for log in logs]


@require_http_methods(['GET'])
@api_admin_required
def dashboard_stats(request):
    today = timezone.localdate()
    start_week = today - timedelta(days=today.weekday())
    start_month = today.replace(day=1)

    status_counts = {code: 0 for code, _ in PermitApplication.STATUS_CHOICES}
    for row in PermitApplication.objects.values('status').annotate(c=Count('id')):
        status_counts[row['status']] = row['c']

    todays_logs = PaymentVerificationLog.objects.filter(created_at__date=today).aggregate(
        approved=Count('id', filter=Q(action=PaymentVerificationLog.ACTION_VERIFIED)),
        rejected=Count('id', filter=Q(action=PaymentVerificationLog.ACTION_REJECTED)),
        issued=Count('id', filter=Q(action=PaymentVerificationLog.ACTION_PERMIT_ISSUED)),
    )
    users = User.objects.aggregate(
        total=Count('id'),
        clients=Count('id', filter=Q(account_type=User.ACCOUNT_CLIENT)),
        admins=Count('id', filter=Q(account_type=User.ACCOUNT_ADMIN)),
    )
    created = PermitApplication.objects.aggregate(
        today=Count('id', filter=Q(created_at__date=today)),
        this_week=Count('id', filter=Q(created_at__date__gte=start_week)),
        this_month=Count('id', filter=Q(created_at__date__gte=start_month)),
    )

    return JsonResponse({
        'success': True,
        'stats': {
            'pendingVerifications': status_counts[PermitApplication.STATUS_PROOF_SUBMITTED],
            'todayVerifications': todays_logs,
            'statusCounts': status_counts,
            'users': users,
            'applications': {
                'total': sum(status_counts.values()),
                'today': created['today'],
                'thisWeek': created['this_week'],
                'thisMonth': created['this_month'],
            },
        },
    })


@require_http_methods(['GET'])
@api_admin_required
def pending_verifications(request):
    qs = (
        PermitApplication.objects
        .select_related('user')
        .filter(status=PermitApplication.STATUS_PROOF_SUBMITTED)
        .order_by('payment_proof_uploaded_at', 'created_at')
    )
    items = []
    for app in qs:
        item = app.to_summary_dict()
        item['user_email'] = app.user.email
        item['payment_reference'] = app.payment_reference
        item['payment_proof_uploaded_at'] = (
            app.payment_proof_uploaded_at.isoformat() if app.payment_proof_uploaded_at else None
        )
        items.append(item)
    return JsonResponse({'success': True, 'count': len(items), 'applications': items})


@require_http_methods(['GET'])
@api_admin_required
def applications_list(request):
    qs = PermitApplication.objects.select_related('user').order_by('-created_at')

    status_filter = (request.GET.get('status') or '').strip().upper()
    if status_filter in PermitApplication.ALLOWED_TRANSITIONS:
        qs = qs.filter(status=status_filter)
    else:
        status_filter = ''

    search = (request.GET.get('search') or '').strip()
    if search:
        match = (
            Q(nombre_completo__icontains=search)
            | Q(curp_rfc__icontains=search)
            | Q(numero_serie__icontains=search)
            | Q(folio__icontains=search)
            | Q(payment_reference__icontains=search)
            | Q(user__email__icontains=search)
        )
        search_id = coerce_int(search)
        if search_id is not None:
            match |= Q(pk=search_id)
        qs = qs.filter(match)

    page_size = min(max(coerce_int(request.GET.get('page_size')) or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    page_number = max(coerce_int(request.GET.get('page')) or 1, 1)
    paginator = Paginator(qs, page_size)
    try:
        page = paginator.page(page_number)
        rows = list(page.object_list)
    except EmptyPage:
        rows = []

    applications = []
    for app in rows:
        item = app.to_summary_dict()
        item['user_email'] = app.user.email
        applications.append(item)

    return JsonResponse({
        'success': True,
        'applications': applications,
        'pagination': {
            'page': page_number,
            'pageSize': page_size,
            'total': paginator.count,
            'totalPages': paginator.num_pages,
        },
        'filters': {'status': status_filter, 'search': search},
    })


@require_http_methods(['GET'])
@api_admin_required
def application_detail(request, application_id):
    application = (
        PermitApplication.objects
        .select_related('user', 'payment_verified_by')
        .filter(pk=application_id)
        .first()
    )
    if application is None:
        return _not_found()
    return JsonResponse({
        'success': True,
        'application': _admin_application_dict(application),
        'verificationHistory': _history(application),
    })


@require_http_methods(['GET'])
@api_admin_required
def application_payment_proof(request, application_id):
    application = PermitApplication.objects.filter(pk=application_id).first()
    if application is None:
        return _not_found()
    if not application.payment_proof_path:
        return error_response('Esta solicitud no tiene comprobante de pago.', status=404, code='NOT_FOUND')
    filename = application.payment_proof_path.rsplit('/', 1)[-1]
    return file_response(application.payment_proof_path, filename, inline=True)


@require_http_methods(['POST'])
@api_admin_required
def verify_payment(request, application_id):
    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = VerifyPaymentForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    try:
        application = workflow.verify_payment(application_id, request.user, form.cleaned_data.get('notes'))
    except PermitApplication.DoesNotExist:
        return _not_found()
    except InvalidTransition as e:
        return _transition_error(e)

    log_activity(request, 'payment_verified', user=request.user, application_id=application.id)
    return JsonResponse({
        'success': True,
        'message': 'Pago verificado.',
        'application': _admin_application_dict(application),
    })


@require_http_methods(['POST'])
@api_admin_required
def reject_payment(request, application_id):
    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = RejectPaymentForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    try:
        application = workflow.reject_payment(
            application_id, request.user,
            form.cleaned_data['reason'], form.cleaned_data.get('notes'),
        )
    except PermitApplication.DoesNotExist:
        return _not_found()
    except InvalidTransition as e:
        return _transition_error(e)

    log_activity(request, 'payment_rejected', user=request.user, application_id=application.id)
    return JsonResponse({
        'success': True,
        'message': 'Comprobante rechazado.',
        'application': _admin_application_dict(application),
    })


@require_http_methods(['POST'])
@api_admin_required
def issue_permit(request, application_id):
    notes = (request.POST.get('notes') or '').strip() or None
    try:
        application = workflow.issue_permit(application_id, request.user, request.FILES.get('permitFile'), notes)
    except PermitApplication.DoesNotExist:
        return _not_found()
    except InvalidTransition as e:
        return _transition_error(e)
    except UploadRejected as e:
        return error_response(str(e), status=e.status_code, code='INVALID_FILE')
    except StorageError as e:
        logger.error('Permit upload failed for application %s: %s', application_id, e, exc_info=True)
        return error_response('No se pudo guardar el permiso. Intente de nuevo.', status=500, code='STORAGE_ERROR')

    log_activity(request, 'permit_issued', user=request.user, application_id=application.id, folio=application.folio)
    return JsonResponse({
        'success': True,
        'message': f'Permiso {application.folio} emitido.',
        'application': _admin_application_dict(application),
    })


@require_http_methods(['PATCH'])
@api_admin_required
def update_status(request, application_id):
    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = StatusChangeForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    try:
        application = workflow.change_status(
            application_id, request.user,
            form.cleaned_data['status'], form.cleaned_data.get('notes'),
        )
    except PermitApplication.DoesNotExist:
        return _not_found()
    except InvalidTransition as e:
        return _transition_error(e)
    except ValueError as e:
        return error_response(str(e), code='DEDICATED_ACTION_REQUIRED')

    log_activity(request, 'status_changed', user=request.user,
                 application_id=application.id, status=application.status)
    return JsonResponse({
        'success': True,
        'message': 'Estado actualizado.',
        'application': _admin_application_dict(application),
    })


@require_http_methods(['GET'])
@api_admin_required
def verification_history(request, application_id):
    application = PermitApplication.objects.filter(pk=application_id).first()
    if application is None:
        return _not_found()
    return JsonResponse({'success': True, 'applicationId': application.id, 'history': _history(application)})


def _user_not_found():
    return error_response('Usuario no encontrado.', status=404, code='NOT_FOUND')


def _admin_user_dict(user):
    data = user.to_dict()
    data['is_active'] = user.is_active
    data['updated_at'] = user.updated_at.isoformat() if user.updated_at else None
    return data


@require_http_methods(['GET'])
@api_admin_required
def users_list(request):
    qs = User.objects.annotate(application_count=Count('applications')).order_by('-created_at', '-id')

    account_type = (request.GET.get('account_type') or '').strip().lower()
    if account_type in dict(User.ACCOUNT_TYPE_CHOICES):
        qs = qs.filter(account_type=account_type)
    else:
        account_type = ''

    search = (request.GET.get('search') or '').strip()
    if search:
        qs = qs.filter(
            Q(email__icontains=search)
            | Q(first_name__icontains=search)
            | Q(last_name__icontains=search)
        )

    page_size = min(max(coerce_int(request.GET.get('page_size')) or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    page_number = max(coerce_int(request.GET.get('page')) or 1, 1)
    paginator = Paginator(qs, page_size)
    try:
        rows = list(paginator.page(page_number).object_list)
    except EmptyPage:
        rows = []

    users = []
    for user in rows:
        item = _admin_user_dict(user)
        item['applicationCount'] = user.application_count
        users.append(item)

    return JsonResponse({
        'success': True,
        'users': users,
        'pagination': {
            'page': page_number,
            'pageSize': page_size,
            'total': paginator.count,
            'totalPages': paginator.num_pages,
        },
        'filters': {'accountType': account_type, 'search': search},
    })


@require_http_methods(['GET'])
@api_admin_required
def user_detail(request, user_id):
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return _user_not_found()
    applications = user.applications.order_by('-created_at', '-id')
    return JsonResponse({
        'success': True,
        'user': _admin_user_dict(user),
        'applications': [app.to_summary_dict() for app in applications],
    })


def _set_user_active(request, user_id, active):
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        logger.warning('Admin %s tried to change status of missing user %s', request.user.id, user_id)
        return _user_not_found()
    if not active and user.pk == request.user.pk:
        return error_response('No puede desactivar su propia cuenta.', code='CANNOT_DISABLE_SELF')

    if user.is_active != active:
        user.is_active = active
        user.save(update_fields=['is_active', 'updated_at'])
    logger.info('Admin %s %s user %s', request.user.id, 'enabled' if active else 'disabled', user.id)
    log_activity(
        request, 'user_enabled' if active else 'user_disabled',
        user=request.user, target_user_id=user.id, target_email=user.email,
    )
    return JsonResponse({
        'success': True,
        'message': 'Cuenta activada.' if active else 'Cuenta desactivada.',
        'user': _admin_user_dict(user),
    })


@require_http_methods(['POST'])
@api_admin_required
def user_enable(request, user_id):
    return _set_user_active(request, user_id, True)


@require_http_methods(['POST'])
@api_admin_required
def user_disable(request, user_id):
    return _set_user_active(request, user_id, False)
