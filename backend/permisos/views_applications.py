import logging
from pathlib import PurePosixPath

from django.http import HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods

from . import workflow
from .forms import ApplicationForm, PaymentProofForm, form_errors
from .models import InvalidTransition, PermitApplication
from .storage import StorageError, UploadRejected, read_file
from .utils.request_helpers import (
    InvalidJSONBody,
    error_response,
    invalid_json_response,
    request_data,
    validation_error_response,
)
from .utils.security_audit import log_activity
from .utils.session_guard import api_login_required

logger = logging.getLogger(__name__)

DOWNLOAD_PERMIT = 'permiso'
DOWNLOAD_PROOF = 'comprobante'


def _own_application(request, application_id):
    # Other users' applications are reported as missing
    return PermitApplication.objects.filter(pk=application_id, user=request.user).first()


def _not_found():
    return error_response('Solicitud no encontrada.', status=404, code='NOT_FOUND')


def _transition_error(exc):
    return error_response(
        str(exc), status=409, code='INVALID_STATUS',
        currentStatus=exc.current, targetStatus=exc.target,
    )


@require_http_methods(['GET', 'POST'])
@api_login_required
def applications(request):
    if request.method == 'GET':
        return _list_applications(request)
    return _create_application(request)


def _list_applications(request):
    qs = PermitApplication.objects.filter(user=request.user).order_by('-created_at')
    expiring = []
    for app in workflow.expiring_permits(request.user):
        item = app.to_summary_dict()
        item['daysUntilExpiration'] = app.days_until_expiration()
        expiring.append(item)
    return JsonResponse({
        'success': True,
        'applications': [app.to_summary_dict() for app in qs],
        'expiringPermits': expiring,
    })


def _create_application(request):
    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = ApplicationForm(data)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    application = workflow.create_application(request.user, form.cleaned_data)
    return JsonResponse(
        {
            'success': True,
            'message': 'Solicitud creada. Realice el pago y suba su comprobante.',
            'application': application.to_detail_dict(),
        },
        status=201,
    )


@require_http_methods(['GET', 'PUT'])
@api_login_required
def application_detail(request, application_id):
    application = _own_application(request, application_id)
    if application is None:
        return _not_found()

    if request.method == 'GET':
        return JsonResponse({'success': True, 'application': application.to_detail_dict()})

    try:
        data = request_data(request)
    except InvalidJSONBody:
        return invalid_json_response()

    form = ApplicationForm(data, partial=True)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    try:
        changed = workflow.update_application(application, form.changed_data_only())
    except InvalidTransition as e:
        return _transition_error(e)

    return JsonResponse({
        'success': True,
        'message': 'Solicitud actualizada.' if changed else 'No se realizaron cambios.',
        'updatedFields': changed,
        'application': application.to_detail_dict(),
    })


@require_GET
@api_login_required
def application_status(request, application_id):
    application = _own_application(request, application_id)
    if application is None:
        return _not_found()
    return JsonResponse({
        'success': True,
        'application': application.to_summary_dict(),
        'status': workflow.status_info(application),
    })


@require_http_methods(['POST'])
@api_login_required
def upload_payment_proof(request, application_id):
    application = _own_application(request, application_id)
    if application is None:
        return _not_found()

    form = PaymentProofForm(request.POST)
    if not form.is_valid():
        return validation_error_response(form_errors(form))

    try:
        application = workflow.submit_payment_proof(
            application,
            request.FILES.get('paymentProof'),
            payment_reference=form.cleaned_data.get('paymentReference') or None,
            desired_start_date=form.cleaned_data.get('desiredStartDate'),
        )
    except InvalidTransition as e:
        return _transition_error(e)
    except UploadRejected as e:
        return error_response(str(e), status=e.status_code, code='INVALID_FILE')
    except StorageError as e:
        logger.error('Payment proof upload failed for application %s: %s', application.id, e, exc_info=True)
        return error_response('No se pudo guardar el comprobante. Intente de nuevo.', status=500, code='STORAGE_ERROR')

    log_activity(request, 'payment_proof_uploaded', user=request.user, application_id=application.id)
    return JsonResponse({
        'success': True,
        'message': 'Comprobante recibido. Un administrador revisará su pago.',
        'application': application.to_detail_dict(),
    })


@require_http_methods(['POST'])
@api_login_required
def cancel_application(request, application_id):
    application = _own_application(request, application_id)
    if application is None:
        return _not_found()
    try:
        application = workflow.cancel_application(application)
    except InvalidTransition as e:
        return _transition_error(e)
    return JsonResponse({
        'success': True,
        'message': 'Solicitud cancelada.',
        'application': application.to_summary_dict(),
    })


@require_GET
@api_login_required
def renewal_eligibility(request, application_id):
    application = _own_application(request, application_id)
    if application is None:
        return _not_found()
    return JsonResponse({'success': True, **workflow.renewal_eligibility(application)})


@require_http_methods(['POST'])
@api_login_required
def renew_application(request, application_id):
    application = _own_application(request, application_id)
    if application is None:
        return _not_found()
    try:
        renewal = workflow.renew_application(application)
    except workflow.RenewalNotAllowed as e:
        return error_response(str(e), status=409, code='RENEWAL_NOT_ALLOWED')

    return JsonResponse(
        {
            'success': True,
            'message': 'Solicitud de renovación creada. Realice el pago para continuar.',
            'application': renewal.to_detail_dict(),
        },
        status=201,
    )


@require_GET
@api_login_required
def download_document(request, application_id, doc_type):
    application = _own_application(request, application_id)
    if application is None:
        return _not_found()

    if doc_type == DOWNLOAD_PERMIT:
        if application.status not in PermitApplication.ISSUED_STATUSES or not application.permit_file_path:
            return error_response('El permiso aún no está disponible.', status=409, code='PERMIT_NOT_READY')
        path = application.permit_file_path
        filename = f'permiso_{application.folio or application.id}{PurePosixPath(path).suffix or ".pdf"}'
    elif doc_type == DOWNLOAD_PROOF:
        if not application.payment_proof_path:
            return error_response('Esta solicitud no tiene comprobante de pago.', status=404, code='NOT_FOUND')
        path = application.payment_proof_path
        filename = f'comprobante_{application.id}{PurePosixPath(path).suffix}'
    else:
        return error_response('Tipo de documento no válido.', code='INVALID_DOCUMENT_TYPE')

    return file_response(path, filename)


def file_response(path, filename, inline=False):
    """Stream a stored file back; a missing object is a 404, a backend failure a 500."""
    try:
        content, content_type = read_file(path)
    except FileNotFoundError:
        logger.warning('Stored file %s is missing', path)
        return error_response('Archivo no encontrado.', status=404, code='FILE_NOT_FOUND')
    except StorageError as e:
        logger.error('Could not read %s: %s', path, e, exc_info=True)
        return error_response('No se pudo recuperar el archivo.', status=500, code='STORAGE_ERROR')

    response = HttpResponse(content, content_type=content_type)
    disposition = 'inline' if inline else 'attachment'
    response['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    return response
