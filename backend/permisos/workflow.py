"""Payment-verification workflow for permit applications.

Every status change goes through ``PermitApplication.transition_to`` so the
allowed-transition table on the model is the single source of truth. Admin
actions run inside a transaction holding a row lock and leave a
``PaymentVerificationLog`` entry behind.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .email_notifications import (
    send_expiration_reminder_email,
    send_payment_rejected_email,
    send_payment_verified_email,
    send_permit_ready_email,
)
from .models import InvalidTransition, PaymentVerificationLog, PermitApplication
from .storage import (
    ALLOWED_PERMIT_CONTENT_TYPES,
    ALLOWED_PROOF_CONTENT_TYPES,
    build_payment_proof_path,
    build_permit_path,
    delete_file,
    save_file,
    validate_upload,
)

logger = logging.getLogger(__name__)

APPLICATION_FIELDS = (
    'nombre_completo', 'curp_rfc', 'domicilio',
    'marca', 'linea', 'color', 'numero_serie', 'numero_motor', 'ano_modelo',
)

RENEWAL_DAYS_BEFORE = 7
RENEWAL_DAYS_AFTER = 15

# Targets that have their own operation and therefore cannot be set through change_status
DEDICATED_TARGETS = (
    PermitApplication.STATUS_PROOF_SUBMITTED,
    PermitApplication.STATUS_PAYMENT_RECEIVED,
    PermitApplication.STATUS_PROOF_REJECTED,
    PermitApplication.STATUS_PERMIT_READY,
)


class RenewalNotAllowed(Exception):
    pass


_STATUS_INFO = {
    PermitApplication.STATUS_PENDING_PAYMENT: (
        'Su solicitud está esperando el pago',
        'Realice el pago con la referencia indicada y suba su comprobante de pago.',
        ['uploadPaymentProof', 'editApplication', 'cancelApplication'],
    ),
    PermitApplication.STATUS_PROOF_SUBMITTED: (
        'Su comprobante de pago está en revisión',
        'Un administrador está verificando su pago. Le notificaremos cuando sea revisado.',
        [],
    ),
    PermitApplication.STATUS_PROOF_REJECTED: (
        'Su comprobante de pago fue rechazado',
        'Revise el motivo del rechazo y suba un nuevo comprobante.',
        ['uploadPaymentProof', 'editApplication', 'cancelApplication'],
    ),
    PermitApplication.STATUS_PAYMENT_RECEIVED: (
        'Su pago ha sido verificado',
        'Su permiso está siendo generado. Esto puede tomar unos minutos.',
        [],
    ),
    PermitApplication.STATUS_PERMIT_READY: (
        '¡Su permiso está listo!',
        'Ahora puede descargar sus documentos de permiso.',
        ['downloadPermit', 'renewPermit'],
    ),
    PermitApplication.STATUS_COMPLETED: (
        'Su permiso fue entregado',
        'Puede volver a descargar su permiso mientras esté vigente.',
        ['downloadPermit', 'renewPermit'],
    ),
    PermitApplication.STATUS_EXPIRED: (
        'Su permiso ha vencido',
        'Su permiso ha excedido su periodo de validez. Puede solicitar una renovación.',
        ['renewPermit'],
    ),
    PermitApplication.STATUS_CANCELLED: (
        'Su solicitud fue cancelada',
        'Puede iniciar una nueva solicitud desde su panel.',
        [],
    ),
}


def status_info(application):
    display, next_steps, actions = _STATUS_INFO.get(
        application.status,
        (f'Estado de la solicitud: {application.status}',
         'Por favor contacte a soporte para más información.', []),
    )
    return {
        'currentStatus': application.status,
        'lastUpdated': application.updated_at.isoformat() if application.updated_at else None,
        'displayMessage': display,
        'nextSteps': next_steps,
        'allowedActions': list(actions),
    }


def create_application(user, data):
    application = PermitApplication(user=user, importe=settings.PERMIT_FEE)
    for field in APPLICATION_FIELDS:
        setattr(application, field, data[field])
    application.save()
    logger.info('Application %s created for user %s', application.id, user.id)
    return application


def update_application(application, data):
    if not application.is_editable:
        raise InvalidTransition(
            application.status, application.status,
            'Solo se pueden modificar solicitudes pendientes de pago o con comprobante rechazado.',
        )
    changed = []
    for field in APPLICATION_FIELDS:
        if field in data and data[field] not in (None, ''):
            setattr(application, field, data[field])
            changed.append(field)
    if changed:
        application.save(update_fields=changed + ['updated_at'])
    return changed


def _lock(application_id):
    return PermitApplication.objects.select_for_update().select_related('user').get(pk=application_id)


def submit_payment_proof(application, uploaded, payment_reference=None, desired_start_date=None):
    """Store a client's payment proof and move the application to PROOF_SUBMITTED."""
    if not application.can_transition_to(PermitApplication.STATUS_PROOF_SUBMITTED):
        raise InvalidTransition(application.status, PermitApplication.STATUS_PROOF_SUBMITTED)
    validate_upload(uploaded, ALLOWED_PROOF_CONTENT_TYPES, settings.PAYMENT_PROOF_MAX_BYTES)

    stored_path = save_file(uploaded, build_payment_proof_path(application.id, uploaded.name))
    try:
        with transaction.atomic():
            locked = _lock(application.id)
            locked.transition_to(PermitApplication.STATUS_PROOF_SUBMITTED)
            locked.payment_proof_path = stored_path
            locked.payment_proof_uploaded_at = timezone.now()
            locked.payment_reference = payment_reference or locked.payment_reference
            locked.payment_rejection_reason = None
            if desired_start_date:
                locked.desired_start_date = desired_start_date
            locked.save()
    except Exception:
        # Nothing references the upload unless the row was saved
        delete_file(stored_path)
        raise

    logger.info('Payment proof submitted for application %s (%s)', locked.id, stored_path)
    return locked


def cancel_application(application):
    with transaction.atomic():
        locked = _lock(application.id)
        locked.transition_to(PermitApplication.STATUS_CANCELLED)
        locked.save(update_fields=['status', 'updated_at'])
    logger.info('Application %s cancelled by its owner', locked.id)
    return locked


def _log_action(application, admin, action, previous_status, notes=None):
    return PaymentVerificationLog.objects.create(
        application=application,
        verified_by=admin,
        action=action,
        previous_status=previous_status,
        new_status=application.status,
        notes=notes or None,
    )


def verify_payment(application_id, admin, notes=None):
    with transaction.atomic():
        application = _lock(application_id)
        previous = application.transition_to(PermitApplication.STATUS_PAYMENT_RECEIVED)
        application.payment_verified_at = timezone.now()
        application.payment_verified_by = admin
        application.payment_rejection_reason = None
        application.save()
        _log_action(application, admin, PaymentVerificationLog.ACTION_VERIFIED, previous, notes)

    logger.info('Payment for application %s verified by admin %s', application.id, admin.id)
    send_payment_verified_email(application)
    return application


def reject_payment(application_id, admin, reason, notes=None):
    with transaction.atomic():
        application = _lock(application_id)
        previous = application.transition_to(PermitApplication.STATUS_PROOF_REJECTED)
        application.payment_rejection_reason = reason
        application.save()
        log_notes = f'{reason}: {notes}' if notes else reason
        _log_action(application, admin, PaymentVerificationLog.ACTION_REJECTED, previous, log_notes)

    logger.info('Payment for application %s rejected by admin %s: %s', application.id, admin.id, reason)
    send_payment_rejected_email(application)
    return application


def issue_permit(application_id, admin, permit_file, notes=None):
    application = PermitApplication.objects.get(pk=application_id)
    if not application.can_transition_to(PermitApplication.STATUS_PERMIT_READY):
        raise InvalidTransition(application.status, PermitApplication.STATUS_PERMIT_READY)
    validate_upload(permit_file, ALLOWED_PERMIT_CONTENT_TYPES, settings.PAYMENT_PROOF_MAX_BYTES)

    stored_path = save_file(permit_file, build_permit_path(application.id, permit_file.name))
    try:
        with transaction.atomic():
            application = _lock(application_id)
            previous = application.transition_to(PermitApplication.STATUS_PERMIT_READY)
            today = timezone.localdate()
            start = application.desired_start_date if (
                application.desired_start_date and application.desired_start_date > today
            ) else today
            application.permit_file_path = stored_path
            application.folio = f'{settings.PERMIT_FOLIO_PREFIX}-{application.id}'
            application.fecha_expedicion = start
            application.fecha_vencimiento = start + timedelta(days=settings.PERMIT_VALIDITY_DAYS)
            application.save()
            _log_action(application, admin, PaymentVerificationLog.ACTION_PERMIT_ISSUED, previous, notes)
    except Exception:
        # Nothing references the upload unless the row was saved
        delete_file(stored_path)
        raise

    logger.info('Permit %s issued for application %s', application.folio, application.id)
    send_permit_ready_email(application)
    return application


def change_status(application_id, admin, new_status, notes=None):
    if new_status in DEDICATED_TARGETS:
        raise ValueError(f'El estado {new_status} se asigna mediante su propia acción.')
    with transaction.atomic():
        application = _lock(application_id)
        previous = application.transition_to(new_status)
        application.save(update_fields=['status', 'updated_at'])
        _log_action(application, admin, PaymentVerificationLog.ACTION_STATUS_CHANGED, previous, notes)

    logger.info('Application %s moved %s -> %s by admin %s', application.id, previous, new_status, admin.id)
    return application


def renewal_eligibility(application, today=None):
    if application.status not in PermitApplication.RENEWABLE_STATUSES:
        return {
            'eligible': False,
            'message': 'Solo los permisos emitidos o vencidos pueden ser renovados.',
        }
    if not application.fecha_vencimiento:
        return {
            'eligible': False,
            'message': 'Este permiso no tiene fecha de vencimiento.',
        }

    days = application.days_until_expiration(today)
    result = {
        'daysUntilExpiration': days,
        'expirationDate': application.fecha_vencimiento.isoformat(),
    }
    if -RENEWAL_DAYS_AFTER <= days <= RENEWAL_DAYS_BEFORE:
        if days > 0:
            message = f'Su permiso vence en {days} días. Puede renovarlo ahora.'
        elif days == 0:
            message = 'Su permiso vence hoy. Puede renovarlo ahora.'
        else:
            message = f'Su permiso venció hace {abs(days)} días. Aún puede renovarlo.'
        result.update(eligible=True, message=message)
    elif days > RENEWAL_DAYS_BEFORE:
        result.update(
            eligible=False,
            message=(
                f'Su permiso vence en {days} días. '
                f'Podrá renovarlo {RENEWAL_DAYS_BEFORE} días antes de su vencimiento.'
            ),
        )
    else:
        result.update(
            eligible=False,
            message=f'Su permiso venció hace más de {RENEWAL_DAYS_AFTER} días. Debe solicitar un nuevo permiso.',
        )
    return result


def renew_application(application, today=None):
    eligibility = renewal_eligibility(application, today)
    if not eligibility['eligible']:
        raise RenewalNotAllowed(eligibility['message'])

    with transaction.atomic():
        original = _lock(application.id)
        if original.renewals.filter(status__in=PermitApplication.OPEN_STATUSES).exists():
            raise RenewalNotAllowed('Ya existe una renovación en curso para este permiso.')
        renewal = PermitApplication(
            user=original.user,
            importe=settings.PERMIT_FEE,
            renewed_from=original,
            renewal_count=original.renewal_count + 1,
        )
        for field in APPLICATION_FIELDS:
            setattr(renewal, field, getattr(original, field))
        renewal.save()

    logger.info('Renewal %s created from application %s', renewal.id, original.id)
    return renewal


def expiring_permits(user, today=None):
    today = today or timezone.localdate()
    return (
        PermitApplication.objects
        .filter(
            user=user,
            status__in=PermitApplication.ISSUED_STATUSES,
            fecha_vencimiento__gte=today,
            fecha_vencimiento__lte=today + timedelta(days=RENEWAL_DAYS_BEFORE),
        )
        .order_by('fecha_vencimiento')
    )


def expire_applications(today=None, now=None):
    """Expire issued permits past their end date and cancel stale unpaid applications."""
    now = now or timezone.now()
    today = today or timezone.localdate(now)

    expired = (
        PermitApplication.objects
        .filter(status__in=PermitApplication.ISSUED_STATUSES, fecha_vencimiento__lt=today)
        .update(status=PermitApplication.STATUS_EXPIRED, updated_at=now)
    )
    cutoff = now - timedelta(days=settings.UNPAID_APPLICATION_TTL_DAYS)
    cancelled = (
        PermitApplication.objects
        .filter(status__in=PermitApplication.EDITABLE_STATUSES, updated_at__lt=cutoff)
        .update(status=PermitApplication.STATUS_CANCELLED, updated_at=now)
    )
    reminded = send_expiration_reminders(today=today, now=now)
    if expired or cancelled or reminded:
        logger.info(
            'Maintenance run: %s permits expired, %s unpaid applications cancelled, %s reminders sent',
            expired, cancelled, reminded,
        )
    return {'expired': expired, 'cancelled': cancelled, 'reminded': reminded}


def send_expiration_reminders(today=None, now=None):
    """Mail each permit owner once when the permit enters the renewal window."""
    now = now or timezone.now()
    today = today or timezone.localdate(now)
    due = (
        PermitApplication.objects
        .select_related('user')
        .filter(
            status__in=PermitApplication.ISSUED_STATUSES,
            expiration_reminder_sent_at__isnull=True,
            fecha_vencimiento__gte=today,
            fecha_vencimiento__lte=today + timedelta(days=RENEWAL_DAYS_BEFORE),
        )
        .order_by('fecha_vencimiento', 'id')
    )
    sent = 0
    for application in due:
        if application.renewals.filter(status__in=PermitApplication.OPEN_STATUSES).exists():
            continue
        days_left = (application.fecha_vencimiento - today).days
        if not send_expiration_reminder_email(application, days_left):
            # Left unmarked so the next run retries
            logger.warning('Expiration reminder for application %s was not sent', application.id)
            continue
        PermitApplication.objects.filter(pk=application.pk).update(expiration_reminder_sent_at=now)
        sent += 1
    return sent
