from django.conf import settings
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone


alnum_validator = RegexValidator(
    r'^[A-Za-z0-9]+$',
    'Solo se permiten letras y números.'
)


class InvalidTransition(Exception):
    """Raised when an application is asked to move to a status its current one does not allow."""

    def __init__(self, current, target, message=None):
        self.current = current
        self.target = target
        super().__init__(message or f'No se puede cambiar el estado de {current} a {target}.')


class PermitApplication(models.Model):
    STATUS_PENDING_PAYMENT = 'PENDING_PAYMENT'
    STATUS_PROOF_SUBMITTED = 'PROOF_SUBMITTED'
    STATUS_PROOF_REJECTED = 'PROOF_REJECTED'
    STATUS_PAYMENT_RECEIVED = 'PAYMENT_RECEIVED'
    STATUS_PERMIT_READY = 'PERMIT_READY'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_EXPIRED = 'EXPIRED'
    STATUS_CHOICES = [
        (STATUS_PENDING_PAYMENT, 'Pago Pendiente'),
        (STATUS_PROOF_SUBMITTED, 'Comprobante Enviado'),
        (STATUS_PROOF_REJECTED, 'Comprobante Rechazado'),
        (STATUS_PAYMENT_RECEIVED, 'Pago Recibido'),
        (STATUS_PERMIT_READY, 'Permiso Listo'),
        (STATUS_COMPLETED, 'Completado'),
        (STATUS_CANCELLED, 'Cancelado'),
        (STATUS_EXPIRED, 'Expirado'),
    ]

    ALLOWED_TRANSITIONS = {
        STATUS_PENDING_PAYMENT: (STATUS_PROOF_SUBMITTED, STATUS_CANCELLED),
        STATUS_PROOF_REJECTED: (STATUS_PROOF_SUBMITTED, STATUS_CANCELLED),
        STATUS_PROOF_SUBMITTED: (STATUS_PAYMENT_RECEIVED, STATUS_PROOF_REJECTED),
        STATUS_PAYMENT_RECEIVED: (STATUS_PERMIT_READY,),
        STATUS_PERMIT_READY: (STATUS_COMPLETED, STATUS_EXPIRED),
        STATUS_COMPLETED: (STATUS_EXPIRED,),
        STATUS_CANCELLED: (),
        STATUS_EXPIRED: (),
    }

    # Statuses in which the owner may still edit data or upload a payment proof
    EDITABLE_STATUSES = (STATUS_PENDING_PAYMENT, STATUS_PROOF_REJECTED)
    ISSUED_STATUSES = (STATUS_PERMIT_READY, STATUS_COMPLETED)
    RENEWABLE_STATUSES = (STATUS_PERMIT_READY, STATUS_COMPLETED, STATUS_EXPIRED)
    OPEN_STATUSES = (
        STATUS_PENDING_PAYMENT, STATUS_PROOF_SUBMITTED, STATUS_PROOF_REJECTED, STATUS_PAYMENT_RECEIVED,
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name='applications',
    )
    status = models.CharField(
        max_length=30,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING_PAYMENT,
    )

    # Applicant
    nombre_completo = models.CharField(max_length=255)
    curp_rfc = models.CharField(max_length=50, validators=[alnum_validator])
    domicilio = models.TextField()

    # Vehicle
    marca = models.CharField(max_length=100)
    linea = models.CharField(max_length=100)
    color = models.CharField(max_length=100)
    numero_serie = models.CharField(max_length=50, validators=[alnum_validator])
    numero_motor = models.CharField(max_length=50)
    ano_modelo = models.PositiveIntegerField(validators=[MinValueValidator(1900)])

    # Payment
    importe = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    payment_reference = models.CharField(max_length=100, null=True, blank=True)
    payment_proof_path = models.CharField(max_length=512, null=True, blank=True)
    payment_proof_uploaded_at = models.DateTimeField(null=True, blank=True)
    payment_verified_at = models.DateTimeField(null=True, blank=True)
    payment_verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='verified_applications',
    )
    payment_rejection_reason = models.TextField(null=True, blank=True)
    desired_start_date = models.DateField(null=True, blank=True)

    # Permit (filled when the permit is issued)
    folio = models.CharField(max_length=50, unique=True, null=True, blank=True)
    permit_file_path = models.CharField(max_length=512, null=True, blank=True)
    fecha_expedicion = models.DateField(null=True, blank=True)
    fecha_vencimiento = models.DateField(null=True, blank=True)
    expiration_reminder_sent_at = models.DateTimeField(null=True, blank=True)

    # Renewal
    renewed_from = models.ForeignKey(
        'self', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='renewals',
    )
    renewal_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'permit_applications'
        indexes = [
            models.Index(fields=['user', 'created_at'], name='permit_app_user_created_idx'),
            models.Index(fields=['status'], name='permit_app_status_idx'),
            models.Index(fields=['numero_serie'], name='permit_app_serie_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"Solicitud {self.id} ({self.status})"

    def can_transition_to(self, new_status):
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, ())

    def transition_to(self, new_status):
        """Move to ``new_status`` in memory; the caller is responsible for saving."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(self.status, new_status)
        previous = self.status
        self.status = new_status
        return previous

    @property
    def is_editable(self):
        return self.status in self.EDITABLE_STATUSES

    def days_until_expiration(self, today=None):
        if not self.fecha_vencimiento:
            return None
        today = today or timezone.localdate()
        return (self.fecha_vencimiento - today).days

    def vehicle_info(self):
        return {
            'marca': self.marca,
            'linea': self.linea,
            'color': self.color,
            'ano_modelo': self.ano_modelo,
            'numero_serie': self.numero_serie,
            'numero_motor': self.numero_motor,
        }

    def owner_info(self):
        return {
            'nombre_completo': self.nombre_completo,
            'curp_rfc': self.curp_rfc,
            'domicilio': self.domicilio,
        }

    def to_summary_dict(self):
        return {
            'id': self.id,
            'status': self.status,
            'status_display': self.get_status_display(),
            'nombre_completo': self.nombre_completo,
            'marca': self.marca,
            'linea': self.linea,
            'ano_modelo': self.ano_modelo,
            'numero_serie': self.numero_serie,
            'folio': self.folio,
            'fecha_vencimiento': self.fecha_vencimiento.isoformat() if self.fecha_vencimiento else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_detail_dict(self):
        data = self.to_summary_dict()
        data.update({
            'vehicleInfo': self.vehicle_info(),
            'ownerInfo': self.owner_info(),
            'importe': str(self.importe) if self.importe is not None else None,
            'payment_reference': self.payment_reference,
            'has_payment_proof': bool(self.payment_proof_path),
            'payment_proof_uploaded_at': (
                self.payment_proof_uploaded_at.isoformat() if self.payment_proof_uploaded_at else None
            ),
            'payment_verified_at': self.payment_verified_at.isoformat() if self.payment_verified_at else None,
            'payment_rejection_reason': self.payment_rejection_reason,
            'desired_start_date': self.desired_start_date.isoformat() if self.desired_start_date else None,
            'has_permit_file': bool(self.permit_file_path),
            'fecha_expedicion': self.fecha_expedicion.isoformat() if self.fecha_expedicion else None,
            'renewed_from_id': self.renewed_from_id,
            'renewal_count': self.renewal_count,
        })
        return data
