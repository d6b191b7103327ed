from django.conf import settings
from django.db import models


class PaymentVerificationLog(models.Model):
    """Append-only audit trail of admin actions on an application."""

    ACTION_VERIFIED = 'VERIFIED'
    ACTION_REJECTED = 'REJECTED'
    ACTION_PERMIT_ISSUED = 'PERMIT_ISSUED'
    ACTION_STATUS_CHANGED = 'STATUS_CHANGED'
    ACTION_CHOICES = [
        (ACTION_VERIFIED, 'Verified'),
        (ACTION_REJECTED, 'Rejected'),
        (ACTION_PERMIT_ISSUED, 'Permit issued'),
        (ACTION_STATUS_CHANGED, 'Status changed'),
    ]

    application = models.ForeignKey(
        'PermitApplication', on_delete=models.CASCADE,
        related_name='verification_logs',
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='verification_actions',
    )
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    previous_status = models.CharField(max_length=30, blank=True)
    new_status = models.CharField(max_length=30, blank=True)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payment_verification_log'
        indexes = [
            models.Index(fields=['application', 'created_at'], name='pvl_app_created_idx'),
            models.Index(fields=['action', 'created_at'], name='pvl_action_created_idx'),
        ]
        ordering = ['-created_at']

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError('Verification log entries cannot be modified.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError('Verification log entries cannot be deleted.')

    def to_dict(self):
        return {
            'id': self.id,
            'application_id': self.application_id,
            'action': self.action,
            'previous_status': self.previous_status,
            'new_status': self.new_status,
            'notes': self.notes,
            'verified_by': self.verified_by_id,
            'verified_by_email': getattr(self.verified_by, 'email', None),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
