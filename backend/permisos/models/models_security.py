import secrets
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone


class PasswordResetToken(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name='password_reset_tokens',
    )
    token = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    used = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'password_reset_tokens'

    @classmethod
    def issue(cls, user, ttl_minutes=None):
        ttl = ttl_minutes if ttl_minutes is not None else settings.PASSWORD_RESET_TTL_MINUTES
        return cls.objects.create(
            user=user,
            token=secrets.token_hex(32),
            expires_at=timezone.now() + timedelta(minutes=ttl),
        )

    @property
    def is_valid(self):
        return not self.used and timezone.now() < self.expires_at


class SecurityAuditLog(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='security_events',
    )
    action_type = models.CharField(max_length=100)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'security_audit_log'
        indexes = [
            models.Index(fields=['action_type', 'created_at'], name='sal_action_created_idx'),
        ]
        ordering = ['-created_at']
