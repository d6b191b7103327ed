import logging

from django.db import DatabaseError

from permisos.models import SecurityAuditLog
from .request_helpers import client_ip

logger = logging.getLogger(__name__)


def log_activity(request, action_type, user=None, **details):
    """Record a security event; failures are logged and never interrupt the request."""
    try:
        SecurityAuditLog.objects.create(
            user=user if user is not None and getattr(user, 'pk', None) else None,
            action_type=action_type,
            ip_address=client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', '')[:1000],
            details=details,
        )
    except DatabaseError as e:
        logger.error('Could not write security audit event %s: %s', action_type, e)
