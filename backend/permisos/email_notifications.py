import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from django.conf import settings

logger = logging.getLogger(__name__)


def send_email(recipient_email: str, subject: str, body: str) -> bool:
    """
    Sends a plain-text email through the configured SMTP server.

    Args:
        recipient_email (str): The recipient's email address.
        subject (str): Subject line.
        body (str): Plain-text body.

    Returns:
        bool: True if the email was sent successfully, False otherwise.
    """
    sender = getattr(settings, 'SENDER_EMAIL', '')
    if not sender or not recipient_email:
        logger.warning("Email not sent to %s: SMTP sender not configured", recipient_email)
        return False

    message = MIMEMultipart()
    message["From"] = sender
    message["To"] = recipient_email
    message["Subject"] = subject
    message.attach(MIMEText(body, "plain", "utf-8"))

    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=15) as server:
            server.starttls()
            server.login(sender, settings.SENDER_PASSWORD)
            server.send_message(message)

        logger.info("Email '%s' sent to %s", subject, recipient_email)
        return True

    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send '%s' to %s. Error: %s", subject, recipient_email, e)
        return False


def send_payment_verified_email(application) -> bool:
    user = application.user
    body = (
        f"Hola {user.first_name or ''},\n\n"
        f"Hemos verificado el pago de su solicitud #{application.id} "
        f"({application.marca} {application.linea} {application.ano_modelo}).\n\n"
        f"Su permiso está siendo preparado. Le avisaremos cuando esté listo para descargar.\n\n"
        f"Saludos,\nPermisos Digitales"
    )
    return send_email(user.email, "Pago verificado - Permisos Digitales", body)


def send_payment_rejected_email(application) -> bool:
    user = application.user
    body = (
        f"Hola {user.first_name or ''},\n\n"
        f"El comprobante de pago de su solicitud #{application.id} fue rechazado.\n\n"
        f"Motivo: {application.payment_rejection_reason or 'No especificado'}\n\n"
        f"Puede subir un nuevo comprobante desde su panel.\n\n"
        f"Saludos,\nPermisos Digitales"
    )
    return send_email(user.email, "Comprobante rechazado - Permisos Digitales", body)


def send_permit_ready_email(application) -> bool:
    user = application.user
    body = (
        f"Hola {user.first_name or ''},\n\n"
        f"Su permiso con folio {application.folio} está listo para descargar.\n"
        f"Vigencia: {application.fecha_expedicion} al {application.fecha_vencimiento}.\n\n"
        f"Saludos,\nPermisos Digitales"
    )
    return send_email(user.email, "Su permiso está listo - Permisos Digitales", body)


def send_password_reset_email(user, token) -> bool:
    link = f"{settings.FRONTEND_URL}/reset-password?token={token}"
    body = (
        f"Hola {user.first_name or ''},\n\n"
        f"Recibimos una solicitud para restablecer su contraseña.\n"
        f"Use el siguiente enlace (válido por {settings.PASSWORD_RESET_TTL_MINUTES} minutos):\n\n"
        f"{link}\n\n"
        f"Si usted no lo solicitó, ignore este mensaje.\n\n"
        f"Saludos,\nPermisos Digitales"
    )
    return send_email(user.email, "Restablecer contraseña - Permisos Digitales", body)


def send_expiration_reminder_email(application, days_left) -> bool:
    user = application.user
    if days_left <= 0:
        when = "vence hoy"
    elif days_left == 1:
        when = "vence mañana"
    else:
        when = f"vence en {days_left} días"
    body = (
        f"Hola {user.first_name or ''},\n\n"
        f"Su permiso con folio {application.folio} {when} ({application.fecha_vencimiento}).\n"
        f"Puede solicitar la renovación desde su cuenta:\n\n"
        f"{settings.FRONTEND_URL}/permits/{application.id}/renew\n\n"
        f"Saludos,\nPermisos Digitales"
    )
    return send_email(user.email, "Su permiso está por vencer - Permisos Digitales", body)
