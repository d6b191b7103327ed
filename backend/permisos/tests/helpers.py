import json
import shutil
import tempfile
from datetime import timedelta

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone

from permisos.models import PermitApplication, User

PASSWORD = 'contrasena-segura-1'

VALID_APPLICATION = {
    'nombre_completo': 'Juan Pérez López',
    'curp_rfc': 'PELJ800101HDFRPN09',
    'domicilio': 'Av. Reforma 123, Col. Centro, CDMX',
    'marca': 'Nissan',
    'linea': 'Versa',
    'color': 'Blanco',
    'numero_serie': '3N1CN7AD0KL123456',
    'numero_motor': 'HR16123456',
    'ano_modelo': 2020,
}


def make_user(email='cliente@example.com', admin=False, **extra):
    extra.setdefault('first_name', 'Juan')
    extra.setdefault('last_name', 'Pérez')
    if admin:
        return User.objects.create_admin(email, PASSWORD, **extra)
    return User.objects.create_user(email, PASSWORD, **extra)


def make_application(user, status=PermitApplication.STATUS_PENDING_PAYMENT, **overrides):
    fields = dict(VALID_APPLICATION)
    fields.update(overrides)
    return PermitApplication.objects.create(user=user, status=status, importe='150.00', **fields)


def make_issued_application(user, expires_in_days, status=PermitApplication.STATUS_PERMIT_READY, **overrides):
    today = timezone.localdate()
    return make_application(
        user,
        status=status,
        fecha_expedicion=today + timedelta(days=expires_in_days - 30),
        fecha_vencimiento=today + timedelta(days=expires_in_days),
        **overrides,
    )


def pdf_upload(name='comprobante.pdf', content=b'%PDF-1.4 comprobante de prueba'):
    return SimpleUploadedFile(name, content, content_type='application/pdf')


def png_upload(name='comprobante.png'):
    return SimpleUploadedFile(name, b'\x89PNG\r\n\x1a\nimagen', content_type='image/png')


class APITestCase(TestCase):
    """Local file storage in a scratch directory, no SMTP and a fresh rate-limit cache."""

    def setUp(self):
        super().setUp()
        media_root = tempfile.mkdtemp(prefix='permisos-test-')
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        overrides = override_settings(
            MEDIA_ROOT=media_root,
            STORAGE_BACKEND='local',
            SENDER_EMAIL='',
            CRON_SECRET='cron-secret',
        )
        overrides.enable()
        self.addCleanup(overrides.disable)
        cache.clear()
        self.addCleanup(cache.clear)

    def post_json(self, url, payload=None, **extra):
        return self.client.post(url, data=json.dumps(payload or {}), content_type='application/json', **extra)

    def put_json(self, url, payload=None, **extra):
        return self.client.put(url, data=json.dumps(payload or {}), content_type='application/json', **extra)

    def patch_json(self, url, payload=None, **extra):
        return self.client.patch(url, data=json.dumps(payload or {}), content_type='application/json', **extra)

    def login(self, user):
        self.client.force_login(user)
