from datetime import timedelta
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.utils import timezone

from permisos.models import PermitApplication

from .helpers import APITestCase, make_application, make_issued_application, make_user


class ExpireApplicationsCommandTests(APITestCase):
    def setUp(self):
        super().setUp()
        self.user = make_user()

    def test_command_reports_counts(self):
        expired = make_issued_application(self.user, expires_in_days=-2, folio='HTZ-20')
        out = StringIO()
        call_command('expire_applications', stdout=out)
        self.assertIn('1 permit(s) expired, 0 unpaid application(s) cancelled, 0 reminder(s) sent.', out.getvalue())
        expired.refresh_from_db()
        self.assertEqual(expired.status, PermitApplication.STATUS_EXPIRED)

    def test_command_with_date(self):
        application = make_issued_application(self.user, expires_in_days=5, folio='HTZ-21')
        future = (timezone.localdate() + timedelta(days=6)).isoformat()
        call_command('expire_applications', date=future, stdout=StringIO())
        application.refresh_from_db()
        self.assertEqual(application.status, PermitApplication.STATUS_EXPIRED)

    def test_date_moves_the_unpaid_cutoff(self):
        recent = make_application(self.user)
        future = (timezone.localdate() + timedelta(days=30)).isoformat()
        call_command('expire_applications', date=future, stdout=StringIO())
        recent.refresh_from_db()
        self.assertEqual(recent.status, PermitApplication.STATUS_CANCELLED)

    def test_loop_honours_date(self):
        recent = make_application(self.user)
        future = (timezone.localdate() + timedelta(days=30)).isoformat()
        out = StringIO()
        with mock.patch('permisos.management.commands.expire_applications.time.sleep',
                        side_effect=KeyboardInterrupt):
            call_command('expire_applications', date=future, loop=True, stdout=out)
        self.assertIn('0 permit(s) expired, 1 unpaid application(s) cancelled', out.getvalue())
        recent.refresh_from_db()
        self.assertEqual(recent.status, PermitApplication.STATUS_CANCELLED)

    def test_invalid_date(self):
        with self.assertRaises(CommandError):
            call_command('expire_applications', date='31/12/2026', stdout=StringIO())

    @mock.patch('permisos.workflow.send_expiration_reminder_email', return_value=True)
    def test_command_sends_reminders(self, reminder_mail):
        make_issued_application(self.user, expires_in_days=4, folio='HTZ-22')
        out = StringIO()
        call_command('expire_applications', stdout=out)
        self.assertIn('1 reminder(s) sent.', out.getvalue())
        reminder_mail.assert_called_once()


class CronEndpointTests(APITestCase):
    url = '/api/cron/expire-applications'

    def test_requires_secret(self):
        self.assertEqual(self.client.post(self.url).status_code, 403)
        self.assertEqual(self.client.post(self.url, HTTP_X_CRON_SECRET='wrong').status_code, 403)

    def test_runs_maintenance(self):
        user = make_user()
        make_issued_application(user, expires_in_days=-1, folio='HTZ-30')
        stale = make_application(user)
        PermitApplication.objects.filter(pk=stale.pk).update(updated_at=timezone.now() - timedelta(days=30))

        response = self.client.post(self.url, HTTP_X_CRON_SECRET='cron-secret')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True, 'expired': 1, 'cancelled': 1, 'reminded': 0})

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url, HTTP_X_CRON_SECRET='cron-secret').status_code, 405)


class HealthTests(APITestCase):
    def test_health(self):
        response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True, 'status': 'ok', 'database': 'ok'})

    def test_database_failure_is_degraded(self):
        with mock.patch('permisos.views_health.connection.cursor', side_effect=DatabaseError('down')):
            response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json(), {'success': False, 'status': 'degraded', 'database': 'error'})
