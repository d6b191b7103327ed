from datetime import date, timedelta

from django.test import TestCase

from permisos import workflow
from permisos.models import PermitApplication

from .helpers import APITestCase, make_application, make_issued_application, make_user


class RenewalEligibilityTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.today = date(2026, 5, 10)

    def eligibility(self, days, status=PermitApplication.STATUS_PERMIT_READY):
        application = make_application(
            self.user, status=status,
            fecha_vencimiento=self.today + timedelta(days=days),
        )
        return workflow.renewal_eligibility(application, today=self.today)

    def test_window_edges(self):
        self.assertTrue(self.eligibility(7)['eligible'])
        self.assertTrue(self.eligibility(0)['eligible'])
        self.assertTrue(self.eligibility(-15)['eligible'])
        self.assertFalse(self.eligibility(8)['eligible'])
        self.assertFalse(self.eligibility(-16)['eligible'])

    def test_expired_permit_is_still_renewable(self):
        result = self.eligibility(-3, status=PermitApplication.STATUS_EXPIRED)
        self.assertTrue(result['eligible'])
        self.assertEqual(result['daysUntilExpiration'], -3)
        self.assertIn('venció hace 3 días', result['message'])

    def test_messages(self):
        self.assertIn('vence hoy', self.eligibility(0)['message'])
        self.assertIn('Podrá renovarlo 7 días antes', self.eligibility(20)['message'])
        self.assertIn('más de 15 días', self.eligibility(-30)['message'])

    def test_unissued_application_is_not_eligible(self):
        application = make_application(self.user)
        result = workflow.renewal_eligibility(application, today=self.today)
        self.assertFalse(result['eligible'])
        self.assertNotIn('daysUntilExpiration', result)

    def test_issued_without_end_date(self):
        application = make_application(self.user, status=PermitApplication.STATUS_COMPLETED)
        self.assertFalse(workflow.renewal_eligibility(application, today=self.today)['eligible'])


class RenewEndpointTests(APITestCase):
    def setUp(self):
        super().setUp()
        self.user = make_user()
        self.login(self.user)

    def test_eligibility_endpoint(self):
        application = make_issued_application(self.user, expires_in_days=5, folio='HTZ-10')
        response = self.client.get(f'/api/applications/{application.id}/renewal-eligibility')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['eligible'])
        self.assertEqual(body['daysUntilExpiration'], 5)

    def test_renew_copies_fields_and_links_original(self):
        original = make_issued_application(self.user, expires_in_days=2, folio='HTZ-11', color='Negro')
        response = self.client.post(f'/api/applications/{original.id}/renew')
        self.assertEqual(response.status_code, 201)

        renewal = PermitApplication.objects.get(pk=response.json()['application']['id'])
        self.assertEqual(renewal.status, PermitApplication.STATUS_PENDING_PAYMENT)
        self.assertEqual(renewal.renewed_from, original)
        self.assertEqual(renewal.renewal_count, 1)
        self.assertEqual(renewal.color, 'Negro')
        self.assertEqual(renewal.numero_serie, original.numero_serie)
        self.assertIsNone(renewal.folio)
        self.assertIsNone(renewal.payment_proof_path)

    def test_second_open_renewal_conflicts(self):
        original = make_issued_application(self.user, expires_in_days=2, folio='HTZ-12')
        self.assertEqual(self.client.post(f'/api/applications/{original.id}/renew').status_code, 201)
        response = self.client.post(f'/api/applications/{original.id}/renew')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'RENEWAL_NOT_ALLOWED')
        self.assertEqual(original.renewals.count(), 1)

    def test_renewal_allowed_again_after_previous_one_was_cancelled(self):
        original = make_issued_application(self.user, expires_in_days=2, folio='HTZ-13')
        first = self.client.post(f'/api/applications/{original.id}/renew').json()['application']['id']
        self.client.post(f'/api/applications/{first}/cancel')
        response = self.client.post(f'/api/applications/{original.id}/renew')
        self.assertEqual(response.status_code, 201)

    def test_renewal_outside_window(self):
        original = make_issued_application(self.user, expires_in_days=25, folio='HTZ-14')
        response = self.client.post(f'/api/applications/{original.id}/renew')
        self.assertEqual(response.status_code, 409)
        self.assertFalse(original.renewals.exists())

    def test_renewal_count_accumulates(self):
        original = make_issued_application(self.user, expires_in_days=1, folio='HTZ-15', renewal_count=2)
        response = self.client.post(f'/api/applications/{original.id}/renew')
        self.assertEqual(response.json()['application']['renewal_count'], 3)
