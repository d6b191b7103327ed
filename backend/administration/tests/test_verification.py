from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import Client

from permisos.models import PaymentVerificationLog, PermitApplication
from permisos.tests.helpers import APITestCase, make_application, make_user, pdf_upload


class AdminAccessTests(APITestCase):
    def test_anonymous_gets_401(self):
        response = self.client.get('/api/admin/pending-verifications')
        self.assertEqual(response.status_code, 401)

    def test_client_gets_403(self):
        self.login(make_user())
        response = self.client.get('/api/admin/pending-verifications')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'ADMIN_REQUIRED')


@mock.patch('permisos.workflow.send_payment_verified_email')
@mock.patch('permisos.workflow.send_payment_rejected_email')
@mock.patch('permisos.workflow.send_permit_ready_email')
class PaymentReviewTests(APITestCase):
    def setUp(self):
        super().setUp()
        self.admin = make_user(email='admin@example.com', admin=True, first_name='Admin', last_name='Central')
        self.owner = make_user()
        self.login(self.admin)

    def submitted(self, **extra):
        return make_application(
            self.owner, status=PermitApplication.STATUS_PROOF_SUBMITTED,
            payment_proof_path='payment_proofs/application_0/comprobante.pdf', **extra
        )

    def test_pending_verifications_oldest_first(self, *_mocks):
        first = self.submitted()
        second = self.submitted()
        make_application(self.owner)
        PermitApplication.objects.filter(pk=second.pk).update(payment_proof_uploaded_at='2026-01-01T10:00:00Z')
        PermitApplication.objects.filter(pk=first.pk).update(payment_proof_uploaded_at='2026-01-02T10:00:00Z')

        body = self.client.get('/api/admin/pending-verifications').json()
        self.assertEqual(body['count'], 2)
        self.assertEqual([a['id'] for a in body['applications']], [second.id, first.id])
        self.assertEqual(body['applications'][0]['user_email'], self.owner.email)

    def test_verify_payment(self, permit_mail, rejected_mail, verified_mail):
        application = self.submitted()
        response = self.post_json(f'/api/admin/applications/{application.id}/verify-payment', {'notes': 'OK'})
        self.assertEqual(response.status_code, 200)
        body = response.json()['application']
        self.assertEqual(body['status'], PermitApplication.STATUS_PAYMENT_RECEIVED)
        self.assertEqual(body['payment_verified_by'], 'Admin Central')
        verified_mail.assert_called_once()

    def test_verify_wrong_status_conflicts(self, *_mocks):
        application = make_application(self.owner)
        response = self.post_json(f'/api/admin/applications/{application.id}/verify-payment')
        self.assertEqual(response.status_code, 409)
        self.assertFalse(PaymentVerificationLog.objects.exists())

    def test_verify_missing_application(self, *_mocks):
        response = self.post_json('/api/admin/applications/424242/verify-payment')
        self.assertEqual(response.status_code, 404)

    def test_reject_requires_reason(self, *_mocks):
        application = self.submitted()
        response = self.post_json(f'/api/admin/applications/{application.id}/reject-payment', {'notes': 'x'})
        self.assertEqual(response.status_code, 400)
        application.refresh_from_db()
        self.assertEqual(application.status, PermitApplication.STATUS_PROOF_SUBMITTED)

    def test_reject_payment(self, permit_mail, rejected_mail, verified_mail):
        application = self.submitted()
        response = self.post_json(
            f'/api/admin/applications/{application.id}/reject-payment',
            {'reason': 'Comprobante ilegible', 'notes': 'Foto borrosa'},
        )
        self.assertEqual(response.status_code, 200)
        application.refresh_from_db()
        self.assertEqual(application.status, PermitApplication.STATUS_PROOF_REJECTED)
        self.assertEqual(application.payment_rejection_reason, 'Comprobante ilegible')
        rejected_mail.assert_called_once()

    def test_full_cycle_with_resubmission(self, *_mocks):
        application = self.submitted()
        self.post_json(f'/api/admin/applications/{application.id}/reject-payment', {'reason': 'Monto incorrecto'})

        self.login(self.owner)
        upload = self.client.post(
            f'/api/applications/{application.id}/payment-proof', {'paymentProof': pdf_upload()}
        )
        self.assertEqual(upload.status_code, 200)

        self.login(self.admin)
        self.post_json(f'/api/admin/applications/{application.id}/verify-payment')
        issued = self.client.post(
            f'/api/admin/applications/{application.id}/issue-permit',
            {'permitFile': pdf_upload('permiso.pdf', b'%PDF-1.4 permiso')},
        )
        self.assertEqual(issued.status_code, 200)
        self.assertEqual(issued.json()['application']['folio'], f'HTZ-{application.id}')

        history = self.client.get(f'/api/admin/applications/{application.id}/verification-history').json()
        self.assertEqual(
            [entry['action'] for entry in history['history']],
            [PaymentVerificationLog.ACTION_REJECTED, PaymentVerificationLog.ACTION_VERIFIED,
             PaymentVerificationLog.ACTION_PERMIT_ISSUED],
        )

        self.login(self.owner)
        download = self.client.get(f'/api/applications/{application.id}/download/permiso')
        self.assertEqual(download.status_code, 200)
        self.assertEqual(download.content, b'%PDF-1.4 permiso')
        self.assertIn(f'permiso_HTZ-{application.id}.pdf', download['Content-Disposition'])

    def test_issue_permit_requires_pdf(self, *_mocks):
        application = make_application(self.owner, status=PermitApplication.STATUS_PAYMENT_RECEIVED)
        upload = SimpleUploadedFile('permiso.png', b'\x89PNG', content_type='image/png')
        response = self.client.post(f'/api/admin/applications/{application.id}/issue-permit', {'permitFile': upload})
        self.assertEqual(response.status_code, 400)
        application.refresh_from_db()
        self.assertEqual(application.status, PermitApplication.STATUS_PAYMENT_RECEIVED)

    def test_issue_permit_before_verification(self, *_mocks):
        application = self.submitted()
        response = self.client.post(
            f'/api/admin/applications/{application.id}/issue-permit', {'permitFile': pdf_upload('permiso.pdf')}
        )
        self.assertEqual(response.status_code, 409)

    def test_admin_views_payment_proof_inline(self, *_mocks):
        application = make_application(self.owner)
        self.login(self.owner)
        self.client.post(f'/api/applications/{application.id}/payment-proof', {'paymentProof': pdf_upload()})

        self.login(self.admin)
        response = self.client.get(f'/api/admin/applications/{application.id}/payment-proof')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response['Content-Disposition'].startswith('inline'))

    def test_payment_proof_absent(self, *_mocks):
        application = make_application(self.owner)
        response = self.client.get(f'/api/admin/applications/{application.id}/payment-proof')
        self.assertEqual(response.status_code, 404)


@mock.patch('permisos.workflow.send_payment_verified_email')
class AdminCsrfTests(APITestCase):
    def setUp(self):
        super().setUp()
        self.admin = make_user(email='admin@example.com', admin=True)
        self.application = make_application(
            make_user(), status=PermitApplication.STATUS_PROOF_SUBMITTED,
            payment_proof_path='payment_proofs/application_0/comprobante.pdf',
        )
        self.url = f'/api/admin/applications/{self.application.id}/verify-payment'
        self.csrf_client = Client(enforce_csrf_checks=True)
        self.csrf_client.force_login(self.admin)

    def test_verify_without_token_is_rejected(self, verified_mail):
        response = self.csrf_client.post(self.url, data={'notes': 'OK'}, content_type='application/json')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'CSRF_FAILED')
        self.application.refresh_from_db()
        self.assertEqual(self.application.status, PermitApplication.STATUS_PROOF_SUBMITTED)
        verified_mail.assert_not_called()

    def test_verify_with_header_token(self, verified_mail):
        token = self.csrf_client.get('/api/auth/csrf-token').json()['csrfToken']
        response = self.csrf_client.post(
            self.url, data={'notes': 'OK'}, content_type='application/json', HTTP_X_CSRF_TOKEN=token,
        )
        self.assertEqual(response.status_code, 200)
        self.application.refresh_from_db()
        self.assertEqual(self.application.status, PermitApplication.STATUS_PAYMENT_RECEIVED)
