from unittest import mock

import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, override_settings

from permisos import storage

from .helpers import APITestCase, pdf_upload

SUPABASE = dict(
    STORAGE_BACKEND='supabase',
    SUPABASE_URL='https://proyecto.supabase.co/',
    SUPABASE_SERVICE_KEY='service-key',
    SUPABASE_PAYMENT_BUCKET='payment-proofs',
)


class PathTests(SimpleTestCase):
    def test_payment_proof_path(self):
        path = storage.build_payment_proof_path(42, '../../etc/passwd')
        self.assertTrue(path.startswith('payment_proofs/application_42/'))
        self.assertNotIn('..', path)
        self.assertEqual(path.count('/'), 2)

    def test_permit_path_default_name(self):
        self.assertTrue(storage.build_permit_path(7, '').endswith('_permiso.pdf'))


class ValidateUploadTests(SimpleTestCase):
    def test_accepts_allowed_type(self):
        storage.validate_upload(pdf_upload(), storage.ALLOWED_PROOF_CONTENT_TYPES, 1024)

    def test_rejects_mismatched_extension(self):
        upload = SimpleUploadedFile('comprobante.exe', b'%PDF', content_type='application/pdf')
        with self.assertRaises(storage.UploadRejected) as ctx:
            storage.validate_upload(upload, storage.ALLOWED_PROOF_CONTENT_TYPES, 1024)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_jpeg_extension_only_for_jpeg(self):
        storage.validate_upload(
            SimpleUploadedFile('foto.jpeg', b'\xff\xd8', content_type='image/jpeg'),
            storage.ALLOWED_PROOF_CONTENT_TYPES, 1024,
        )
        for allowed in (storage.ALLOWED_PROOF_CONTENT_TYPES, storage.ALLOWED_PERMIT_CONTENT_TYPES):
            upload = SimpleUploadedFile('x.jpeg', b'%PDF', content_type='application/pdf')
            with self.assertRaises(storage.UploadRejected):
                storage.validate_upload(upload, allowed, 1024)

    def test_png_named_as_jpg_is_rejected(self):
        upload = SimpleUploadedFile('foto.jpg', b'\x89PNG', content_type='image/png')
        with self.assertRaises(storage.UploadRejected):
            storage.validate_upload(upload, storage.ALLOWED_PROOF_CONTENT_TYPES, 1024)

    def test_permit_must_be_pdf(self):
        upload = SimpleUploadedFile('permiso.png', b'\x89PNG', content_type='image/png')
        with self.assertRaises(storage.UploadRejected):
            storage.validate_upload(upload, storage.ALLOWED_PERMIT_CONTENT_TYPES, 1024)

    def test_too_large(self):
        with self.assertRaises(storage.UploadRejected) as ctx:
            storage.validate_upload(pdf_upload(), storage.ALLOWED_PROOF_CONTENT_TYPES, 5)
        self.assertEqual(ctx.exception.status_code, 413)


class LocalStorageTests(APITestCase):
    def test_save_read_delete(self):
        path = storage.save_file(pdf_upload(), 'payment_proofs/application_1/comprobante.pdf')
        content, content_type = storage.read_file(path)
        self.assertEqual(content, b'%PDF-1.4 comprobante de prueba')
        self.assertEqual(content_type, 'application/pdf')

        storage.delete_file(path)
        with self.assertRaises(FileNotFoundError):
            storage.read_file(path)

    def test_read_empty_path(self):
        with self.assertRaises(FileNotFoundError):
            storage.read_file(None)


@override_settings(**SUPABASE)
class SupabaseStorageTests(SimpleTestCase):
    @mock.patch('permisos.storage.requests.post')
    def test_upload(self, post):
        post.return_value = mock.Mock(status_code=200, text='{}')
        path = storage.save_file(pdf_upload(), 'payment_proofs/application_1/comprobante.pdf')
        self.assertEqual(path, 'payment_proofs/application_1/comprobante.pdf')

        url = post.call_args.args[0]
        self.assertEqual(
            url,
            'https://proyecto.supabase.co/storage/v1/object/payment-proofs/payment_proofs/application_1/comprobante.pdf',
        )
        headers = post.call_args.kwargs['headers']
        self.assertEqual(headers['Authorization'], 'Bearer service-key')
        self.assertEqual(headers['Content-Type'], 'application/pdf')
        self.assertEqual(post.call_args.kwargs['data'], b'%PDF-1.4 comprobante de prueba')

    @mock.patch('permisos.storage.requests.post')
    def test_upload_failure(self, post):
        post.return_value = mock.Mock(status_code=500, text='boom')
        with self.assertRaises(storage.StorageError):
            storage.save_file(pdf_upload(), 'x/comprobante.pdf')

    @mock.patch('permisos.storage.requests.post', side_effect=requests.ConnectionError('down'))
    def test_upload_network_error(self, post):
        with self.assertRaises(storage.StorageError):
            storage.save_file(pdf_upload(), 'x/comprobante.pdf')

    @override_settings(SUPABASE_SERVICE_KEY='')
    def test_missing_configuration(self):
        with self.assertRaises(storage.StorageError):
            storage.save_file(pdf_upload(), 'x/comprobante.pdf')

    @mock.patch('permisos.storage.requests.get')
    def test_download(self, get):
        get.return_value = mock.Mock(status_code=200, content=b'datos')
        content, content_type = storage.read_file('x/comprobante.png')
        self.assertEqual(content, b'datos')
        self.assertEqual(content_type, 'image/png')

    @mock.patch('permisos.storage.requests.get')
    def test_download_missing_object(self, get):
        get.return_value = mock.Mock(status_code=404, text='not found')
        with self.assertRaises(FileNotFoundError):
            storage.read_file('x/comprobante.png')

    @mock.patch('permisos.storage.requests.delete')
    def test_delete(self, delete):
        delete.return_value = mock.Mock(status_code=200, text='{}')
        storage.delete_file('x/comprobante.pdf')
        self.assertEqual(
            delete.call_args.args[0],
            'https://proyecto.supabase.co/storage/v1/object/payment-proofs/x/comprobante.pdf',
        )
        self.assertEqual(delete.call_args.kwargs['headers']['Authorization'], 'Bearer service-key')

    @mock.patch('permisos.storage.requests.delete', side_effect=requests.ConnectionError('down'))
    def test_delete_failure_is_not_raised(self, delete):
        self.assertFalse(storage.delete_from_supabase('payment-proofs', 'x/comprobante.pdf'))
        storage.delete_file('x/comprobante.pdf')
        self.assertEqual(delete.call_count, 2)

    @mock.patch('permisos.storage.requests.delete')
    def test_delete_empty_path(self, delete):
        storage.delete_file('')
        delete.assert_not_called()
