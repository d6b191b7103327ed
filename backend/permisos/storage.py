"""File storage for payment proofs and issued permits.

Files are written either to the local filesystem under ``MEDIA_ROOT`` or to a
Supabase Storage bucket, depending on ``settings.STORAGE_BACKEND``. Callers only
ever see the relative storage path that is persisted on the application row.
"""
import logging
import mimetypes
from pathlib import Path

import requests
from django.conf import settings
from django.core.files.storage import FileSystemStorage
from django.utils import timezone

logger = logging.getLogger(__name__)

# Content type -> file extensions accepted for it
ALLOWED_PROOF_CONTENT_TYPES = {
    'image/jpeg': ('.jpg', '.jpeg'),
    'image/png': ('.png',),
    'application/pdf': ('.pdf',),
}
ALLOWED_PERMIT_CONTENT_TYPES = {
    'application/pdf': ('.pdf',),
}


class StorageError(Exception):
    pass


def safe_filename(name, default='archivo'):
    safe_name = (name or default).replace('..', '.').replace('\\', '_').replace('/', '_').strip()
    return safe_name or default


def build_payment_proof_path(application_id, filename):
    ts = timezone.now().strftime('%Y%m%d_%H%M%S')
    return f"payment_proofs/application_{application_id}/{ts}_{safe_filename(filename, 'comprobante')}"


def build_permit_path(application_id, filename):
    ts = timezone.now().strftime('%Y%m%d_%H%M%S')
    return f"permits/application_{application_id}/{ts}_{safe_filename(filename, 'permiso.pdf')}"


def upload_to_supabase(bucket_name, file_obj, dest_path):
    """Upload a file-like object to Supabase Storage and return ``dest_path``.

    Uses SUPABASE_URL and SUPABASE_SERVICE_KEY from settings.
    """
    supabase_url = getattr(settings, 'SUPABASE_URL', '').rstrip('/')
    service_key = getattr(settings, 'SUPABASE_SERVICE_KEY', '')
    if not supabase_url or not service_key:
        raise StorageError('Supabase configuration missing in settings.')

    upload_url = f"{supabase_url}/storage/v1/object/{bucket_name}/{dest_path}"
    headers = {
        'Authorization': f'Bearer {service_key}',
        'Content-Type': getattr(file_obj, 'content_type', None) or 'application/octet-stream',
        'x-upsert': 'true',
    }
    try:
        response = requests.post(upload_url, headers=headers, data=file_obj.read(), timeout=30)
    except requests.RequestException as e:
        raise StorageError(f'Supabase upload failed: {e}') from e
    if response.status_code not in (200, 201):
        raise StorageError(f'Supabase upload failed ({response.status_code}): {response.text}')
    return dest_path


def download_from_supabase(bucket_name, path):
    supabase_url = getattr(settings, 'SUPABASE_URL', '').rstrip('/')
    service_key = getattr(settings, 'SUPABASE_SERVICE_KEY', '')
    if not supabase_url or not service_key:
        raise StorageError('Supabase configuration missing in settings.')

    url = f"{supabase_url}/storage/v1/object/authenticated/{bucket_name}/{path}"
    try:
        response = requests.get(url, headers={'Authorization': f'Bearer {service_key}'}, timeout=30)
    except requests.RequestException as e:
        raise StorageError(f'Supabase download failed: {e}') from e
    if response.status_code == 404:
        raise FileNotFoundError(path)
    if response.status_code != 200:
        raise StorageError(f'Supabase download failed ({response.status_code}): {response.text}')
    return response.content


def _local_storage():
    return FileSystemStorage(location=settings.MEDIA_ROOT)


def save_file(file_obj, dest_path):
    """Persist ``file_obj`` and return the relative path it was stored under."""
    backend = getattr(settings, 'STORAGE_BACKEND', 'local')
    if backend == 'supabase':
        stored = upload_to_supabase(settings.SUPABASE_PAYMENT_BUCKET, file_obj, dest_path)
    else:
        try:
            stored = _local_storage().save(dest_path, file_obj)
        except OSError as e:
            raise StorageError(f'Could not write {dest_path}: {e}') from e
    logger.info('Stored file %s (backend=%s)', stored, backend)
    return stored


def read_file(path):
    """Return ``(content_bytes, content_type)`` for a stored path."""
    if not path:
        raise FileNotFoundError(path)
    backend = getattr(settings, 'STORAGE_BACKEND', 'local')
    if backend == 'supabase':
        content = download_from_supabase(settings.SUPABASE_PAYMENT_BUCKET, path)
    else:
        storage = _local_storage()
        if not storage.exists(path):
            raise FileNotFoundError(path)
        with storage.open(path, 'rb') as fh:
            content = fh.read()
    content_type = mimetypes.guess_type(path)[0] or 'application/octet-stream'
    return content, content_type


def delete_from_supabase(bucket_name, path):
    """Remove an object from Supabase Storage; failures are logged, never raised."""
    supabase_url = getattr(settings, 'SUPABASE_URL', '').rstrip('/')
    service_key = getattr(settings, 'SUPABASE_SERVICE_KEY', '')
    if not supabase_url or not service_key:
        logger.warning('Supabase configuration missing; %s not deleted', path)
        return False

    url = f"{supabase_url}/storage/v1/object/{bucket_name}/{path}"
    try:
        response = requests.delete(url, headers={'Authorization': f'Bearer {service_key}'}, timeout=30)
    except requests.RequestException as e:
        logger.warning('Supabase delete of %s failed: %s', path, e)
        return False
    if response.status_code not in (200, 204, 404):
        logger.warning('Supabase delete of %s failed (%s): %s', path, response.status_code, response.text)
        return False
    return True


def delete_file(path):
    """Best-effort removal of a stored file, used to roll back an upload."""
    if not path:
        return
    if getattr(settings, 'STORAGE_BACKEND', 'local') == 'supabase':
        delete_from_supabase(settings.SUPABASE_PAYMENT_BUCKET, path)
        return
    try:
        _local_storage().delete(path)
    except OSError as e:
        logger.warning('Could not delete %s: %s', path, e)


class UploadRejected(Exception):
    def __init__(self, message, status_code=400):
        self.status_code = status_code
        super().__init__(message)


def validate_upload(uploaded, allowed_types, max_bytes):
    """Raise UploadRejected unless ``uploaded`` has an allowed type and size."""
    if uploaded is None:
        raise UploadRejected('No se recibió ningún archivo.')
    content_type = (getattr(uploaded, 'content_type', '') or '').split(';')[0].strip().lower()
    if content_type not in allowed_types:
        allowed = ', '.join(sorted(exts[0].lstrip('.').upper() for exts in allowed_types.values()))
        raise UploadRejected(f'Tipo de archivo no permitido. Formatos aceptados: {allowed}.')
    suffix = Path(getattr(uploaded, 'name', '') or '').suffix.lower()
    if suffix and suffix not in allowed_types[content_type]:
        raise UploadRejected('La extensión del archivo no coincide con su tipo.')
    if uploaded.size is not None and uploaded.size > max_bytes:
        raise UploadRejected('El archivo es demasiado grande.', status_code=413)
