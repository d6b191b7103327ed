import json

from django.conf import settings
from django.http import JsonResponse


class InvalidJSONBody(ValueError):
    pass


def parse_json_body(request):
    """Decode a JSON object body; an empty body is an empty dict."""
    raw = request.body
    if not raw:
        return {}
    try:
        data = json.loads(raw.decode('utf-8') if isinstance(raw, (bytes, bytearray)) else raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidJSONBody(str(e)) from e
    if not isinstance(data, dict):
        raise InvalidJSONBody('Expected a JSON object.')
    return data


def request_data(request):
    """Form-encoded and multipart requests use POST; everything else is JSON."""
    content_type = (request.content_type or '').lower()
    if content_type in ('multipart/form-data', 'application/x-www-form-urlencoded'):
        return request.POST
    return parse_json_body(request)


def coerce_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def client_ip(request):
    """Peer address, or the X-Forwarded-For entry appended by the outermost trusted proxy.

    Entries left of the trusted hops are client-supplied and never used.
    """
    remote = request.META.get('REMOTE_ADDR') or None
    hops = getattr(settings, 'TRUSTED_PROXY_COUNT', 0)
    if hops <= 0:
        return remote
    forwarded = [part.strip() for part in request.META.get('HTTP_X_FORWARDED_FOR', '').split(',')]
    forwarded = [part for part in forwarded if part]
    if len(forwarded) < hops:
        return remote
    return forwarded[-hops]


def error_response(message, status=400, **extra):
    payload = {'success': False, 'error': message}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def invalid_json_response():
    return error_response('Cuerpo JSON inválido.', status=400, code='INVALID_JSON')


def validation_error_response(errors):
    return error_response('Datos inválidos.', status=400, code='VALIDATION_ERROR', errors=errors)
