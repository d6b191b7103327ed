"""
Django settings for the permisos_digitales project.

Every value that differs between environments is read from an environment
variable; the defaults are meant for local development and the test suite.
"""

import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-insecure-permisos-digitales-key')
DEBUG = _env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [
    h.strip() for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if h.strip()
]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.sessions',
    'permisos',
    'administration',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'permisos_digitales.urls'
WSGI_APPLICATION = 'permisos_digitales.wsgi.application'
APPEND_SLASH = False

TEMPLATES = []

# Database
if os.environ.get('DB_ENGINE', 'sqlite').strip().lower() in ('postgres', 'postgresql'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('DB_NAME', 'permisos_digitales'),
            'USER': os.environ.get('DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
            'CONN_MAX_AGE': 60,
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Auth / sessions
AUTH_USER_MODEL = 'permisos.User'
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.PBKDF2PasswordHasher',
]
SESSION_ENGINE = 'django.contrib.sessions.backends.db'
SESSION_COOKIE_NAME = 'permisos.sid'
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = 'Lax'
SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', not DEBUG)
SESSION_COOKIE_AGE = _env_int('SESSION_COOKIE_AGE', 60 * 60 * 8)

# CSRF: the SPA sends the token in the X-CSRF-Token header
CSRF_HEADER_NAME = 'HTTP_X_CSRF_TOKEN'
CSRF_COOKIE_SECURE = SESSION_COOKIE_SECURE
CSRF_FAILURE_VIEW = 'permisos.views_errors.csrf_failure'
CSRF_TRUSTED_ORIGINS = [
    o.strip() for o in os.environ.get('CSRF_TRUSTED_ORIGINS', '').split(',') if o.strip()
]

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'permisos-digitales',
    }
}

LANGUAGE_CODE = 'es-mx'
TIME_ZONE = os.environ.get('TIME_ZONE', 'America/Mexico_City')
USE_I18N = True
USE_TZ = True

# File storage
MEDIA_ROOT = os.environ.get('MEDIA_ROOT', str(BASE_DIR / 'storage'))
STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'local').strip().lower()
SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
SUPABASE_SERVICE_KEY = os.environ.get('SUPABASE_SERVICE_KEY', '')
SUPABASE_PAYMENT_BUCKET = os.environ.get('SUPABASE_PAYMENT_BUCKET', 'payment-proofs')
PAYMENT_PROOF_MAX_BYTES = _env_int('PAYMENT_PROOF_MAX_BYTES', 10 * 1024 * 1024)
DATA_UPLOAD_MAX_MEMORY_SIZE = PAYMENT_PROOF_MAX_BYTES + 1024 * 1024

# Permit business rules
PERMIT_FEE = Decimal(os.environ.get('PERMIT_FEE', '150.00'))
PERMIT_VALIDITY_DAYS = _env_int('PERMIT_VALIDITY_DAYS', 30)
PERMIT_FOLIO_PREFIX = os.environ.get('PERMIT_FOLIO_PREFIX', 'HTZ')
UNPAID_APPLICATION_TTL_DAYS = _env_int('UNPAID_APPLICATION_TTL_DAYS', 7)

# Rate limiting
LOGIN_RATE_LIMIT = _env_int('LOGIN_RATE_LIMIT', 5)
LOGIN_RATE_WINDOW_SECONDS = _env_int('LOGIN_RATE_WINDOW_SECONDS', 15 * 60)
REGISTRATION_RATE_LIMIT = _env_int('REGISTRATION_RATE_LIMIT', 5)
REGISTRATION_RATE_WINDOW_SECONDS = _env_int('REGISTRATION_RATE_WINDOW_SECONDS', 60 * 60)
# Number of reverse proxies in front of the app whose X-Forwarded-For entries are trusted
TRUSTED_PROXY_COUNT = _env_int('TRUSTED_PROXY_COUNT', 0)

# Password reset / mail
PASSWORD_RESET_TTL_MINUTES = _env_int('PASSWORD_RESET_TTL_MINUTES', 60)
FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000').rstrip('/')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', '')
SENDER_PASSWORD = os.environ.get('SENDER_PASSWORD', '')
SMTP_SERVER = os.environ.get('SMTP_SERVER', 'smtp.gmail.com')
SMTP_PORT = _env_int('SMTP_PORT', 587)

CRON_SECRET = os.environ.get('CRON_SECRET', '')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'django.request': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}
