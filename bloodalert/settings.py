"""
Django settings for the bloodalert project.

Every tunable is read from the environment so that a ``.env`` file (loaded by
``manage.py``, ``wsgi.py`` and ``celery.py``) is enough to configure a deployment.
"""

import os
from pathlib import Path

from celery.schedules import crontab


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name, default):
    raw = os.getenv(name)
    if raw in (None, ''):
        return default
    return int(raw)


def _env_float(name, default):
    raw = os.getenv(name)
    if raw in (None, ''):
        return default
    return float(raw)


BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-bloodalert-dev-key')

DEBUG = _env_bool('DJANGO_DEBUG', True)

ALLOWED_HOSTS = [host.strip() for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if host.strip()]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'donor.apps.DonorConfig',
    'blood.apps.BloodConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'bloodalert.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'bloodalert.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': os.getenv('DJANGO_DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.getenv('DJANGO_DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'USER': os.getenv('DJANGO_DB_USER', ''),
        'PASSWORD': os.getenv('DJANGO_DB_PASSWORD', ''),
        'HOST': os.getenv('DJANGO_DB_HOST', ''),
        'PORT': os.getenv('DJANGO_DB_PORT', ''),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Donor locations live in a key-value store of their own, never in the relational DB.
REDIS_URL = os.getenv('REDIS_URL', '')

if REDIS_URL:
    _LOCATION_CACHE = {
        'BACKEND': 'django.core.cache.backends.redis.RedisCache',
        'LOCATION': REDIS_URL,
        'KEY_PREFIX': 'donor-location',
        'TIMEOUT': None,
    }
else:
    _LOCATION_CACHE = {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'donor-locations',
        'TIMEOUT': None,
    }

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'bloodalert-default',
    },
    'locations': _LOCATION_CACHE,
}

DONOR_LOCATION_CACHE_ALIAS = 'locations'


AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'

TIME_ZONE = os.getenv('DJANGO_TIME_ZONE', 'Asia/Kolkata')

USE_I18N = True

USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.getenv('DJANGO_LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'blood': {'level': os.getenv('BLOOD_LOG_LEVEL', 'INFO'), 'propagate': True},
        'donor': {'level': os.getenv('BLOOD_LOG_LEVEL', 'INFO'), 'propagate': True},
    },
}


# Blood request lifecycle
BLOOD_REQUEST_TTL_HOURS = _env_int('BLOOD_REQUEST_TTL_HOURS', 48)
# "single": the first acceptance completes the request.
# "multi": donors may accept until the required units are covered.
BLOOD_REQUEST_ACCEPTANCE_POLICY = os.getenv('BLOOD_REQUEST_ACCEPTANCE_POLICY', 'single')
ACTIVE_REQUESTS_LIMIT = _env_int('ACTIVE_REQUESTS_LIMIT', 20)
DONATION_RECOVERY_DAYS = _env_int('DONATION_RECOVERY_DAYS', 90)

# Proximity matching
DONOR_MATCH_RADIUS_KM = _env_float('DONOR_MATCH_RADIUS_KM', 10.0)
DONOR_MATCH_MAX_RECIPIENTS = _env_int('DONOR_MATCH_MAX_RECIPIENTS', 100)

# Geocoding
GEOCODER_BACKEND = os.getenv('GEOCODER_BACKEND', 'nominatim')
GEOCODER_ALLOW_REMOTE = _env_bool('GEOCODER_ALLOW_REMOTE', True)
GEOCODER_USER_AGENT = os.getenv('GEOCODER_USER_AGENT', 'bloodalert-geocoder')
GEOCODER_TIMEOUT = _env_float('GEOCODER_TIMEOUT', 10)
GEOCODER_MIN_DELAY_SECONDS = _env_float('GEOCODER_MIN_DELAY_SECONDS', 1.0)
GEOCODER_COUNTRY_BIAS = os.getenv('GEOCODER_COUNTRY_BIAS') or None
GOOGLE_MAPS_API_KEY = os.getenv('GOOGLE_MAPS_API_KEY', '')
# Exact address -> (lat, lon) lookups used before any provider call.
GEOCODER_STATIC_FIXTURES = {}

# Push notifications (Firebase Cloud Messaging)
PUSH_NOTIFICATIONS_ENABLED = _env_bool('PUSH_NOTIFICATIONS_ENABLED', True)
FIREBASE_CREDENTIALS = os.getenv('FIREBASE_CREDENTIALS', str(BASE_DIR / 'serviceAccountKey.json'))
PUSH_TIMEOUT_SECONDS = _env_float('PUSH_TIMEOUT_SECONDS', 10)
PUSH_MAX_WORKERS = _env_int('PUSH_MAX_WORKERS', 8)

# AWS SNS (requester SMS confirmations)
AWS_SNS_ENABLED = _env_bool('AWS_SNS_ENABLED', False)
AWS_SNS_REGION = os.getenv('AWS_SNS_REGION', 'ap-south-1')
AWS_SNS_SMS_TYPE = os.getenv('AWS_SNS_SMS_TYPE', 'Transactional')
AWS_SNS_SENDER_ID = os.getenv('AWS_SNS_SENDER_ID', '')
AWS_SNS_DEFAULT_COUNTRY_CODE = os.getenv('AWS_SNS_DEFAULT_COUNTRY_CODE', '+91')


# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', REDIS_URL or 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', '') or None
CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER', False)
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    'reap-expired-blood-requests': {
        'task': 'blood.tasks.reap_expired_requests',
        'schedule': crontab(minute=0),
    },
}
