"""
Django settings for the hospitality backend.

Values come from the environment with development defaults.
"""

import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('SECRET_KEY', 'hospitality-dev-key-change-me')

DEBUG = env_bool('DEBUG', True)

ALLOWED_HOSTS = [h for h in os.getenv('ALLOWED_HOSTS', '*').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'drf_spectacular',
    'hotels',
    'rooms',
    'pos',
    'inventory',
    'billing',
    'notifications',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
]

ROOT_URLCONF = 'hospitality.urls'
WSGI_APPLICATION = 'hospitality.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': {
        'ENGINE': os.getenv('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'USER': os.getenv('DB_USER', ''),
        'PASSWORD': os.getenv('DB_PASSWORD', ''),
        'HOST': os.getenv('DB_HOST', ''),
        'PORT': os.getenv('DB_PORT', ''),
    }
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# API key shared by staff clients (X-API-Key header)
API_KEY = os.getenv('API_KEY', 'demo')

# GST percentage applied to bookings and staff orders
GST_RATE = Decimal(os.getenv('GST_RATE', '5'))

# Hourly bookings: allowed drift between check-out and check-in + hours
HOURLY_TOLERANCE_MINUTES = int(os.getenv('HOURLY_TOLERANCE_MINUTES', 5))

NUMBER_GENERATION_ATTEMPTS = int(os.getenv('NUMBER_GENERATION_ATTEMPTS', 10))

# Invoices fall due this many hours after they are generated
INVOICE_DUE_HOURS = int(os.getenv('INVOICE_DUE_HOURS', 24))

PAGINATION = {
    'DEFAULT_LIMIT': int(os.getenv('DEFAULT_PAGE_SIZE', 20)),
    'MAX_LIMIT': int(os.getenv('MAX_PAGE_SIZE', 100)),
}

# Notification sink
REDIS_HOST = os.getenv('REDIS_HOST', 'localhost')
REDIS_PORT = os.getenv('REDIS_PORT', '6379')
REDIS_DB = os.getenv('REDIS_DB', '0')
EVENTS_CHANNEL = os.getenv('EVENTS_CHANNEL', 'pos')
EVENTS_ENABLED = env_bool('EVENTS_ENABLED', True)

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'hospitality.authentication.APIKeyAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'hospitality.permissions.IsStaff',
    ],
    'EXCEPTION_HANDLER': 'hospitality.exceptions.envelope_exception_handler',
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'UNAUTHENTICATED_USER': None,
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'Hospitality API',
    'DESCRIPTION': 'Room bookings, POS orders and inventory for hotels and restaurants',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        name: {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False}
        for name in ('hospitality', 'hotels', 'rooms', 'pos', 'inventory', 'billing', 'notifications')
    },
}
