"""
Django settings for academy_panel project.

Всё конфигурируется через переменные окружения. Значения по умолчанию
подходят для локальной разработки (SQLite, DEBUG выключен).
"""
import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default='False'):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes')


def _env_list(name, default=''):
    return [item.strip() for item in os.environ.get(name, default).split(',') if item.strip()]


# === Безопасность ===
SECRET_KEY = os.environ.get('SECRET_KEY', 'django-insecure-academy-panel-dev-key')
DEBUG = _env_bool('DEBUG')
# Домены дилеров (custom_domain, алиасы) добавляются в рантайме;
# неизвестный host отсекает resolve_dealer_for_host (404)
ALLOWED_HOSTS = _env_list('ALLOWED_HOSTS', '*')
CSRF_TRUSTED_ORIGINS = _env_list('CSRF_TRUSTED_ORIGINS')

VERSION = os.environ.get('APP_VERSION', '1.0.0')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    'dealers',
    'shop',
    'academy',
]

MIDDLEWARE = [
    'academy_panel.middleware.RequestMetricsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'dealers.middleware.DealerMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'academy_panel.urls'

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

WSGI_APPLICATION = 'academy_panel.wsgi.application'

# === База данных ===
DB_ENGINE = os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3')
if DB_ENGINE.endswith('sqlite3'):
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.environ.get('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.environ.get('DB_NAME', 'academy_panel'),
            'USER': os.environ.get('DB_USER', ''),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
            'CONN_MAX_AGE': int(os.environ.get('DB_CONN_MAX_AGE', '60')),
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = os.environ.get('LANGUAGE_CODE', 'tr')
TIME_ZONE = os.environ.get('TIME_ZONE', 'Europe/Istanbul')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# === Email ===
EMAIL_BACKEND = os.environ.get('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'noreply@futbolokullari.com')

# === REST Framework ===
# JWT первым: неаутентифицированные запросы получают 401, а не 403.
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_PAGINATION_CLASS': None,
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=int(os.environ.get('JWT_ACCESS_MINUTES', '60'))),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=int(os.environ.get('JWT_REFRESH_DAYS', '7'))),
    'AUTH_HEADER_TYPES': ('Bearer',),
}

# === Dealers (multi-tenant) ===
MAIN_DOMAIN = os.environ.get('MAIN_DOMAIN', 'futbolokullari.com')
RESERVED_SUBDOMAINS = _env_list('RESERVED_SUBDOMAINS', 'www,app,localhost')
DEFAULT_DEALER_SLUG = os.environ.get('DEFAULT_DEALER_SLUG', 'demo-spor-kulubu')
DEALER_CACHE_TTL = int(os.environ.get('DEALER_CACHE_TTL', '300'))
DOMAIN_VERIFICATION_PREFIX = os.environ.get('DOMAIN_VERIFICATION_PREFIX', 'futbol-okullari-verify')
DOMAIN_VERIFICATION_TIMEOUT = int(os.environ.get('DOMAIN_VERIFICATION_TIMEOUT', '10'))

# === Shop ===
ORDER_NUMBER_MAX_ATTEMPTS = int(os.environ.get('ORDER_NUMBER_MAX_ATTEMPTS', '5'))
ORDER_NOTIFICATIONS_ENABLED = _env_bool('ORDER_NOTIFICATIONS_ENABLED', 'True')

# === Celery ===
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER')
CELERY_TASK_SERIALIZER = 'json'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TIMEZONE = TIME_ZONE

# === Logging ===
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} dealer={dealer} {message}',
            'style': '{',
        },
    },
    'filters': {
        'dealer_context': {'()': 'academy_panel.safe_logging.DealerContextFilter'},
    },
    'handlers': {
        'console': {
            'class': 'academy_panel.safe_logging.ThreadSafeStreamHandler',
            'formatter': 'verbose',
            'filters': ['dealer_context'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
        'request_metrics': {
            'handlers': ['console'],
            'level': os.environ.get('REQUEST_METRICS_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'dealers': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'shop': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'academy': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
    },
}

# === Sentry ===
from .sentry_config import init_sentry  # noqa: E402

init_sentry()
