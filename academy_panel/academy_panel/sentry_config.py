"""
Sentry integration.

Включается только если задан SENTRY_DSN:
    SENTRY_DSN=https://xxx@xxx.ingest.sentry.io/xxx

Вызывается в конце settings.py.
"""
import logging
import os

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

FILTERED_KEYS = ('password', 'token', 'secret', 'api_key', 'customerPhone', 'customerEmail')


def init_sentry():
    """Initialize the Sentry SDK. Returns True when it was enabled."""
    sentry_dsn = os.environ.get('SENTRY_DSN', '')
    if not sentry_dsn:
        logger.info("Sentry: DSN not configured, skipping initialization")
        return False

    environment = os.environ.get('DJANGO_ENV', 'production')
    if os.environ.get('DEBUG', 'False').lower() in ('true', '1', 'yes'):
        environment = 'development'

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            DjangoIntegration(transaction_style='url'),
            CeleryIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        environment=environment,
        release=os.environ.get('APP_VERSION', 'unknown'),
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1')),
        send_default_pii=False,
        ignore_errors=['django.security.DisallowedHost'],
        before_send=before_send_callback,
    )
    logger.info(f"Sentry: initialized for {environment} environment")
    return True


def before_send_callback(event, hint):
    """Drop 404s and mask customer/credential data in request payloads."""
    if 'exc_info' in hint:
        exc_type = hint['exc_info'][0]
        if exc_type.__name__ == 'Http404':
            return None

    request_data = event.get('request') or {}
    data = request_data.get('data')
    if isinstance(data, dict):
        for key in FILTERED_KEYS:
            if key in data:
                data[key] = '[FILTERED]'

    headers = request_data.get('headers')
    if isinstance(headers, dict) and 'Authorization' in headers:
        headers['Authorization'] = '[FILTERED]'

    return event
