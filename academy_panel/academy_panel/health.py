"""
Health check для мониторинга: база данных и дилер по умолчанию.
"""
import time

from django.conf import settings
from django.db import connection
from django.http import JsonResponse

from dealers.resolver import resolve_default_dealer


def health_check(request):
    """
    200 если база доступна, иначе 500.

    Отсутствие дилера по умолчанию не критично: хосты без совпадения
    просто получают 404.
    """
    status = {
        'status': 'healthy',
        'timestamp': time.time(),
        'version': getattr(settings, 'VERSION', '1.0.0'),
        'checks': {},
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
        status['checks']['database'] = 'ok'
    except Exception as e:
        status['status'] = 'unhealthy'
        status['checks']['database'] = f'error: {str(e)[:100]}'
        return JsonResponse(status, status=500)

    if not settings.DEFAULT_DEALER_SLUG:
        status['checks']['default_dealer'] = 'not configured'
    elif resolve_default_dealer() is None:
        status['checks']['default_dealer'] = 'missing (non-critical)'
    else:
        status['checks']['default_dealer'] = 'ok'

    return JsonResponse(status)
