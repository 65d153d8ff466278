"""
Request metrics and response security headers.
"""
import logging
import time

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger('request_metrics')

SLOW_REQUEST_SECONDS = 2.0

SECURITY_HEADERS = {
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Permissions-Policy': 'camera=(), microphone=(), geolocation=()',
}


class RequestMetricsMiddleware(MiddlewareMixin):
    """
    Логирует method/path/status/duration/dealer каждого запроса
    и проставляет security headers.
    """

    def process_request(self, request):
        request._start_time = time.monotonic()
        return None

    def process_response(self, request, response):
        for header, value in SECURITY_HEADERS.items():
            response.setdefault(header, value)

        if not hasattr(request, '_start_time'):
            return response

        duration = time.monotonic() - request._start_time
        user_id = 'anonymous'
        if hasattr(request, 'user') and request.user.is_authenticated:
            user_id = request.user.id
        dealer = getattr(request, 'dealer', None)

        logger.info(
            f"method={request.method} "
            f"path={request.path} "
            f"status={response.status_code} "
            f"duration={duration:.3f}s "
            f"user={user_id} "
            f"dealer={dealer.slug if dealer else '-'} "
            f"ip={self.get_client_ip(request)}"
        )
        response['X-Request-Duration'] = f"{duration:.3f}"

        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"SLOW_REQUEST: {request.method} {request.path} "
                f"took {duration:.3f}s (user={user_id})"
            )
        return response

    @staticmethod
    def get_client_ip(request):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR', 'unknown')
