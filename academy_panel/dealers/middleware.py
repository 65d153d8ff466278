"""
Dealer Middleware - определяет дилера по hostname и кладёт в request.dealer.

Также сохраняет дилера в context var для доступа из signals и Celery tasks.
Кеш процесса с TTL; сбрасывается сигналами при изменении Dealer/DealerDomain.
В пределах TTL допускается устаревшее значение.
"""

import logging
import time

from django.conf import settings

from .context import clear_current_dealer, set_current_dealer
from .resolver import resolve_dealer_for_host

logger = logging.getLogger(__name__)


class DealerMiddleware:
    """
    Ставить в MIDDLEWARE ПОСЛЕ AuthenticationMiddleware.

    Ставит request.dealer = Dealer или None (хост не обслуживается).
    """

    # host → (dealer, timestamp)
    _dealer_cache = {}

    SKIP_PATHS = ('/admin/', '/api/health/')

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        dealer = self._resolve_dealer(request)
        request.dealer = dealer
        set_current_dealer(dealer)
        try:
            response = self.get_response(request)
        finally:
            clear_current_dealer()
        return response

    def _resolve_dealer(self, request):
        if request.path.startswith(self.SKIP_PATHS):
            return None

        host = request.get_host().split(':')[0].lower()
        ttl = getattr(settings, 'DEALER_CACHE_TTL', 300)

        cached = self._dealer_cache.get(host)
        if cached is not None:
            dealer, ts = cached
            if (time.monotonic() - ts) < ttl:
                return dealer
            self._dealer_cache.pop(host, None)

        dealer = resolve_dealer_for_host(host)
        if dealer is None:
            logger.info('No dealer resolved for host %s', host)
        self._dealer_cache[host] = (dealer, time.monotonic())
        return dealer

    @classmethod
    def clear_cache(cls):
        """Сбросить кеш (вызывается из signals)."""
        cls._dealer_cache.clear()
