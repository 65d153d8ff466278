"""
Dealer signals - инвалидация кеша middleware при изменении Dealer и DealerDomain.

Подключается через DealersConfig.ready().
"""
import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='dealers.Dealer')
@receiver(post_delete, sender='dealers.Dealer')
def dealer_changed(sender, instance, **kwargs):
    from .middleware import DealerMiddleware
    DealerMiddleware.clear_cache()
    logger.info('Dealer cache cleared after change: %s', instance.slug)


@receiver(post_save, sender='dealers.DealerDomain')
@receiver(post_delete, sender='dealers.DealerDomain')
def dealer_domain_changed(sender, instance, **kwargs):
    from .middleware import DealerMiddleware
    DealerMiddleware.clear_cache()
    logger.info('Dealer cache cleared after domain change: %s', instance.domain)
