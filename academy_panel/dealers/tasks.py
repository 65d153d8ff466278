import logging

from celery import shared_task

from .domains import verify_domain
from .models import DealerDomain

logger = logging.getLogger(__name__)


@shared_task
def verify_pending_domains():
    """Periodic re-check of unverified active domain aliases."""
    pending = list(DealerDomain.objects.filter(verified=False, is_active=True).select_related('dealer'))
    verified = 0
    for alias in pending:
        if verify_domain(alias):
            verified += 1
    logger.info(f"verify_pending_domains: checked={len(pending)}, verified={verified}")
    return verified
