"""
Hostname → Dealer.

Порядок:
  1. собственный custom_domain / subdomain дилера
     (subdomain также сравнивается с меткой host'а вида <label>.MAIN_DOMAIN);
  2. верифицированный активный DealerDomain;
  3. DEFAULT_DEALER_SLUG - только если 1 и 2 ничего не нашли.

Все шаги учитывают только активных дилеров с включённой публичной страницей.
"""
import logging

from django.conf import settings
from django.db.models import Q

from .models import Dealer, DealerDomain

logger = logging.getLogger(__name__)


def normalize_host(hostname):
    """Lowercase, strip and drop the port."""
    if not hostname:
        return ''
    host = hostname.strip().lower()
    if host.startswith('[') and ']' in host:
        return host[1:host.index(']')]
    return host.split(':', 1)[0].rstrip('.')


def platform_subdomain(host):
    """
    Label of ``<label>.MAIN_DOMAIN`` or None.

    www/app и прочие зарезервированные метки не считаются поддоменом дилера.
    """
    main_domain = settings.MAIN_DOMAIN.lower()
    suffix = f'.{main_domain}'
    if not host.endswith(suffix):
        return None
    label = host[:-len(suffix)]
    if not label or '.' in label or label in settings.RESERVED_SUBDOMAINS:
        return None
    return label


def _match_own_fields(host):
    lookup = Q(custom_domain=host) | Q(subdomain=host)
    label = platform_subdomain(host)
    if label:
        lookup |= Q(subdomain=label)
    return Dealer.objects.public().filter(lookup).first()


def _match_alias(host):
    alias = (
        DealerDomain.objects
        .filter(
            domain=host, verified=True, is_active=True,
            dealer__is_active=True, dealer__is_public_page_active=True,
        )
        .select_related('dealer')
        .first()
    )
    return alias.dealer if alias else None


def resolve_default_dealer():
    slug = getattr(settings, 'DEFAULT_DEALER_SLUG', '')
    if not slug:
        return None
    return resolve_dealer_by_slug(slug)


def resolve_dealer_by_slug(slug):
    if not slug:
        return None
    return Dealer.objects.public().filter(slug=slug).first()


def resolve_dealer_for_host(hostname):
    """Dealer serving ``hostname`` or None (callers answer 404)."""
    host = normalize_host(hostname)
    if host:
        dealer = _match_own_fields(host) or _match_alias(host)
        if dealer is not None:
            return dealer
        logger.debug('No dealer for host %s, trying default slug', host)
    return resolve_default_dealer()
