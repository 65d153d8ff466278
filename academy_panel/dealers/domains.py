"""
Domain alias management.

Алиас становится маршрутизируемым только после верификации:
  - dns:  TXT _verify.<domain> = <prefix>=<token>
  - file: https://<domain>/.well-known/<prefix>.txt содержит token
"""
import logging
import re
import secrets
import string

import dns.exception
import dns.resolver
import requests
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .models import Dealer, DealerDomain

logger = logging.getLogger(__name__)

DOMAIN_RE = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9-_.]+[a-zA-Z0-9]$')
SUBDOMAIN_RE = re.compile(r'^[a-z0-9][a-z0-9-]*[a-z0-9]$')
TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_LENGTH = 32


class DomainServiceError(Exception):
    """Base exception for domain management errors."""
    pass


class DomainUnavailableError(DomainServiceError):
    pass


class DomainNotVerifiedError(DomainServiceError):
    pass


def normalize_domain(domain):
    return (domain or '').strip().lower()


def is_valid_domain(domain):
    return len(domain) >= 3 and bool(DOMAIN_RE.match(domain))


def generate_verification_token():
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def verification_prefix():
    return settings.DOMAIN_VERIFICATION_PREFIX


def dns_verification_record(domain, token):
    return {
        'type': 'TXT',
        'name': f'_verify.{domain}',
        'value': f'{verification_prefix()}={token}',
    }


def file_verification_path(token):
    return {
        'path': f'/.well-known/{verification_prefix()}.txt',
        'content': token,
    }


def verification_info(alias):
    info = {'token': alias.verification_token, 'method': alias.verification_method}
    if alias.verification_method == DealerDomain.VerificationMethod.DNS:
        info['dnsRecord'] = dns_verification_record(alias.domain, alias.verification_token)
    else:
        info['filePath'] = file_verification_path(alias.verification_token)
    return info


def check_domain_availability(domain, exclude_dealer=None):
    """Returns (available, reason)."""
    dealers = Dealer.objects.filter(custom_domain=domain) | Dealer.objects.filter(subdomain=domain)
    if exclude_dealer is not None:
        dealers = dealers.exclude(pk=exclude_dealer.pk)
    if dealers.exists():
        return False, 'Domain is already in use by another dealer'
    if DealerDomain.objects.filter(domain=domain).exists():
        return False, 'Domain is already registered'
    return True, None


def add_domain(dealer, domain, domain_type=DealerDomain.DomainType.CUSTOM,
               verification_method=DealerDomain.VerificationMethod.DNS):
    domain = normalize_domain(domain)
    if not is_valid_domain(domain):
        raise DomainServiceError('Invalid domain format')
    available, reason = check_domain_availability(domain, exclude_dealer=dealer)
    if not available:
        raise DomainUnavailableError(reason)
    alias = DealerDomain.objects.create(
        dealer=dealer,
        domain=domain,
        type=domain_type,
        verification_method=verification_method,
        verification_token=generate_verification_token(),
    )
    logger.info('Domain alias added: dealer=%s domain=%s', dealer.slug, domain)
    return alias


def _check_dns_record(alias):
    expected = dns_verification_record(alias.domain, alias.verification_token)
    try:
        answers = dns.resolver.resolve(
            expected['name'], 'TXT', lifetime=settings.DOMAIN_VERIFICATION_TIMEOUT,
        )
    except dns.exception.DNSException as e:
        logger.info('DNS verification failed for %s: %s', alias.domain, e)
        return False
    for answer in answers:
        values = [part.decode('utf-8', 'replace') for part in answer.strings]
        if expected['value'] in values:
            return True
    return False


def _check_verification_file(alias):
    path = file_verification_path(alias.verification_token)['path']
    try:
        response = requests.get(
            f'https://{alias.domain}{path}',
            timeout=settings.DOMAIN_VERIFICATION_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.info('File verification failed for %s: %s', alias.domain, e)
        return False
    return response.ok and response.text.strip() == alias.verification_token


def verify_domain(alias):
    """
    Проверить владение доменом. Возвращает True если алиас верифицирован.
    Неудачная проверка - не ошибка, просто False.
    """
    if alias.verified:
        return True
    if alias.verification_method == DealerDomain.VerificationMethod.DNS:
        verified = _check_dns_record(alias)
    else:
        verified = _check_verification_file(alias)
    if not verified:
        return False
    alias.verified = True
    alias.verified_at = timezone.now()
    alias.save(update_fields=['verified', 'verified_at', 'updated_at'])
    logger.info('Domain verified: %s', alias.domain)
    return True


def remove_domain(alias):
    dealer = alias.dealer
    with transaction.atomic():
        if alias.is_primary and dealer.custom_domain == alias.domain:
            dealer.custom_domain = None
            dealer.save(update_fields=['custom_domain', 'updated_at'])
        alias.delete()
    logger.info('Domain alias removed: dealer=%s domain=%s', dealer.slug, alias.domain)


@transaction.atomic
def set_primary_domain(alias):
    if not alias.verified:
        raise DomainNotVerifiedError('Only verified domains can be primary')
    DealerDomain.objects.filter(dealer=alias.dealer, is_primary=True).exclude(pk=alias.pk).update(is_primary=False)
    alias.is_primary = True
    alias.save(update_fields=['is_primary', 'updated_at'])
    dealer = alias.dealer
    dealer.custom_domain = alias.domain
    dealer.save(update_fields=['custom_domain', 'updated_at'])
    return alias


def toggle_domain_status(alias, is_active):
    alias.is_active = bool(is_active)
    alias.save(update_fields=['is_active', 'updated_at'])
    return alias


def update_subdomain(dealer, subdomain):
    """Set or clear (empty value) the dealer's platform subdomain."""
    subdomain = normalize_domain(subdomain)
    if subdomain:
        if not SUBDOMAIN_RE.match(subdomain):
            raise DomainServiceError('Invalid subdomain')
        if subdomain in settings.RESERVED_SUBDOMAINS:
            raise DomainUnavailableError('Subdomain is reserved')
        if Dealer.objects.filter(subdomain=subdomain).exclude(pk=dealer.pk).exists():
            raise DomainUnavailableError('Subdomain is already taken')
    dealer.subdomain = subdomain or None
    dealer.save(update_fields=['subdomain', 'updated_at'])
    return dealer
