"""
Управление дилерами со стороны платформы (super admin).

Создание дилера вместе с его первым администратором, правка, мягкое
удаление; пользователи дилера: список, создание, отключение, сброс пароля.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from .models import Dealer, DealerMembership
from .sub_dealers import SLUG_RE, slug_exists

logger = logging.getLogger(__name__)

User = get_user_model()

DEALER_FIELDS = (
    'name', 'slug', 'email', 'phone', 'address',
    'custom_domain', 'subdomain', 'is_public_page_active',
)
USER_ROLES = (DealerMembership.Role.DEALER_ADMIN, DealerMembership.Role.TRAINER)


class DealerServiceError(Exception):
    """Base exception for dealer management."""
    pass


class DealerSlugTakenError(DealerServiceError):
    pass


class DealerUserExistsError(DealerServiceError):
    pass


def _dealer_fields(data):
    fields = {key: data[key] for key in DEALER_FIELDS if key in data}
    for key in ('custom_domain', 'subdomain'):
        if key in fields and not fields[key]:
            fields[key] = None
    return fields


def _check_slug(slug, exclude=None):
    if not SLUG_RE.match(slug or ''):
        raise DealerServiceError('Slug may contain only lowercase letters, digits and dashes')
    if slug_exists(slug, exclude=exclude):
        raise DealerSlugTakenError('This slug is already in use')


# ═══════════════════════════════════════════════════════════════
# DEALERS
# ═══════════════════════════════════════════════════════════════

@transaction.atomic
def create_dealer(data, admin=None):
    """
    Создать корневого дилера.

    Args:
        data: поля дилера (DEALER_FIELDS)
        admin: {'name', 'email', 'password'} первого DEALER_ADMIN или None

    Returns:
        Dealer
    """
    fields = _dealer_fields(data)
    _check_slug(fields.get('slug'))
    dealer = Dealer.objects.create(parent_dealer=None, hierarchy_level=0, is_active=True, **fields)
    if admin:
        create_dealer_user(dealer, role=DealerMembership.Role.DEALER_ADMIN, **admin)
    logger.info(f'Dealer created: {dealer.slug} (admin={bool(admin)})')
    return dealer


@transaction.atomic
def update_dealer(dealer, data):
    fields = _dealer_fields(data)
    if 'slug' in fields and fields['slug'] != dealer.slug:
        _check_slug(fields['slug'], exclude=dealer)
    for key, value in fields.items():
        setattr(dealer, key, value)
    dealer.save()
    logger.info(f'Dealer updated: {dealer.slug}')
    return dealer


def deactivate_dealer(dealer):
    """Мягкое удаление: дилер перестаёт резолвиться и логиниться."""
    dealer.is_active = False
    dealer.save(update_fields=['is_active', 'updated_at'])
    logger.info(f'Dealer deactivated: {dealer.slug}')
    return dealer


# ═══════════════════════════════════════════════════════════════
# DEALER USERS
# ═══════════════════════════════════════════════════════════════

def dealer_users(dealer):
    return (
        DealerMembership.objects
        .filter(dealer=dealer, is_active=True, user__is_active=True)
        .select_related('user')
        .order_by('user__first_name', 'user__email')
    )


@transaction.atomic
def create_dealer_user(dealer, name, email, password, role=DealerMembership.Role.DEALER_ADMIN):
    """Новый пользователь (логин = email) с членством в дилере."""
    if role not in USER_ROLES:
        raise DealerServiceError(f'Unsupported role: {role}')
    email = email.strip().lower()
    if User.objects.filter(username__iexact=email).exists() or User.objects.filter(email__iexact=email).exists():
        raise DealerUserExistsError('This email address is already in use')
    user = User.objects.create_user(username=email, email=email, password=password, first_name=name)
    membership = DealerMembership.objects.create(dealer=dealer, user=user, role=role)
    logger.info(f'Dealer user created: {email} -> {dealer.slug} ({role})')
    return membership


@transaction.atomic
def deactivate_dealer_user(membership):
    """Отключить членство; пользователь без других активных членств отключается целиком."""
    membership.is_active = False
    membership.save(update_fields=['is_active', 'updated_at'])
    user = membership.user
    if not user.dealer_memberships.filter(is_active=True).exists():
        user.is_active = False
        user.save(update_fields=['is_active'])
    logger.info(f'Dealer user deactivated: {user.email} ({membership.dealer.slug})')


def reset_dealer_user_password(membership, new_password):
    user = membership.user
    user.set_password(new_password)
    user.save(update_fields=['password'])
    logger.info(f'Password reset for dealer user {user.email} ({membership.dealer.slug})')
