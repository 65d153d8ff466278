"""
Sub-dealer management.

Sub-dealer - обычный Dealer с parent_dealer. Родитель управляет только
своими прямыми потомками.
"""
import logging
import re

from django.db import transaction
from django.db.models import Count

from .models import Dealer

logger = logging.getLogger(__name__)

SLUG_RE = re.compile(r'^[a-z0-9-]+$')

EDITABLE_FIELDS = (
    'name', 'slug', 'email', 'phone', 'address', 'logo',
    'inherit_parent_products', 'can_create_own_products',
    'custom_domain', 'subdomain',
)


class SubDealerError(Exception):
    """Base exception for sub-dealer operations."""
    pass


class SubDealerSlugTakenError(SubDealerError):
    pass


class SubDealerHasDependentsError(SubDealerError):
    pass


def slug_exists(slug, exclude=None):
    qs = Dealer.objects.filter(slug=slug)
    if exclude is not None:
        qs = qs.exclude(pk=exclude.pk)
    return qs.exists()


def sub_dealers_of(parent):
    return Dealer.objects.filter(parent_dealer=parent)


def _clean(data):
    cleaned = {key: data[key] for key in EDITABLE_FIELDS if key in data}
    # пустые строки → NULL, иначе unique-поля конфликтуют
    for key in ('custom_domain', 'subdomain'):
        if key in cleaned and not cleaned[key]:
            cleaned[key] = None
    return cleaned


@transaction.atomic
def create_sub_dealer(parent, data):
    fields = _clean(data)
    slug = fields.get('slug', '')
    if not SLUG_RE.match(slug):
        raise SubDealerError('Slug may contain only lowercase letters, digits and dashes')
    if slug_exists(slug):
        raise SubDealerSlugTakenError('This slug is already in use')
    sub_dealer = Dealer.objects.create(
        parent_dealer=parent,
        hierarchy_level=parent.hierarchy_level + 1,
        is_active=True,
        is_public_page_active=True,
        **fields,
    )
    logger.info('Sub-dealer created: parent=%s child=%s', parent.slug, sub_dealer.slug)
    return sub_dealer


@transaction.atomic
def update_sub_dealer(sub_dealer, data):
    fields = _clean(data)
    slug = fields.get('slug', sub_dealer.slug)
    if slug != sub_dealer.slug:
        if not SLUG_RE.match(slug):
            raise SubDealerError('Slug may contain only lowercase letters, digits and dashes')
        if slug_exists(slug, exclude=sub_dealer):
            raise SubDealerSlugTakenError('This slug is already in use')
    for key, value in fields.items():
        setattr(sub_dealer, key, value)
    sub_dealer.save()
    return sub_dealer


@transaction.atomic
def delete_sub_dealer(sub_dealer):
    if sub_dealer.sub_dealers.exists():
        raise SubDealerHasDependentsError('Sub-dealer has its own sub-dealers')
    if sub_dealer.orders.exists():
        raise SubDealerHasDependentsError('Sub-dealer has orders')
    logger.info('Sub-dealer deleted: %s', sub_dealer.slug)
    sub_dealer.delete()


def toggle_sub_dealer_status(sub_dealer, is_active):
    sub_dealer.is_active = bool(is_active)
    sub_dealer.save(update_fields=['is_active', 'updated_at'])
    return sub_dealer


def update_product_inheritance(sub_dealer, inherit_parent_products):
    sub_dealer.inherit_parent_products = bool(inherit_parent_products)
    sub_dealer.save(update_fields=['inherit_parent_products', 'updated_at'])
    return sub_dealer


def get_hierarchy(dealer, level=0):
    """Flat, depth-first list of all descendants with their depth."""
    result = []
    children = (
        sub_dealers_of(dealer)
        .annotate(sub_dealer_count=Count('sub_dealers', distinct=True))
        .order_by('name')
    )
    for child in children:
        result.append({
            'id': str(child.id),
            'name': child.name,
            'slug': child.slug,
            'isActive': child.is_active,
            'hierarchyLevel': child.hierarchy_level,
            'depth': level,
            'subDealerCount': child.sub_dealer_count,
        })
        result.extend(get_hierarchy(child, level + 1))
    return result


def get_stats(dealer):
    children = sub_dealers_of(dealer)
    return {
        'totalSubDealers': children.count(),
        'activeSubDealers': children.filter(is_active=True).count(),
        'totalDescendants': len(get_hierarchy(dealer)),
        'subDealerOrders': sum(child.orders.count() for child in children),
    }
