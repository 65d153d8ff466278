"""
Parent/sub-dealer commission settlement.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from .models import CommissionTransaction, DealerCommission

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

SETTINGS_FIELDS = (
    'product_commission_rate', 'order_commission_rate',
    'fixed_order_commission', 'minimum_payout', 'payout_frequency',
)


class CommissionError(Exception):
    """Base exception for commission operations."""
    pass


def get_commission(parent, child):
    try:
        return DealerCommission.objects.get(parent_dealer=parent, child_dealer=child)
    except DealerCommission.DoesNotExist:
        raise CommissionError('Commission settings not found')


def upsert_commission_settings(parent, child, settings_data):
    if child.parent_dealer_id != parent.pk:
        raise CommissionError('Sub-dealer not found')
    defaults = {key: settings_data[key] for key in SETTINGS_FIELDS if key in settings_data}
    commission, created = DealerCommission.objects.update_or_create(
        parent_dealer=parent, child_dealer=child, defaults=defaults,
    )
    logger.info(
        f"Commission settings {'created' if created else 'updated'}: "
        f"parent={parent.slug}, child={child.slug}"
    )
    return commission


def toggle_commission(parent, child, is_active):
    commission = get_commission(parent, child)
    commission.is_active = bool(is_active)
    commission.save(update_fields=['is_active', 'updated_at'])
    return commission


@transaction.atomic
def delete_commission(parent, child):
    commission = get_commission(parent, child)
    if commission.transactions.filter(status=CommissionTransaction.Status.PENDING).exists():
        raise CommissionError('Commission has pending transactions')
    commission.delete()


def calculate_order_commission(order):
    """
    Начислить комиссию родителю за заказ sub-dealer'а.
    Returns the created transaction or None.
    """
    dealer = order.dealer
    if not dealer.parent_dealer_id:
        return None
    commission = DealerCommission.objects.filter(
        parent_dealer_id=dealer.parent_dealer_id, child_dealer=dealer, is_active=True,
    ).first()
    if commission is None:
        return None

    amount = Decimal('0')
    if commission.order_commission_rate > 0:
        amount += order.total * commission.order_commission_rate / Decimal('100')
    if commission.fixed_order_commission > 0:
        amount += commission.fixed_order_commission
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        return None

    txn = CommissionTransaction.objects.create(
        commission=commission,
        order=order,
        order_total=order.total,
        commission_amount=amount,
        commission_rate=commission.order_commission_rate,
        status=CommissionTransaction.Status.PENDING,
    )
    logger.info(f'Commission accrued: order={order.order_number}, amount={amount}')
    return txn


def cancel_order_commissions(order):
    return order.commission_transactions.filter(
        status=CommissionTransaction.Status.PENDING,
    ).update(status=CommissionTransaction.Status.CANCELLED)


@transaction.atomic
def process_payout(parent, child):
    """
    Выплатить все PENDING-начисления. Returns the paid amount.
    """
    commission = DealerCommission.objects.select_for_update().filter(
        parent_dealer=parent, child_dealer=child,
    ).first()
    if commission is None:
        raise CommissionError('Commission settings not found')

    pending = commission.transactions.filter(status=CommissionTransaction.Status.PENDING)
    total = pending.aggregate(total=Sum('commission_amount'))['total']
    if total is None:
        raise CommissionError('No pending transactions')
    if total < commission.minimum_payout:
        raise CommissionError('Pending amount is below the minimum payout')

    pending.update(status=CommissionTransaction.Status.PAID, paid_at=timezone.now())
    logger.info(f'Commission payout: parent={parent.slug}, child={child.slug}, amount={total}')
    return total


def commission_report(parent):
    pending, paid = CommissionTransaction.Status.PENDING, CommissionTransaction.Status.PAID
    totals = CommissionTransaction.objects.filter(commission__parent_dealer=parent).aggregate(
        total=Sum('commission_amount'),
        pending=Sum('commission_amount', filter=Q(status=pending)),
        paid=Sum('commission_amount', filter=Q(status=paid)),
        count=Count('id'),
    )
    zero = Decimal('0')
    return {
        'totalCommission': totals['total'] or zero,
        'pendingCommission': totals['pending'] or zero,
        'paidCommission': totals['paid'] or zero,
        'transactionCount': totals['count'],
    }
