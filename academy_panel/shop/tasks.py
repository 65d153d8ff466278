import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from .models import ShopOrder

logger = logging.getLogger(__name__)


@shared_task
def send_order_notification(order_id):
    """Email the dealer about a new storefront order."""
    order = ShopOrder.objects.select_related('dealer').filter(pk=order_id).first()
    if order is None:
        logger.warning(f'send_order_notification: order {order_id} not found')
        return False

    recipient = order.dealer.contact_email or order.dealer.email
    if not recipient:
        logger.info(f'send_order_notification: dealer {order.dealer.slug} has no email')
        return False

    lines = [
        f'{item.product.name} x{item.quantity} = {item.total}'
        for item in order.items.select_related('product')
    ]
    body = '\n'.join([
        f'Order {order.order_number}',
        f'Customer: {order.customer_name} <{order.customer_email}>, {order.customer_phone}',
        '',
        *lines,
        '',
        f'Total: {order.total}',
    ])
    send_mail(
        subject=f"New order {order.order_number}",
        message=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
    )
    logger.info(f"Order notification sent: {order.order_number} -> {recipient}")
    return True
