"""
Order placement and order lifecycle.

Всё размещение заказа - одна транзакция: валидация, цены, запись заказа,
списание остатков. Остатки списываются условным UPDATE
(stock = stock - q WHERE stock >= q) по строкам, заблокированным
select_for_update(); если хоть одна строка не обновилась - откат всего заказа.
"""
import logging
import secrets
import string
import time
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F

from dealers.models import Dealer
from .commissions import calculate_order_commission, cancel_order_commissions
from .models import Product, ProductVariant, ShopOrder, ShopOrderItem

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
ORDER_NUMBER_RANDOM_LENGTH = 4


class OrderServiceError(Exception):
    """Base exception for order service errors."""
    pass


class OrderValidationError(OrderServiceError):
    """Order references missing entities; nothing was written."""
    pass


class InsufficientStockError(OrderValidationError):
    """A variant has less stock than requested; nothing was written."""
    pass


def to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


def generate_order_number() -> str:
    """ORD-<base36 ms timestamp>-<4 random base36 chars>, uppercase."""
    timestamp = to_base36(int(time.time() * 1000))
    random_part = ''.join(
        secrets.choice(BASE36_ALPHABET) for _ in range(ORDER_NUMBER_RANDOM_LENGTH)
    )
    return f'ORD-{timestamp}-{random_part}'


def queue_order_notification(order_id: str) -> None:
    """
    Поставить уведомление в очередь. Вызывается после COMMIT: ошибка
    брокера только логируется, заказ остаётся в силе.
    """
    from .tasks import send_order_notification
    try:
        send_order_notification.delay(order_id)
    except Exception:
        logger.exception(f'Could not queue notification for order {order_id}')


class OrderService:
    """
    Сервис заказов магазина.
    """

    @staticmethod
    def place_order(data: Dict[str, Any]) -> ShopOrder:
        """
        Разместить заказ.

        Args:
            data: провалидированный payload (dealer_slug, customer_*, items)

        Returns:
            ShopOrder: созданный заказ в статусе PENDING

        Raises:
            OrderValidationError: дилер/товар/вариант не найден
            InsufficientStockError: не хватает остатка
            OrderServiceError: не удалось подобрать уникальный номер
        """
        max_attempts = getattr(settings, 'ORDER_NUMBER_MAX_ATTEMPTS', 5)
        for attempt in range(1, max_attempts + 1):
            order_number = generate_order_number()
            if ShopOrder.objects.filter(order_number=order_number).exists():
                continue
            try:
                return OrderService._place_order(data, order_number)
            except IntegrityError:
                # Кто-то занял номер между проверкой и INSERT
                if not ShopOrder.objects.filter(order_number=order_number).exists():
                    raise
                logger.warning(f'Order number collision on {order_number} (attempt {attempt})')
        raise OrderServiceError('Could not allocate a unique order number')

    @staticmethod
    @transaction.atomic
    def _place_order(data: Dict[str, Any], order_number: str) -> ShopOrder:
        dealer = Dealer.objects.filter(slug=data['dealer_slug'], is_active=True).first()
        if dealer is None:
            raise OrderValidationError('Dealer not found')

        items = data['items']
        product_ids = {item['product_id'] for item in items}
        products = {
            product.pk: product
            for product in Product.objects.for_dealer(dealer).filter(pk__in=product_ids, is_active=True)
        }
        if product_ids - products.keys():
            raise OrderValidationError('Some products were not found')

        # Суммарное количество по варианту: две строки одного варианта
        # проверяются вместе
        requested = defaultdict(int)
        for item in items:
            if item.get('variant_id'):
                requested[item['variant_id']] += item['quantity']

        variants = {
            variant.pk: variant
            for variant in (
                ProductVariant.objects
                .select_for_update()
                .filter(pk__in=requested.keys(), product__dealer=dealer)
                .order_by('pk')
            )
        }
        for item in items:
            variant_id = item.get('variant_id')
            if not variant_id:
                continue
            variant = variants.get(variant_id)
            if variant is None or variant.product_id != item['product_id']:
                raise OrderValidationError(f'Variant not found: {variant_id}')

        for variant_id, quantity in requested.items():
            variant = variants[variant_id]
            if variant.stock < quantity:
                product = products[variant.product_id]
                raise InsufficientStockError(f'Insufficient stock: {product.name} ({variant.size})')

        # Цена всегда серверная; unit_price клиента не используется
        subtotal = Decimal('0')
        lines = []
        for item in items:
            product = products[item['product_id']]
            line_total = product.price * item['quantity']
            subtotal += line_total
            lines.append((product, item.get('variant_id'), item['quantity'], product.price, line_total))

        order = ShopOrder.objects.create(
            dealer=dealer,
            order_number=order_number,
            customer_name=data['customer_name'],
            customer_email=data['customer_email'],
            customer_phone=data['customer_phone'],
            shipping_address=data.get('shipping_address') or '',
            notes=data.get('notes') or '',
            subtotal=subtotal,
            shipping_cost=Decimal('0'),
            total=subtotal,
            status=ShopOrder.Status.PENDING,
            payment_status=ShopOrder.PaymentStatus.PENDING,
        )
        ShopOrderItem.objects.bulk_create([
            ShopOrderItem(
                order=order,
                product=product,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=unit_price,
                total=line_total,
            )
            for product, variant_id, quantity, unit_price, line_total in lines
        ])

        for variant_id, quantity in requested.items():
            updated = (
                ProductVariant.objects
                .filter(pk=variant_id, stock__gte=quantity)
                .update(stock=F('stock') - quantity)
            )
            if updated != 1:
                raise InsufficientStockError(f'Insufficient stock for variant {variant_id}')

        calculate_order_commission(order)

        if getattr(settings, 'ORDER_NOTIFICATIONS_ENABLED', True):
            order_id = str(order.pk)
            transaction.on_commit(lambda: queue_order_notification(order_id))

        logger.info(
            f'Order placed: {order.order_number}, dealer={dealer.slug}, '
            f'items={len(lines)}, total={order.total}'
        )
        return order

    @staticmethod
    def _restore_stock(order: ShopOrder) -> None:
        for item in order.items.exclude(variant__isnull=True):
            ProductVariant.objects.filter(pk=item.variant_id).update(stock=F('stock') + item.quantity)

    @staticmethod
    @transaction.atomic
    def update_order_status(order: ShopOrder, new_status: str) -> ShopOrder:
        """
        Сменить статус заказа. Переход в CANCELLED возвращает остатки (один раз).
        """
        order = ShopOrder.objects.select_for_update().get(pk=order.pk)
        if new_status not in ShopOrder.Status.values:
            raise OrderServiceError(f'Unknown status: {new_status}')
        if order.status == new_status:
            return order
        if order.status == ShopOrder.Status.CANCELLED:
            raise OrderServiceError('Cancelled orders cannot be reopened')

        if new_status == ShopOrder.Status.CANCELLED:
            OrderService._restore_stock(order)
            cancel_order_commissions(order)

        old_status = order.status
        order.status = new_status
        order.save(update_fields=['status', 'updated_at'])
        logger.info(f'Order {order.order_number}: {old_status} → {new_status}')
        return order

    @staticmethod
    @transaction.atomic
    def delete_order(order: ShopOrder) -> None:
        """Удалить заказ; остатки возвращаются, если заказ ещё не отменён."""
        order = ShopOrder.objects.select_for_update().get(pk=order.pk)
        if order.status != ShopOrder.Status.CANCELLED:
            OrderService._restore_stock(order)
            cancel_order_commissions(order)
        logger.info(f'Order deleted: {order.order_number}')
        order.delete()
