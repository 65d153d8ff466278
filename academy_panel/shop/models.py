"""
Shop models: catalog, orders and parent/sub-dealer commissions.
"""
import json
import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from dealers.querysets import DealerScopedQuerySet


class ProductCategory(models.Model):
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.CASCADE, related_name='product_categories')
    name = models.CharField(_('name'), max_length=100)
    slug = models.SlugField(_('slug'), max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['name']
        verbose_name = _('product category')
        verbose_name_plural = _('product categories')
        unique_together = ['dealer', 'slug']

    def __str__(self):
        return self.name


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.CASCADE, related_name='products')
    category = models.ForeignKey(
        ProductCategory, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='products',
    )
    name = models.CharField(_('name'), max_length=200)
    slug = models.SlugField(_('slug'), max_length=200)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=10, decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    images = models.JSONField(default=list, blank=True, help_text=_('List of image URLs'))
    is_active = models.BooleanField(_('active'), default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = _('product')
        verbose_name_plural = _('products')
        unique_together = ['dealer', 'slug']
        indexes = [
            models.Index(fields=['dealer', 'is_active'], name='product_dealer_active_idx'),
        ]

    def __str__(self):
        return self.name

    @property
    def image_list(self):
        """Image URLs; a malformed value is treated as no images."""
        images = self.images
        if isinstance(images, str):
            try:
                images = json.loads(images)
            except ValueError:
                return []
        if not isinstance(images, list):
            return []
        return [url for url in images if isinstance(url, str) and url]


class ProductVariantQuerySet(DealerScopedQuerySet):
    dealer_field = 'product__dealer'


class ProductVariant(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    size = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=50, blank=True)
    stock = models.PositiveIntegerField(default=0)
    sku = models.CharField(max_length=100, blank=True)

    objects = ProductVariantQuerySet.as_manager()

    class Meta:
        ordering = ['size', 'color']
        verbose_name = _('product variant')
        verbose_name_plural = _('product variants')

    def __str__(self):
        label = ' / '.join(part for part in (self.size, self.color) if part)
        return f'{self.product.name} ({label})' if label else self.product.name


class ShopOrder(models.Model):

    class Status(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        CONFIRMED = 'CONFIRMED', _('Confirmed')
        PROCESSING = 'PROCESSING', _('Processing')
        SHIPPED = 'SHIPPED', _('Shipped')
        DELIVERED = 'DELIVERED', _('Delivered')
        CANCELLED = 'CANCELLED', _('Cancelled')

    class PaymentStatus(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        PAID = 'PAID', _('Paid')
        FAILED = 'FAILED', _('Failed')
        REFUNDED = 'REFUNDED', _('Refunded')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.PROTECT, related_name='orders')
    order_number = models.CharField(max_length=40, unique=True)

    # === Покупатель ===
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=30)
    shipping_address = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    # === Суммы ===
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    shipping_cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    total = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = _('shop order')
        verbose_name_plural = _('shop orders')
        indexes = [
            models.Index(fields=['dealer', 'status'], name='order_dealer_status_idx'),
        ]

    def __str__(self):
        return self.order_number


class ShopOrderItem(models.Model):
    order = models.ForeignKey(ShopOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')
    variant = models.ForeignKey(
        ProductVariant, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='order_items',
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        verbose_name = _('order item')
        verbose_name_plural = _('order items')

    def __str__(self):
        return f'{self.order.order_number}: {self.product.name} x{self.quantity}'


class DealerCommission(models.Model):
    """Commission a parent dealer earns on a sub-dealer's orders."""

    class PayoutFrequency(models.TextChoices):
        WEEKLY = 'weekly', _('Weekly')
        MONTHLY = 'monthly', _('Monthly')
        ON_DEMAND = 'on-demand', _('On demand')

    RATE_VALIDATORS = [MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]

    parent_dealer = models.ForeignKey(
        'dealers.Dealer', on_delete=models.CASCADE, related_name='child_commissions',
    )
    child_dealer = models.ForeignKey(
        'dealers.Dealer', on_delete=models.CASCADE, related_name='parent_commissions',
    )
    product_commission_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0'), validators=RATE_VALIDATORS,
    )
    order_commission_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0'), validators=RATE_VALIDATORS,
    )
    fixed_order_commission = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    minimum_payout = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('100'))
    payout_frequency = models.CharField(
        max_length=20, choices=PayoutFrequency.choices, default=PayoutFrequency.MONTHLY,
    )
    is_active = models.BooleanField(default=True)
    effective_from = models.DateTimeField(auto_now_add=True)
    effective_to = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('dealer commission')
        verbose_name_plural = _('dealer commissions')
        unique_together = ['parent_dealer', 'child_dealer']

    def __str__(self):
        return f'{self.parent_dealer} ← {self.child_dealer}'


class CommissionTransaction(models.Model):

    class Status(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        PAID = 'PAID', _('Paid')
        CANCELLED = 'CANCELLED', _('Cancelled')

    commission = models.ForeignKey(DealerCommission, on_delete=models.CASCADE, related_name='transactions')
    order = models.ForeignKey(
        ShopOrder, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='commission_transactions',
    )
    order_total = models.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = _('commission transaction')
        verbose_name_plural = _('commission transactions')

    def __str__(self):
        return f'{self.commission_amount} ({self.status})'
