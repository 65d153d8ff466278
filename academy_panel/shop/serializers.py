"""
Shop API serializers.
"""
import uuid

from django.db import transaction
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from .models import (
    CommissionTransaction, DealerCommission, Product, ProductCategory,
    ProductVariant, ShopOrder, ShopOrderItem,
)


def flatten_errors(errors, prefix=''):
    """DRF error tree → [{'path': 'items.0.quantity', 'message': ...}]."""
    issues = []
    if isinstance(errors, dict):
        for key, value in errors.items():
            path = f'{prefix}.{key}' if prefix else str(key)
            issues.extend(flatten_errors(value, path))
    elif isinstance(errors, list):
        for index, value in enumerate(errors):
            if isinstance(value, (dict, list)):
                issues.extend(flatten_errors(value, f'{prefix}.{index}' if prefix else str(index)))
            else:
                issues.append({'path': prefix, 'message': str(value)})
    else:
        issues.append({'path': prefix, 'message': str(errors)})
    return issues


# ═══════════════════════════════════════════════════════════════
# STOREFRONT ORDER
# ═══════════════════════════════════════════════════════════════

class OrderItemInputSerializer(serializers.Serializer):
    productId = serializers.UUIDField(source='product_id')
    variantId = serializers.CharField(source='variant_id', required=False, allow_blank=True, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)
    # Принимается, но цена берётся из товара
    unitPrice = serializers.FloatField(source='unit_price', min_value=0)

    def validate_variantId(self, value):
        if not value:
            return None
        try:
            return uuid.UUID(str(value))
        except ValueError:
            raise serializers.ValidationError(_('Invalid variant id'))


class CreateOrderSerializer(serializers.Serializer):
    dealerSlug = serializers.CharField(source='dealer_slug')
    customerName = serializers.CharField(source='customer_name', max_length=200)
    customerEmail = serializers.EmailField(source='customer_email')
    customerPhone = serializers.CharField(source='customer_phone', max_length=30)
    shippingAddress = serializers.CharField(source='shipping_address', required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = OrderItemInputSerializer(many=True, allow_empty=False)


# ═══════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════

class CategoryListSerializer(serializers.ModelSerializer):
    productCount = serializers.IntegerField(source='product_count', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = ProductCategory
        fields = ['id', 'name', 'slug', 'productCount', 'createdAt']


class ProductCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductCategory
        fields = ['id', 'name', 'slug', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_slug(self, value):
        dealer = self.context['dealer']
        qs = ProductCategory.objects.for_dealer(dealer).filter(slug=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(_('This slug is already in use'))
        return value


class ProductVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariant
        fields = ['id', 'size', 'color', 'stock', 'sku']
        read_only_fields = ['id']


class ProductSerializer(serializers.ModelSerializer):
    """Товар дилера; варианты заменяются целиком при записи."""

    variants = ProductVariantSerializer(many=True, required=False)
    category = serializers.PrimaryKeyRelatedField(
        queryset=ProductCategory.objects.all(), allow_null=True, required=False,
    )
    images = serializers.ListField(child=serializers.URLField(), required=False)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'slug', 'description', 'price', 'images', 'is_active',
            'category', 'variants', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['images'] = instance.image_list
        return data

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError(_('Price cannot be negative'))
        return value

    def validate_slug(self, value):
        dealer = self.context['dealer']
        qs = Product.objects.for_dealer(dealer).filter(slug=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(_('This slug is already in use'))
        return value

    def validate_category(self, value):
        if value is not None and value.dealer_id != self.context['dealer'].pk:
            raise serializers.ValidationError(_('Category not found'))
        return value

    @transaction.atomic
    def create(self, validated_data):
        variants = validated_data.pop('variants', [])
        product = Product.objects.create(**validated_data)
        ProductVariant.objects.bulk_create([ProductVariant(product=product, **v) for v in variants])
        return product

    @transaction.atomic
    def update(self, instance, validated_data):
        variants = validated_data.pop('variants', None)
        instance = super().update(instance, validated_data)
        if variants is not None:
            instance.variants.all().delete()
            ProductVariant.objects.bulk_create([ProductVariant(product=instance, **v) for v in variants])
        return instance


class PublicProductSerializer(serializers.ModelSerializer):
    images = serializers.SerializerMethodField()
    category = serializers.SerializerMethodField()
    variants = ProductVariantSerializer(many=True, read_only=True)
    inherited = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'description', 'price', 'images', 'category', 'variants', 'inherited']

    def get_images(self, obj):
        return obj.image_list

    def get_category(self, obj):
        if obj.category is None:
            return None
        return {'id': obj.category_id, 'name': obj.category.name, 'slug': obj.category.slug}

    def get_inherited(self, obj):
        dealer = self.context.get('dealer')
        return dealer is not None and obj.dealer_id != dealer.pk


# ═══════════════════════════════════════════════════════════════
# ORDERS (dealer admin)
# ═══════════════════════════════════════════════════════════════

class ShopOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    variant_label = serializers.SerializerMethodField()

    class Meta:
        model = ShopOrderItem
        fields = ['id', 'product', 'product_name', 'variant', 'variant_label', 'quantity', 'unit_price', 'total']

    def get_variant_label(self, obj):
        if obj.variant is None:
            return ''
        return ' / '.join(part for part in (obj.variant.size, obj.variant.color) if part)


class ShopOrderSerializer(serializers.ModelSerializer):
    items = ShopOrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = ShopOrder
        fields = [
            'id', 'order_number', 'customer_name', 'customer_email', 'customer_phone',
            'shipping_address', 'notes', 'subtotal', 'shipping_cost', 'total',
            'status', 'payment_status', 'items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ShopOrder.Status.choices)


# ═══════════════════════════════════════════════════════════════
# COMMISSIONS
# ═══════════════════════════════════════════════════════════════

class DealerCommissionSerializer(serializers.ModelSerializer):
    child_dealer_name = serializers.CharField(source='child_dealer.name', read_only=True)

    class Meta:
        model = DealerCommission
        fields = [
            'id', 'child_dealer', 'child_dealer_name',
            'product_commission_rate', 'order_commission_rate',
            'fixed_order_commission', 'minimum_payout', 'payout_frequency',
            'is_active', 'effective_from', 'effective_to', 'updated_at',
        ]
        read_only_fields = fields


class CommissionSettingsSerializer(serializers.Serializer):
    child_dealer = serializers.UUIDField()
    product_commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, default=0)
    order_commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, default=0)
    fixed_order_commission = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    minimum_payout = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=100)
    payout_frequency = serializers.ChoiceField(
        choices=DealerCommission.PayoutFrequency.choices,
        default=DealerCommission.PayoutFrequency.MONTHLY,
    )


class CommissionTransactionSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    child_dealer = serializers.UUIDField(source='commission.child_dealer_id', read_only=True)

    class Meta:
        model = CommissionTransaction
        fields = [
            'id', 'child_dealer', 'order', 'order_number', 'order_total',
            'commission_amount', 'commission_rate', 'status', 'paid_at', 'created_at',
        ]
        read_only_fields = fields
