from django.contrib import admin

from .models import (
    CommissionTransaction, DealerCommission, Product, ProductCategory,
    ProductVariant, ShopOrder, ShopOrderItem,
)


@admin.register(ProductCategory)
class ProductCategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'dealer', 'created_at')
    search_fields = ('name', 'slug')
    raw_id_fields = ('dealer',)


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'dealer', 'category', 'price', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'slug', 'dealer__name')
    raw_id_fields = ('dealer', 'category')
    inlines = [ProductVariantInline]


class ShopOrderItemInline(admin.TabularInline):
    model = ShopOrderItem
    extra = 0
    readonly_fields = ('product', 'variant', 'quantity', 'unit_price', 'total')
    can_delete = False


@admin.register(ShopOrder)
class ShopOrderAdmin(admin.ModelAdmin):
    list_display = ('order_number', 'dealer', 'customer_name', 'total', 'status', 'payment_status', 'created_at')
    list_filter = ('status', 'payment_status')
    search_fields = ('order_number', 'customer_name', 'customer_email')
    readonly_fields = ('order_number', 'subtotal', 'shipping_cost', 'total', 'created_at', 'updated_at')
    raw_id_fields = ('dealer',)
    inlines = [ShopOrderItemInline]


@admin.register(DealerCommission)
class DealerCommissionAdmin(admin.ModelAdmin):
    list_display = ('parent_dealer', 'child_dealer', 'order_commission_rate', 'fixed_order_commission', 'is_active')
    list_filter = ('is_active', 'payout_frequency')
    raw_id_fields = ('parent_dealer', 'child_dealer')


@admin.register(CommissionTransaction)
class CommissionTransactionAdmin(admin.ModelAdmin):
    list_display = ('commission', 'order', 'commission_amount', 'status', 'created_at', 'paid_at')
    list_filter = ('status',)
    raw_id_fields = ('commission', 'order')
