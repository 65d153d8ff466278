"""
Shop API views.
"""
import logging

from django.db.models import Count, Q
from django.utils.translation import gettext_lazy as _
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from dealers.mixins import DealerSessionMixin
from dealers.models import Dealer
from dealers.permissions import Permission
from dealers.resolver import resolve_dealer_by_slug
from . import commissions
from .models import CommissionTransaction, Product, ProductCategory, ShopOrder
from .serializers import (
    CategoryListSerializer, CommissionSettingsSerializer,
    CommissionTransactionSerializer, CreateOrderSerializer,
    DealerCommissionSerializer, OrderStatusSerializer, ProductCategorySerializer,
    ProductSerializer, PublicProductSerializer, ShopOrderSerializer,
    flatten_errors,
)
from .services import OrderService, OrderServiceError, OrderValidationError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# STOREFRONT
# ═══════════════════════════════════════════════════════════════

class CreateOrderView(APIView):
    """
    POST /api/shop/orders/
    Заказ с витрины; аутентификация не требуется.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'message': 'Invalid data', 'errors': flatten_errors(serializer.errors)},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            order = OrderService.place_order(serializer.validated_data)
        except OrderValidationError as e:
            return Response({'message': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except Exception:
            logger.exception('Order placement failed')
            return Response(
                {'message': 'Failed to create order'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({
            'success': True,
            'orderNumber': order.order_number,
            'orderId': str(order.pk),
        })


def storefront_products(dealer):
    """Активные товары дилера плюс товары родителя, если включено наследование."""
    scope = Q(dealer=dealer)
    if dealer.inherit_parent_products and dealer.parent_dealer_id:
        scope |= Q(dealer_id=dealer.parent_dealer_id)
    return (
        Product.objects.filter(scope, is_active=True)
        .select_related('category')
        .prefetch_related('variants')
    )


class PublicProductListView(APIView):
    """GET /api/public/<slug>/products/?category=<slug>"""
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, slug):
        dealer = resolve_dealer_by_slug(slug)
        if dealer is None:
            return Response({'error': 'Dealer not found'}, status=status.HTTP_404_NOT_FOUND)
        products = storefront_products(dealer)
        category = request.query_params.get('category')
        if category:
            products = products.filter(category__slug=category)
        data = PublicProductSerializer(products, many=True, context={'dealer': dealer}).data
        return Response({'products': data, 'count': len(data)})


class PublicProductDetailView(APIView):
    """GET /api/public/<slug>/products/<product_slug>/"""
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, slug, product_slug):
        dealer = resolve_dealer_by_slug(slug)
        if dealer is None:
            return Response({'error': 'Dealer not found'}, status=status.HTTP_404_NOT_FOUND)
        # Собственный товар дилера важнее унаследованного с тем же slug
        candidates = storefront_products(dealer).filter(slug=product_slug)
        product = candidates.filter(dealer=dealer).first() or candidates.first()
        if product is None:
            return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(PublicProductSerializer(product, context={'dealer': dealer}).data)


# ═══════════════════════════════════════════════════════════════
# DEALER ADMIN: CATALOG
# ═══════════════════════════════════════════════════════════════

class CategoryListView(DealerSessionMixin, generics.ListAPIView):
    """
    GET /api/shop/categories/
    Категории текущего дилера с количеством товаров.
    """
    queryset = ProductCategory.objects.all()
    serializer_class = CategoryListSerializer
    pagination_class = None
    required_permission = Permission.SHOP_VIEW

    def get_queryset(self):
        return super().get_queryset().annotate(product_count=Count('products')).order_by('name')


class CategoryViewSet(DealerSessionMixin, viewsets.ModelViewSet):
    """/api/shop/admin/categories/"""
    queryset = ProductCategory.objects.all()
    serializer_class = ProductCategorySerializer
    required_permissions = {'list': Permission.SHOP_VIEW, 'retrieve': Permission.SHOP_VIEW}
    required_permission = Permission.SHOP_MANAGE

    def destroy(self, request, *args, **kwargs):
        category = self.get_object()
        if category.products.exists():
            return Response(
                {'detail': _('Category has products and cannot be deleted')},
                status=status.HTTP_400_BAD_REQUEST,
            )
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProductViewSet(DealerSessionMixin, viewsets.ModelViewSet):
    """/api/shop/admin/products/"""
    queryset = Product.objects.select_related('category').prefetch_related('variants')
    serializer_class = ProductSerializer
    required_permissions = {'list': Permission.SHOP_VIEW, 'retrieve': Permission.SHOP_VIEW}
    required_permission = Permission.SHOP_MANAGE

    def get_queryset(self):
        qs = super().get_queryset()
        category = self.request.query_params.get('category')
        if category:
            qs = qs.filter(category_id=category)
        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(description__icontains=search))
        return qs

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        if product.order_items.exists():
            return Response(
                {'detail': _('Product has orders; deactivate it instead')},
                status=status.HTTP_400_BAD_REQUEST,
            )
        logger.info(f'Product deleted: {product.name} ({product.dealer_id})')
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        product = self.get_object()
        product.is_active = not product.is_active
        product.save(update_fields=['is_active', 'updated_at'])
        return Response(self.get_serializer(product).data)


# ═══════════════════════════════════════════════════════════════
# DEALER ADMIN: ORDERS
# ═══════════════════════════════════════════════════════════════

class OrderViewSet(DealerSessionMixin,
                   mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   mixins.DestroyModelMixin,
                   viewsets.GenericViewSet):
    """
    /api/shop/admin/orders/
    Заказы текущего дилера: список, детали, смена статуса, удаление.
    """
    queryset = ShopOrder.objects.prefetch_related('items__product', 'items__variant')
    serializer_class = ShopOrderSerializer
    required_permissions = {'list': Permission.SHOP_VIEW, 'retrieve': Permission.SHOP_VIEW}
    required_permission = Permission.SHOP_MANAGE

    def get_queryset(self):
        qs = super().get_queryset()
        order_status = self.request.query_params.get('status')
        if order_status:
            qs = qs.filter(status=order_status)
        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(
                Q(order_number__icontains=search)
                | Q(customer_name__icontains=search)
                | Q(customer_email__icontains=search)
            )
        return qs

    def perform_destroy(self, instance):
        OrderService.delete_order(instance)

    @action(detail=True, methods=['post', 'patch'], url_path='status')
    def set_status(self, request, pk=None):
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = OrderService.update_order_status(self.get_object(), serializer.validated_data['status'])
        except OrderServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(order).data)


# ═══════════════════════════════════════════════════════════════
# DEALER ADMIN: COMMISSIONS
# ═══════════════════════════════════════════════════════════════

class CommissionViewSet(DealerSessionMixin, viewsets.ViewSet):
    """
    /api/shop/commissions/
    Комиссии текущего дилера с его sub-dealer'ов; pk = id sub-dealer'а.
    """
    required_permissions = {
        'list': Permission.SUB_DEALERS_VIEW,
        'transactions': Permission.SUB_DEALERS_VIEW,
        'report': Permission.SUB_DEALERS_VIEW,
    }
    required_permission = Permission.SUB_DEALERS_MANAGE

    def _child(self, pk):
        return Dealer.objects.filter(pk=pk, parent_dealer=self.get_dealer()).first()

    def _error(self, message, code=status.HTTP_400_BAD_REQUEST):
        return Response({'detail': message}, status=code)

    def list(self, request):
        qs = self.get_dealer().child_commissions.select_related('child_dealer').order_by('child_dealer__name')
        return Response(DealerCommissionSerializer(qs, many=True).data)

    def create(self, request):
        serializer = CommissionSettingsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        child = self._child(serializer.validated_data['child_dealer'])
        if child is None:
            return self._error(_('Sub-dealer not found'), status.HTTP_404_NOT_FOUND)
        try:
            commission = commissions.upsert_commission_settings(self.get_dealer(), child, serializer.validated_data)
        except commissions.CommissionError as e:
            return self._error(str(e))
        return Response(DealerCommissionSerializer(commission).data)

    def destroy(self, request, pk=None):
        child = self._child(pk)
        if child is None:
            return self._error(_('Sub-dealer not found'), status.HTTP_404_NOT_FOUND)
        try:
            commissions.delete_commission(self.get_dealer(), child)
        except commissions.CommissionError as e:
            return self._error(str(e))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        child = self._child(pk)
        if child is None:
            return self._error(_('Sub-dealer not found'), status.HTTP_404_NOT_FOUND)
        is_active = request.data.get('is_active') in (True, 1, '1', 'true', 'True')
        try:
            commission = commissions.toggle_commission(self.get_dealer(), child, is_active)
        except commissions.CommissionError as e:
            return self._error(str(e))
        return Response(DealerCommissionSerializer(commission).data)

    @action(detail=True, methods=['post'])
    def payout(self, request, pk=None):
        child = self._child(pk)
        if child is None:
            return self._error(_('Sub-dealer not found'), status.HTTP_404_NOT_FOUND)
        try:
            amount = commissions.process_payout(self.get_dealer(), child)
        except commissions.CommissionError as e:
            return self._error(str(e))
        return Response({'success': True, 'amount': amount})

    @action(detail=False, methods=['get'])
    def transactions(self, request):
        qs = (
            CommissionTransaction.objects
            .filter(commission__parent_dealer=self.get_dealer())
            .select_related('order', 'commission')
        )
        txn_status = request.query_params.get('status')
        if txn_status:
            qs = qs.filter(status=txn_status)
        child = request.query_params.get('child_dealer')
        if child:
            qs = qs.filter(commission__child_dealer_id=child)
        return Response(CommissionTransactionSerializer(qs, many=True).data)

    @action(detail=False, methods=['get'])
    def report(self, request):
        return Response(commissions.commission_report(self.get_dealer()))
