"""
Shop URL configuration (/api/shop/).
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    CategoryListView, CategoryViewSet, CommissionViewSet, CreateOrderView,
    OrderViewSet, ProductViewSet,
)

router = DefaultRouter()
router.register(r'admin/categories', CategoryViewSet, basename='shop-category')
router.register(r'admin/products', ProductViewSet, basename='shop-product')
router.register(r'admin/orders', OrderViewSet, basename='shop-order')
router.register(r'commissions', CommissionViewSet, basename='shop-commission')

urlpatterns = [
    path('orders/', CreateOrderView.as_view(), name='shop-create-order'),
    path('categories/', CategoryListView.as_view(), name='shop-categories'),
    path('', include(router.urls)),
]
