"""
URL configuration for academy_panel project.
"""
from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from dealers.views import PublicSiteView, ThemePresetListView, ThemePresetViewSet
from shop.views import PublicProductDetailView, PublicProductListView

from .health import health_check

theme_router = DefaultRouter()
theme_router.register(r'presets', ThemePresetViewSet, basename='theme-preset')

public_patterns = [
    path('site/', PublicSiteView.as_view(), name='public-site-by-host'),
    path('<slug:slug>/site/', PublicSiteView.as_view(), name='public-site'),
    path('<slug:slug>/products/', PublicProductListView.as_view(), name='public-products'),
    path('<slug:slug>/products/<slug:product_slug>/', PublicProductDetailView.as_view(), name='public-product-detail'),
]

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/health/', health_check, name='health'),

    # JWT
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    path('api/dealer/', include('dealers.urls')),
    path('api/themes/', ThemePresetListView.as_view(), name='theme-presets-public'),
    path('api/themes/', include(theme_router.urls)),
    path('api/shop/', include('shop.urls')),
    path('api/public/', include(public_patterns)),
    path('api/academy/', include('academy.urls')),
]
