"""
Dealer URL configuration.
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    CustomizationViewSet, DealerByDomainView, DealerDomainViewSet,
    DealerViewSet, SubDealerViewSet,
)

router = DefaultRouter()
router.register(r'customization', CustomizationViewSet, basename='dealer-customization')
router.register(r'domains', DealerDomainViewSet, basename='dealer-domain')
router.register(r'sub-dealers', SubDealerViewSet, basename='sub-dealer')
router.register(r'dealers', DealerViewSet, basename='dealer')

urlpatterns = [
    path('by-domain/', DealerByDomainView.as_view(), name='dealer-by-domain'),
    path('', include(router.urls)),
]
