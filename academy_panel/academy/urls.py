from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AttendanceSessionViewSet, GroupViewSet, PreRegistrationViewSet,
    StudentPaymentViewSet, StudentViewSet, TrainerViewSet,
)

router = DefaultRouter()
router.register(r'students', StudentViewSet, basename='student')
router.register(r'trainers', TrainerViewSet, basename='trainer')
router.register(r'groups', GroupViewSet, basename='group')
router.register(r'attendance', AttendanceSessionViewSet, basename='attendance-session')
router.register(r'payments', StudentPaymentViewSet, basename='student-payment')
router.register(r'pre-registrations', PreRegistrationViewSet, basename='pre-registration')

urlpatterns = [
    path('', include(router.urls)),
]
