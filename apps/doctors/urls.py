# apps/doctors/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import DoctorScheduleViewSet, DoctorScheduleExceptionViewSet

router = DefaultRouter()
router.register(r'schedule', DoctorScheduleViewSet, basename='doctor-schedule')
router.register(r'exceptions', DoctorScheduleExceptionViewSet, basename='doctor-schedule-exception')

urlpatterns = [
    path('', include(router.urls)),
]
