# apps/appointments/urls.py

from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import AppointmentViewSet, AppointmentCheckInView, WaitingListViewSet

# Appointments live at the prefix root, so the router has no API root view
router = SimpleRouter()
router.register(r'waiting-list', WaitingListViewSet, basename='waiting-list')
router.register(r'', AppointmentViewSet, basename='appointment')

urlpatterns = [
    path('checkin/<str:qr_token>/', AppointmentCheckInView.as_view(), name='appointment-checkin'),
    path('', include(router.urls)),
]
