# apps/appointments/views.py

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.doctors.models import Doctor
from core.exceptions import AppointmentNotFound, DoctorNotFound
from core.permissions import (
    Actor, CanBook, CanCancel, CanCheckIn, CanManageWaitingList, IsAnyRole, IsStaff
)
from .filters import AppointmentFilter
from .qr_service import QRCodeService
from .serializers import (
    AppointmentCancelSerializer, AppointmentCheckInSerializer, AppointmentCreateSerializer,
    AppointmentRescheduleSerializer, AppointmentSerializer, AppointmentUpdateSerializer,
    AvailableSlotsQuerySerializer, WaitingListEntrySerializer,
)
from .services import AppointmentService, WaitingListService

logger = logging.getLogger(__name__)


class AppointmentViewSet(viewsets.GenericViewSet):
    """
    Appointment booking and lifecycle.

    Doctors only see their own agenda and patients their own bookings;
    everything outside that scope answers 404.
    """
    serializer_class = AppointmentSerializer
    filterset_class = AppointmentFilter

    permission_map = {
        'list': [IsAnyRole],
        'retrieve': [IsAnyRole],
        'qr': [IsAnyRole],
        'create': [CanBook],
        'update': [CanBook],
        'partial_update': [CanBook],
        'reschedule': [CanBook],
        'cancel': [CanCancel],
        'available_slots': [IsStaff],
    }

    def get_permissions(self):
        classes = [IsAuthenticated] + self.permission_map.get(self.action, [IsAnyRole])
        return [permission() for permission in classes]

    def get_queryset(self):
        return AppointmentService.list(Actor.from_user(self.request.user))

    def get_visible_appointment(self, pk):
        """Appointment by id, limited to what the caller may see"""
        appointment = AppointmentService.get(pk)
        if not self.get_queryset().filter(pk=appointment.pk).exists():
            raise AppointmentNotFound()
        return appointment

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(AppointmentSerializer(page, many=True).data)
        return Response(AppointmentSerializer(queryset, many=True).data)

    def retrieve(self, request, pk=None):
        appointment = self.get_visible_appointment(pk)
        return Response(AppointmentSerializer(appointment).data)

    def create(self, request):
        serializer = AppointmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        appointment = AppointmentService.create(
            patient=data['patient'],
            doctor=data['doctor'],
            scheduled_at=data['scheduled_at'],
            duration_minutes=data.get('duration_minutes'),
            type=data['type'],
            notes=data['notes'],
            created_by=request.user,
        )
        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        """PUT and PATCH both apply a partial update"""
        self.get_visible_appointment(pk)

        serializer = AppointmentUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        appointment = AppointmentService.update(pk, user=request.user, **serializer.validated_data)
        return Response(AppointmentSerializer(appointment).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        self.get_visible_appointment(pk)

        serializer = AppointmentCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        appointment = AppointmentService.cancel(
            pk,
            cancelled_by=request.user,
            reason=serializer.validated_data['reason'],
        )
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['post'])
    def reschedule(self, request, pk=None):
        self.get_visible_appointment(pk)

        serializer = AppointmentRescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        appointment = AppointmentService.reschedule(
            pk,
            serializer.validated_data['scheduled_at'],
            serializer.validated_data.get('duration_minutes'),
            user=request.user,
        )
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['get'])
    def qr(self, request, pk=None):
        """Check-in QR code as a base64 PNG"""
        appointment = self.get_visible_appointment(pk)
        return Response(QRCodeService().generate_checkin_qr(appointment))

    @action(detail=False, methods=['get'], url_path='available-slots')
    def available_slots(self, request):
        """Slots of a doctor on a date: ?doctor=<id>&date=YYYY-MM-DD"""
        serializer = AvailableSlotsQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        doctor_id = serializer.validated_data['doctor']
        if not Doctor.objects.filter(pk=doctor_id).exists():
            raise DoctorNotFound()

        slots = AppointmentService.list_available_slots(doctor_id, serializer.validated_data['date'])
        return Response(slots)


class AppointmentCheckInView(APIView):
    """
    GET  /checkin/<qr_token>/  public lookup of the appointment behind a QR code
    POST /checkin/<qr_token>/  front-desk check-in
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated(), CanCheckIn()]

    def get(self, request, qr_token):
        appointment = AppointmentService.get_by_qr_token(qr_token)
        return Response(AppointmentCheckInSerializer(appointment).data)

    def post(self, request, qr_token):
        appointment = AppointmentService.check_in(qr_token)
        return Response(AppointmentSerializer(appointment).data)


class WaitingListViewSet(mixins.ListModelMixin,
                         mixins.CreateModelMixin,
                         mixins.DestroyModelMixin,
                         viewsets.GenericViewSet):
    """Patients waiting for a freed slot, oldest first"""
    serializer_class = WaitingListEntrySerializer
    permission_classes = [IsAuthenticated, CanManageWaitingList]
    filterset_fields = ['doctor', 'patient']

    def get_queryset(self):
        return WaitingListService.list()

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = WaitingListService.add(
            patient=data['patient'],
            doctor=data.get('doctor'),
            preferred_date=data.get('preferred_date'),
            notes=data.get('notes', ''),
        )

    def destroy(self, request, pk=None):
        WaitingListService.remove(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)
