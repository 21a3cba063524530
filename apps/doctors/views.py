# apps/doctors/views.py

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import Actor, CanManageSchedules
from . import services
from .serializers import (
    DoctorScheduleSerializer, DoctorScheduleExceptionSerializer, ScheduleDaySerializer
)


class DoctorScheduleViewSet(viewsets.ViewSet):
    """
    Weekly availability template of a doctor.

    Doctors work on their own template; admins pass ?doctor=<id>.
    """
    permission_classes = [IsAuthenticated, CanManageSchedules]

    def list(self, request):
        """Seven entries indexed by weekday (0=Sunday), null where unset"""
        actor = Actor.from_user(request.user)
        doctor = services.resolve_schedule_doctor(actor, request.query_params.get('doctor'))

        week = services.get_weekly_schedule(doctor)
        data = [DoctorScheduleSerializer(day).data if day else None for day in week]
        return Response(data)

    @action(detail=False, methods=['put'], url_path='day')
    def day(self, request):
        """Create or replace the template for one weekday"""
        serializer = ScheduleDaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.validated_data

        actor = Actor.from_user(request.user)
        doctor = services.resolve_schedule_doctor(
            actor, payload.get('doctor', request.query_params.get('doctor'))
        )

        schedule = services.upsert_day(
            doctor,
            day_of_week=payload['day_of_week'],
            start_time=payload['start_time'],
            end_time=payload['end_time'],
            slot_duration=payload['slot_duration'],
            is_active=payload['is_active'],
            user=request.user,
        )
        return Response(DoctorScheduleSerializer(schedule).data)


class DoctorScheduleExceptionViewSet(viewsets.ViewSet):
    """Date-specific overrides of the weekly template"""
    permission_classes = [IsAuthenticated, CanManageSchedules]

    def list(self, request):
        actor = Actor.from_user(request.user)
        doctor = services.resolve_schedule_doctor(actor, request.query_params.get('doctor'))

        exceptions = services.list_exceptions(doctor)
        return Response(DoctorScheduleExceptionSerializer(exceptions, many=True).data)

    def create(self, request):
        serializer = DoctorScheduleExceptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.validated_data

        actor = Actor.from_user(request.user)
        doctor = services.resolve_schedule_doctor(
            actor, payload.pop('doctor_id', request.query_params.get('doctor'))
        )

        exception = services.create_exception(doctor, user=request.user, **payload)
        return Response(
            DoctorScheduleExceptionSerializer(exception).data,
            status=status.HTTP_201_CREATED
        )

    def destroy(self, request, pk=None):
        actor = Actor.from_user(request.user)
        services.delete_exception(actor, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)
