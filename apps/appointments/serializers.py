# apps/appointments/serializers.py

from rest_framework import serializers

from apps.doctors.serializers import DoctorMinimalSerializer
from apps.patients.serializers import PatientMinimalSerializer
from core.constants import AppointmentStatus, AppointmentType
from core.utils import parse_calendar_date
from .models import Appointment, WaitingListEntry


class AppointmentSerializer(serializers.ModelSerializer):
    """Appointment with patient and doctor summaries"""

    patient = PatientMinimalSerializer(read_only=True)
    doctor = DoctorMinimalSerializer(read_only=True)
    end_at = serializers.DateTimeField(read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    type_display = serializers.CharField(source='get_type_display', read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id', 'patient', 'doctor',
            'scheduled_at', 'end_at', 'duration_minutes', 'previous_scheduled_at',
            'status', 'status_display', 'type', 'type_display', 'notes',
            'qr_token', 'checked_in_at',
            'cancelled_by', 'cancellation_reason', 'cancelled_at',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class AppointmentCheckInSerializer(AppointmentSerializer):
    """Public view by QR token; omits staff-only fields"""

    class Meta(AppointmentSerializer.Meta):
        fields = [
            'id', 'patient', 'doctor', 'scheduled_at', 'end_at', 'duration_minutes',
            'status', 'status_display', 'type', 'type_display', 'checked_in_at',
        ]
        read_only_fields = fields


class AppointmentCreateSerializer(serializers.Serializer):
    patient = serializers.IntegerField()
    doctor = serializers.IntegerField()
    scheduled_at = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1, required=False)
    type = serializers.ChoiceField(choices=AppointmentType.choices, default=AppointmentType.CONSULTATION)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class AppointmentUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatus.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=AppointmentType.choices, required=False)


class AppointmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class AppointmentRescheduleSerializer(serializers.Serializer):
    scheduled_at = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1, required=False)


class AvailableSlotsQuerySerializer(serializers.Serializer):
    doctor = serializers.IntegerField()
    date = serializers.CharField()

    def validate_date(self, value):
        try:
            return parse_calendar_date(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))


class WaitingListEntrySerializer(serializers.ModelSerializer):
    patient_details = PatientMinimalSerializer(source='patient', read_only=True)
    doctor_details = DoctorMinimalSerializer(source='doctor', read_only=True)

    class Meta:
        model = WaitingListEntry
        fields = [
            'id', 'patient', 'patient_details', 'doctor', 'doctor_details',
            'preferred_date', 'notes', 'notified_at', 'created_at',
        ]
        read_only_fields = ['id', 'notified_at', 'created_at']
