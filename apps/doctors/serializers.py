# apps/doctors/serializers.py

from rest_framework import serializers

from core.constants import DayOfWeek
from .models import Doctor, DoctorSchedule, DoctorScheduleException


class ClockTimeField(serializers.TimeField):
    """Civil "HH:MM" time in the clinic's zone"""

    def __init__(self, **kwargs):
        kwargs.setdefault('format', '%H:%M')
        kwargs.setdefault('input_formats', ['%H:%M'])
        super().__init__(**kwargs)


class DoctorMinimalSerializer(serializers.ModelSerializer):
    """Minimal doctor serializer for nested summaries"""

    full_name = serializers.CharField(read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Doctor
        fields = ['id', 'full_name', 'email', 'specialization', 'is_active']


class DoctorScheduleSerializer(serializers.ModelSerializer):
    start_time = ClockTimeField()
    end_time = ClockTimeField()
    day_name = serializers.CharField(source='get_day_of_week_display', read_only=True)

    class Meta:
        model = DoctorSchedule
        fields = [
            'id', 'doctor', 'day_of_week', 'day_name', 'start_time', 'end_time',
            'slot_duration', 'is_active', 'updated_at',
        ]
        read_only_fields = fields


class ScheduleDaySerializer(serializers.Serializer):
    """Payload for upserting one weekday of a doctor's template"""

    doctor = serializers.IntegerField(required=False)
    day_of_week = serializers.IntegerField(min_value=DayOfWeek.SUNDAY, max_value=DayOfWeek.SATURDAY)
    start_time = ClockTimeField()
    end_time = ClockTimeField()
    slot_duration = serializers.IntegerField(min_value=1, max_value=480, default=30)
    is_active = serializers.BooleanField(default=True)

    def validate(self, data):
        if data['is_active'] and data['start_time'] >= data['end_time']:
            raise serializers.ValidationError({'end_time': 'End time must be after start time.'})
        return data


class DoctorScheduleExceptionSerializer(serializers.ModelSerializer):
    start_time = ClockTimeField(required=False, allow_null=True)
    end_time = ClockTimeField(required=False, allow_null=True)
    doctor = serializers.IntegerField(source='doctor_id', required=False)

    class Meta:
        model = DoctorScheduleException
        fields = [
            'id', 'doctor', 'date', 'is_blocked', 'start_time', 'end_time',
            'reason', 'created_at',
        ]
        read_only_fields = ['id', 'created_at']
        # Uniqueness per (doctor, date) is reported as a conflict by the service
        validators = []

    def validate(self, data):
        is_blocked = data.get('is_blocked', True)
        if is_blocked:
            return data

        start_time = data.get('start_time')
        end_time = data.get('end_time')
        if start_time is None or end_time is None:
            raise serializers.ValidationError('Start and end time are required unless the day is blocked.')
        if start_time >= end_time:
            raise serializers.ValidationError({'end_time': 'End time must be after start time.'})
        return data
