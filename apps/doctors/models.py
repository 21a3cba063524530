#apps/doctors/models.py

from django.core.exceptions import ValidationError
from django.db import models
from core.constants import DayOfWeek
from core.mixins.audit_fields import AuditFieldsMixin


class Doctor(AuditFieldsMixin, models.Model):
    """Doctor profile - link to User account"""

    user = models.OneToOneField(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='doctor_profile'
    )

    specialization = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'doctors'
        ordering = ['id']
        indexes = [
            models.Index(fields=['is_active']),
        ]

    def __str__(self):
        return f"Dr. {self.full_name}"

    @property
    def full_name(self):
        return self.user.full_name


class DoctorSchedule(AuditFieldsMixin, models.Model):
    """Recurring weekly availability, one row per doctor and weekday"""

    doctor = models.ForeignKey(
        Doctor,
        on_delete=models.CASCADE,
        related_name='schedules'
    )

    day_of_week = models.IntegerField(choices=DayOfWeek.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_active = models.BooleanField(default=True)

    # Slot granularity, minutes
    slot_duration = models.PositiveIntegerField(default=30)

    class Meta:
        db_table = 'doctor_schedules'
        unique_together = ['doctor', 'day_of_week']
        ordering = ['doctor', 'day_of_week']
        indexes = [
            models.Index(fields=['doctor', 'day_of_week', 'is_active']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(slot_duration__gt=0),
                name='doctor_schedule_slot_duration_positive',
            ),
        ]

    def __str__(self):
        return f"{self.doctor} - {self.get_day_of_week_display()} {self.start_time:%H:%M}-{self.end_time:%H:%M}"

    def clean(self):
        if self.is_active and self.start_time >= self.end_time:
            raise ValidationError({'end_time': 'End time must be after start time.'})


class DoctorScheduleException(AuditFieldsMixin, models.Model):
    """Date-specific override: a blocked day or a different working window"""

    doctor = models.ForeignKey(
        Doctor,
        on_delete=models.CASCADE,
        related_name='schedule_exceptions'
    )

    date = models.DateField()
    is_blocked = models.BooleanField(default=True)

    # Only used when the day is not blocked
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)

    reason = models.CharField(max_length=200, blank=True)

    class Meta:
        db_table = 'doctor_schedule_exceptions'
        unique_together = ['doctor', 'date']
        ordering = ['date']
        indexes = [
            models.Index(fields=['doctor', 'date']),
        ]

    def __str__(self):
        if self.is_blocked:
            return f"{self.doctor} - {self.date} (blocked)"
        return f"{self.doctor} - {self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M}"

    def clean(self):
        if self.is_blocked:
            return
        if self.start_time is None or self.end_time is None:
            raise ValidationError('Start and end time are required unless the day is blocked.')
        if self.start_time >= self.end_time:
            raise ValidationError({'end_time': 'End time must be after start time.'})
