# apps/appointments/models.py

import secrets
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.constants import AppointmentStatus, AppointmentType
from core.mixins.audit_fields import AuditFieldsMixin


def generate_qr_token():
    """Opaque check-in token, unrelated to the appointment id"""
    return secrets.token_urlsafe(24)


class Appointment(AuditFieldsMixin, models.Model):
    """Scheduled appointment of a patient with a doctor"""

    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    doctor = models.ForeignKey(
        'doctors.Doctor',
        on_delete=models.PROTECT,
        related_name='appointments'
    )

    # Timing
    scheduled_at = models.DateTimeField()
    duration_minutes = models.PositiveIntegerField(default=30, help_text="Duration in minutes")
    previous_scheduled_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.SCHEDULED
    )
    type = models.CharField(
        max_length=20,
        choices=AppointmentType.choices,
        default=AppointmentType.CONSULTATION
    )
    notes = models.TextField(blank=True)

    # Check-in
    qr_token = models.CharField(max_length=64, unique=True, default=generate_qr_token, editable=False)
    checked_in_at = models.DateTimeField(null=True, blank=True)

    # Cancellation
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cancelled_appointments'
    )
    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'appointments'
        ordering = ['scheduled_at']
        indexes = [
            models.Index(fields=['doctor', 'scheduled_at', 'status']),
            models.Index(fields=['patient', 'scheduled_at']),
            models.Index(fields=['status', 'scheduled_at']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(duration_minutes__gt=0),
                name='appointment_duration_positive',
            ),
        ]

    def __str__(self):
        return f"Appt #{self.pk}: {self.patient} with {self.doctor} at {timezone.localtime(self.scheduled_at):%Y-%m-%d %H:%M}"

    @property
    def end_at(self):
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)


class WaitingListEntry(models.Model):
    """Patient waiting for a slot to free up, optionally with a given doctor"""

    patient = models.ForeignKey(
        'patients.Patient',
        on_delete=models.CASCADE,
        related_name='waiting_list_entries'
    )
    doctor = models.ForeignKey(
        'doctors.Doctor',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='waiting_list_entries'
    )
    preferred_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)

    notified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'waiting_list'
        ordering = ['created_at', 'id']
        verbose_name_plural = 'waiting list entries'
        indexes = [
            models.Index(fields=['doctor', 'notified_at', 'created_at']),
        ]

    def __str__(self):
        return f"{self.patient} waiting for {self.doctor or 'any doctor'}"
