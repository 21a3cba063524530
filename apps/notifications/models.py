# apps/notifications/models.py
from django.db import models

from core.constants import ReminderChannel, ReminderStatus


class AppointmentReminder(models.Model):
    """A reminder due at `scheduled_for`, picked up by the hourly sweep"""

    appointment = models.ForeignKey(
        'appointments.Appointment',
        on_delete=models.CASCADE,
        related_name='reminders'
    )
    channel = models.CharField(max_length=20, choices=ReminderChannel.choices, default=ReminderChannel.EMAIL)
    scheduled_for = models.DateTimeField()
    status = models.CharField(max_length=20, choices=ReminderStatus.choices, default=ReminderStatus.PENDING)
    sent_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'appointment_reminders'
        ordering = ['scheduled_for']
        indexes = [
            models.Index(fields=['status', 'scheduled_for']),
            models.Index(fields=['appointment', 'status']),
        ]

    def __str__(self):
        return f"{self.get_channel_display()} reminder for appointment {self.appointment_id} at {self.scheduled_for} ({self.status})"
