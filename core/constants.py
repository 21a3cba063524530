# core/constants.py

from django.db import models


class UserRoles:
    """User role constants for RBAC"""
    ADMIN = 'ADMIN'
    DOCTOR = 'DOCTOR'
    NURSE = 'NURSE'
    RECEPTIONIST = 'RECEPTIONIST'
    PATIENT = 'PATIENT'

    CHOICES = [
        (ADMIN, 'Administrator'),
        (DOCTOR, 'Doctor'),
        (NURSE, 'Nurse'),
        (RECEPTIONIST, 'Receptionist'),
        (PATIENT, 'Patient'),
    ]

    STAFF = [ADMIN, DOCTOR, NURSE, RECEPTIONIST]
    ALL = [ADMIN, DOCTOR, NURSE, RECEPTIONIST, PATIENT]


class DayOfWeek(models.IntegerChoices):
    SUNDAY = 0, 'Sunday'
    MONDAY = 1, 'Monday'
    TUESDAY = 2, 'Tuesday'
    WEDNESDAY = 3, 'Wednesday'
    THURSDAY = 4, 'Thursday'
    FRIDAY = 5, 'Friday'
    SATURDAY = 6, 'Saturday'


class AppointmentStatus(models.TextChoices):
    SCHEDULED = 'SCHEDULED', 'Scheduled'
    CONFIRMED = 'CONFIRMED', 'Confirmed'
    CHECKED_IN = 'CHECKED_IN', 'Checked In'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'
    NO_SHOW = 'NO_SHOW', 'No Show'
    RESCHEDULED = 'RESCHEDULED', 'Rescheduled'


# Appointments in these states no longer hold their time slot
CONFLICT_EXEMPT_STATUSES = [
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
    AppointmentStatus.RESCHEDULED,
]

# Appointments in these states are not shown as booked in the slot grid
SLOT_EXEMPT_STATUSES = [
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
]

APPOINTMENT_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CHECKED_IN: {
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.NO_SHOW: set(),
    AppointmentStatus.RESCHEDULED: set(),
}


class AppointmentType(models.TextChoices):
    CONSULTATION = 'CONSULTATION', 'Consultation'
    FOLLOW_UP = 'FOLLOW_UP', 'Follow-up'
    URGENT = 'URGENT', 'Urgent'
    PROCEDURE = 'PROCEDURE', 'Procedure'
    OTHER = 'OTHER', 'Other'


class ReminderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    SENT = 'sent', 'Sent'
    FAILED = 'failed', 'Failed'


class ReminderChannel(models.TextChoices):
    EMAIL = 'email', 'Email'
    SMS = 'sms', 'SMS'
