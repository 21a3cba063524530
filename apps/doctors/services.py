# apps/doctors/services.py

import logging
from datetime import datetime, timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.appointments.models import Appointment
from core.constants import SLOT_EXEMPT_STATUSES
from core.exceptions import (
    DoctorNotFound, DuplicateScheduleException, Forbidden,
    ScheduleExceptionNotFound, Validation,
)
from core.permissions import can_manage_doctor_schedule
from core.utils import day_of_week, format_hhmm, local_day_bounds, parse_calendar_date
from .models import Doctor, DoctorSchedule, DoctorScheduleException

logger = logging.getLogger(__name__)


def resolve_schedule_doctor(actor, doctor_id=None):
    """
    Doctor whose schedule the actor is acting on.

    Doctors default to their own profile; admins must name the doctor.
    """
    if doctor_id in (None, ''):
        if actor.is_doctor:
            doctor = Doctor.objects.filter(user_id=actor.id).first()
            if doctor is None:
                raise DoctorNotFound('No doctor profile is linked to this account.')
            return doctor
        if actor.is_admin:
            raise Validation('The doctor parameter is required.')
        raise Forbidden()

    try:
        doctor = Doctor.objects.get(pk=doctor_id)
    except (Doctor.DoesNotExist, ValueError, TypeError):
        raise DoctorNotFound()

    if not can_manage_doctor_schedule(actor, doctor):
        raise Forbidden('You can only manage your own schedule.')
    return doctor


# =========================
# Slot generation
# =========================

def generate_slots(doctor, day):
    """
    Bookable slots of a doctor on one calendar day.

    Returns [{"time": "HH:MM", "available": bool}, ...] in ascending order.
    A blocked exception or a missing/inactive weekly template yields [].
    """
    day = parse_calendar_date(day)

    exception = DoctorScheduleException.objects.filter(doctor=doctor, date=day).first()
    if exception is not None and exception.is_blocked:
        return []

    template = DoctorSchedule.objects.filter(doctor=doctor, day_of_week=day_of_week(day)).first()
    if template is None or not template.is_active:
        return []

    window_start, window_end = template.start_time, template.end_time
    if exception is not None and exception.start_time and exception.end_time:
        window_start, window_end = exception.start_time, exception.end_time

    # Exceptions change the window, never the granularity
    step = timedelta(minutes=template.slot_duration)

    day_start, day_end = local_day_bounds(day)
    booked = [
        (appointment.scheduled_at, appointment.end_at)
        for appointment in Appointment.objects.filter(
            doctor=doctor,
            scheduled_at__gte=day_start,
            scheduled_at__lte=day_end,
        ).exclude(
            status__in=SLOT_EXEMPT_STATUSES
        ).only('scheduled_at', 'duration_minutes')
    ]

    slots = []
    cursor = datetime.combine(day, window_start)
    stop = datetime.combine(day, window_end)
    while cursor + step <= stop:
        slot_start = timezone.make_aware(cursor)
        slot_end = slot_start + step
        taken = any(slot_start < appt_end and slot_end > appt_start for appt_start, appt_end in booked)
        slots.append({'time': format_hhmm(cursor.time()), 'available': not taken})
        cursor += step

    return slots


# =========================
# Weekly template
# =========================

def get_weekly_schedule(doctor):
    """Seven entries indexed by weekday (0=Sunday), None where nothing is set"""
    week = [None] * 7
    for schedule in DoctorSchedule.objects.filter(doctor=doctor):
        week[schedule.day_of_week] = schedule
    return week


def upsert_day(doctor, day_of_week, start_time, end_time, slot_duration, is_active=True, user=None):
    schedule, created = DoctorSchedule.objects.update_or_create(
        doctor=doctor,
        day_of_week=day_of_week,
        defaults={
            'start_time': start_time,
            'end_time': end_time,
            'slot_duration': slot_duration,
            'is_active': is_active,
            'updated_by': user,
        },
    )
    if created and user is not None:
        schedule.created_by = user
        schedule.save(update_fields=['created_by'])

    logger.info(
        f"Schedule {'created' if created else 'updated'} for doctor {doctor.pk} "
        f"day {day_of_week}: {format_hhmm(start_time)}-{format_hhmm(end_time)}/{slot_duration}m"
    )
    return schedule


# =========================
# Date exceptions
# =========================

def list_exceptions(doctor):
    return DoctorScheduleException.objects.filter(doctor=doctor).order_by('date')


def create_exception(doctor, date, is_blocked=True, start_time=None, end_time=None, reason='', user=None):
    if DoctorScheduleException.objects.filter(doctor=doctor, date=date).exists():
        raise DuplicateScheduleException()

    if is_blocked:
        start_time = end_time = None

    try:
        with transaction.atomic():
            exception = DoctorScheduleException.objects.create(
                doctor=doctor,
                date=date,
                is_blocked=is_blocked,
                start_time=start_time,
                end_time=end_time,
                reason=reason or '',
                created_by=user,
                updated_by=user,
            )
    except IntegrityError:
        # Lost a race against a concurrent insert for the same date
        raise DuplicateScheduleException()

    logger.info(f"Schedule exception {exception.pk} created for doctor {doctor.pk} on {date}")
    return exception


def delete_exception(actor, exception_id):
    try:
        exception = DoctorScheduleException.objects.select_related('doctor').get(pk=exception_id)
    except (DoctorScheduleException.DoesNotExist, ValueError, TypeError):
        raise ScheduleExceptionNotFound()

    if not can_manage_doctor_schedule(actor, exception.doctor):
        raise Forbidden('You can only manage your own schedule.')

    exception.delete()
    logger.info(f"Schedule exception {exception_id} deleted by user {actor.id}")
