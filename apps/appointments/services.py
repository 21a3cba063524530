# apps/appointments/services.py

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from apps.doctors.models import Doctor
from apps.doctors.services import generate_slots
from apps.patients.models import Patient
from core.constants import (
    APPOINTMENT_TRANSITIONS, CONFLICT_EXEMPT_STATUSES,
    AppointmentStatus, AppointmentType, UserRoles,
)
from core.exceptions import (
    AlreadyCancelled, AlreadyCheckedIn, AppointmentCancelled, AppointmentNotFound,
    DoctorNotFound, DoubleBooking, InvalidTransition, PatientNotFound, Validation,
    WaitingListEntryNotFound,
)
from .models import Appointment, WaitingListEntry
from .signals import appointment_booked, appointment_rescheduled, slot_freed

logger = logging.getLogger(__name__)


def has_conflict(doctor, start, duration_minutes, exclude_appointment_id=None):
    """
    True when [start, start + duration) overlaps an appointment of the doctor
    that still holds its slot. Touching intervals do not overlap.

    Call it inside the transaction that performs the write, after the doctor
    row has been locked.
    """
    end = start + timedelta(minutes=duration_minutes)

    active = Appointment.objects.filter(doctor=doctor).exclude(status__in=CONFLICT_EXEMPT_STATUSES)
    if exclude_appointment_id is not None:
        active = active.exclude(pk=exclude_appointment_id)

    longest = active.aggregate(longest=Max('duration_minutes'))['longest']
    if longest is None:
        return False

    # Nothing starting earlier than this can still be running at `start`
    nearby = active.filter(
        scheduled_at__lt=end,
        scheduled_at__gt=start - timedelta(minutes=longest),
    ).only('scheduled_at', 'duration_minutes')

    return any(appointment.end_at > start for appointment in nearby)


def _emit_on_commit(signal, appointment):
    """Send an intent once the surrounding transaction commits; receiver errors are logged only"""

    def send():
        for receiver, response in signal.send_robust(sender=Appointment, appointment=appointment):
            if isinstance(response, Exception):
                logger.error(
                    f"Receiver {getattr(receiver, '__qualname__', receiver)} failed "
                    f"for appointment {appointment.pk}: {response}",
                    exc_info=response
                )

    transaction.on_commit(send)


class AppointmentService:
    """Booking, rescheduling, cancellation and check-in of appointments"""

    @staticmethod
    def _lock_doctor(doctor):
        """Row lock that serialises every booking of one doctor"""
        try:
            return Doctor.objects.select_for_update().get(pk=getattr(doctor, 'pk', doctor))
        except (Doctor.DoesNotExist, ValueError, TypeError):
            raise DoctorNotFound()

    @staticmethod
    def _get_patient(patient):
        if isinstance(patient, Patient):
            return patient
        try:
            return Patient.objects.get(pk=patient)
        except (Patient.DoesNotExist, ValueError, TypeError):
            raise PatientNotFound()

    @staticmethod
    def _base_queryset():
        return Appointment.objects.select_related('patient', 'doctor', 'doctor__user')

    @staticmethod
    def _check_transition(appointment, target):
        if target not in APPOINTMENT_TRANSITIONS.get(appointment.status, set()):
            raise InvalidTransition(appointment.status, target)

    # =========================
    # Reads
    # =========================

    @classmethod
    def get(cls, appointment_id):
        try:
            return cls._base_queryset().get(pk=appointment_id)
        except (Appointment.DoesNotExist, ValueError, TypeError):
            raise AppointmentNotFound()

    @classmethod
    def get_by_qr_token(cls, qr_token):
        try:
            return cls._base_queryset().get(qr_token=qr_token)
        except Appointment.DoesNotExist:
            raise AppointmentNotFound('Invalid QR code or appointment not found.')

    @classmethod
    def list(cls, actor):
        """
        Appointments visible to the actor.

        Doctors only see their own agenda and patients only their own bookings.
        """
        queryset = cls._base_queryset()
        if actor.role == UserRoles.DOCTOR:
            queryset = queryset.filter(doctor__user_id=actor.id)
        elif actor.role == UserRoles.PATIENT:
            queryset = queryset.filter(patient__user_id=actor.id)
        return queryset.order_by('scheduled_at')

    @staticmethod
    def list_available_slots(doctor, day):
        return generate_slots(doctor, day)

    # =========================
    # Writes
    # =========================

    @classmethod
    def create(cls, patient, doctor, scheduled_at, duration_minutes=None,
               type=AppointmentType.CONSULTATION, notes='', created_by=None):
        if duration_minutes is None:
            duration_minutes = settings.APPOINTMENT_DEFAULT_DURATION
        if duration_minutes <= 0:
            raise Validation('Duration must be a positive number of minutes.')

        patient = cls._get_patient(patient)

        with transaction.atomic():
            doctor = cls._lock_doctor(doctor)

            if has_conflict(doctor, scheduled_at, duration_minutes):
                logger.info(f"Double booking rejected for doctor {doctor.pk} at {scheduled_at.isoformat()}")
                raise DoubleBooking()

            appointment = Appointment.objects.create(
                patient=patient,
                doctor=doctor,
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                type=type or AppointmentType.CONSULTATION,
                notes=notes or '',
                status=AppointmentStatus.SCHEDULED,
                created_by=created_by,
                updated_by=created_by,
            )
            _emit_on_commit(appointment_booked, appointment)

        logger.info(
            f"Appointment {appointment.pk} booked: patient {patient.pk} with doctor {doctor.pk} "
            f"at {scheduled_at.isoformat()} ({duration_minutes}m)"
        )
        return appointment

    @classmethod
    def update(cls, appointment_id, status=None, notes=None, type=None, user=None):
        """Partial update of status, notes and type; status changes follow the transition table"""
        with transaction.atomic():
            appointment = cls.get(appointment_id)
            appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)

            update_fields = []
            freed = False

            if status is not None and status != appointment.status:
                cls._check_transition(appointment, status)
                previous = appointment.status
                appointment.status = status
                update_fields.append('status')

                if status == AppointmentStatus.CHECKED_IN:
                    appointment.checked_in_at = timezone.now()
                    update_fields.append('checked_in_at')
                elif status == AppointmentStatus.CANCELLED:
                    appointment.cancelled_at = timezone.now()
                    appointment.cancelled_by = user
                    update_fields.extend(['cancelled_at', 'cancelled_by'])
                    freed = True

                logger.info(f"Appointment {appointment.pk} status changed from {previous} to {status}")

            if notes is not None:
                appointment.notes = notes
                update_fields.append('notes')
            if type is not None:
                appointment.type = type
                update_fields.append('type')

            if update_fields:
                appointment.updated_by = user
                appointment.save(update_fields=update_fields + ['updated_by', 'updated_at'])

            if freed:
                _emit_on_commit(slot_freed, appointment)

        return cls.get(appointment.pk)

    @classmethod
    def cancel(cls, appointment_id, cancelled_by=None, reason=''):
        with transaction.atomic():
            appointment = cls.get(appointment_id)
            appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)

            if appointment.status == AppointmentStatus.CANCELLED:
                raise AlreadyCancelled()
            cls._check_transition(appointment, AppointmentStatus.CANCELLED)

            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancelled_by = cancelled_by
            appointment.cancellation_reason = reason or ''
            appointment.cancelled_at = timezone.now()
            appointment.updated_by = cancelled_by
            appointment.save(update_fields=[
                'status', 'cancelled_by', 'cancellation_reason', 'cancelled_at',
                'updated_by', 'updated_at',
            ])
            _emit_on_commit(slot_freed, appointment)

        logger.info(
            f"Appointment {appointment.pk} cancelled by user "
            f"{getattr(cancelled_by, 'pk', None)}: {reason or 'no reason given'}"
        )
        return cls.get(appointment.pk)

    @classmethod
    def reschedule(cls, appointment_id, new_scheduled_at, new_duration_minutes=None, user=None):
        """
        Move an appointment to a new interval, keeping the same record.

        The appointment returns to SCHEDULED so the new interval keeps holding
        its slot; the old start is kept in `previous_scheduled_at`.
        """
        appointment = cls.get(appointment_id)
        if new_duration_minutes is not None and new_duration_minutes <= 0:
            raise Validation('Duration must be a positive number of minutes.')

        with transaction.atomic():
            cls._lock_doctor(appointment.doctor_id)
            appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)

            if appointment.status not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
                raise InvalidTransition(appointment.status, AppointmentStatus.RESCHEDULED)

            duration = new_duration_minutes or appointment.duration_minutes
            if has_conflict(appointment.doctor_id, new_scheduled_at, duration, exclude_appointment_id=appointment.pk):
                logger.info(
                    f"Reschedule of appointment {appointment.pk} rejected: doctor busy at "
                    f"{new_scheduled_at.isoformat()}"
                )
                raise DoubleBooking()

            appointment.previous_scheduled_at = appointment.scheduled_at
            appointment.scheduled_at = new_scheduled_at
            appointment.duration_minutes = duration
            appointment.status = AppointmentStatus.SCHEDULED
            appointment.updated_by = user
            appointment.save(update_fields=[
                'previous_scheduled_at', 'scheduled_at', 'duration_minutes', 'status',
                'updated_by', 'updated_at',
            ])
            _emit_on_commit(appointment_rescheduled, appointment)

        logger.info(
            f"Appointment {appointment.pk} rescheduled from "
            f"{appointment.previous_scheduled_at.isoformat()} to {new_scheduled_at.isoformat()}"
        )
        return cls.get(appointment.pk)

    @classmethod
    def check_in(cls, qr_token):
        with transaction.atomic():
            appointment = cls.get_by_qr_token(qr_token)
            appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)

            if appointment.status == AppointmentStatus.CHECKED_IN:
                raise AlreadyCheckedIn()
            if appointment.status == AppointmentStatus.CANCELLED:
                raise AppointmentCancelled()
            cls._check_transition(appointment, AppointmentStatus.CHECKED_IN)

            appointment.status = AppointmentStatus.CHECKED_IN
            appointment.checked_in_at = timezone.now()
            appointment.save(update_fields=['status', 'checked_in_at', 'updated_at'])

        logger.info(f"Appointment {appointment.pk} checked in")
        return cls.get(appointment.pk)


class WaitingListService:
    """First-come queue of patients waiting for a freed slot"""

    @staticmethod
    def list():
        return WaitingListEntry.objects.select_related('patient', 'doctor', 'doctor__user').order_by('created_at', 'id')

    @staticmethod
    def add(patient, doctor=None, preferred_date=None, notes=''):
        entry = WaitingListEntry.objects.create(
            patient=patient,
            doctor=doctor,
            preferred_date=preferred_date,
            notes=notes or '',
        )
        logger.info(f"Patient {patient.pk} added to the waiting list (doctor {getattr(doctor, 'pk', None)})")
        return entry

    @staticmethod
    def remove(entry_id):
        try:
            deleted, _ = WaitingListEntry.objects.filter(pk=entry_id).delete()
        except (ValueError, TypeError):
            raise WaitingListEntryNotFound()
        if not deleted:
            raise WaitingListEntryNotFound()
        logger.info(f"Waiting list entry {entry_id} removed")

    @staticmethod
    def notify_next(doctor_id):
        """
        Mark the oldest un-notified entry for the doctor as notified.

        Returns the entry, or None when nobody is waiting.
        """
        with transaction.atomic():
            entry = (
                WaitingListEntry.objects
                .select_for_update(skip_locked=True)
                .filter(doctor_id=doctor_id, notified_at__isnull=True)
                .order_by('created_at', 'id')
                .first()
            )
            if entry is None:
                return None
            entry.notified_at = timezone.now()
            entry.save(update_fields=['notified_at'])
        return entry
