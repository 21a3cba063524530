# apps/notifications/services.py
import logging
from datetime import timedelta

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone

from apps.appointments.services import WaitingListService
from core.constants import AppointmentStatus, ReminderChannel, ReminderStatus
from .models import AppointmentReminder

logger = logging.getLogger(__name__)


class ReminderDeliveryError(Exception):
    """A reminder could not be handed to its transport"""


class ReminderService:
    """Creates reminders for booked appointments and delivers the due ones"""

    @staticmethod
    def schedule_reminders(appointment, now=None):
        """One pending reminder per configured offset that still lies in the future"""
        now = now or timezone.now()

        reminders = []
        for channel, hours_before in settings.APPOINTMENT_REMINDER_OFFSETS:
            scheduled_for = appointment.scheduled_at - timedelta(hours=hours_before)
            if scheduled_for > now:
                reminders.append(AppointmentReminder(
                    appointment=appointment,
                    channel=channel,
                    scheduled_for=scheduled_for,
                ))

        AppointmentReminder.objects.bulk_create(reminders)
        logger.info(f"Scheduled {len(reminders)} reminder(s) for appointment {appointment.pk}")
        return reminders

    @staticmethod
    def cancel_pending(appointment):
        deleted, _ = AppointmentReminder.objects.filter(
            appointment=appointment,
            status=ReminderStatus.PENDING
        ).delete()
        if deleted:
            logger.info(f"Dropped {deleted} pending reminder(s) for appointment {appointment.pk}")
        return deleted

    @classmethod
    def process_due_reminders(cls, now=None, batch_size=None):
        """
        Deliver pending reminders whose time has come.

        Each reminder is claimed with SKIP LOCKED and finished in its own
        transaction; a failure on one row never rolls back rows already sent.
        """
        now = now or timezone.now()
        batch_size = batch_size or settings.REMINDER_SWEEP_BATCH_SIZE
        results = {'sent': 0, 'failed': 0}

        due_ids = list(
            AppointmentReminder.objects
            .filter(status=ReminderStatus.PENDING, scheduled_for__lte=now)
            .order_by('scheduled_for', 'id')
            .values_list('id', flat=True)[:batch_size]
        )

        for reminder_id in due_ids:
            with transaction.atomic():
                reminder = (
                    AppointmentReminder.objects
                    .select_for_update(skip_locked=True, of=('self',))
                    .select_related('appointment', 'appointment__patient', 'appointment__doctor__user')
                    .filter(pk=reminder_id, status=ReminderStatus.PENDING)
                    .first()
                )
                if reminder is None:
                    continue  # claimed by another sweep

                try:
                    cls._deliver(reminder)
                except Exception as e:
                    reminder.status = ReminderStatus.FAILED
                    reminder.error_message = str(e)
                    reminder.save(update_fields=['status', 'error_message'])
                    results['failed'] += 1
                    logger.error(f"Failed to deliver reminder {reminder.pk}: {str(e)}")
                else:
                    reminder.status = ReminderStatus.SENT
                    reminder.sent_at = timezone.now()
                    reminder.save(update_fields=['status', 'sent_at'])
                    results['sent'] += 1

        logger.info(f"Reminder sweep finished: {results['sent']} sent, {results['failed']} failed")
        return results

    @staticmethod
    def _deliver(reminder):
        appointment = reminder.appointment
        patient = appointment.patient

        if appointment.status not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            raise ReminderDeliveryError(f"Appointment is {appointment.status}")
        if reminder.channel != ReminderChannel.EMAIL:
            raise ReminderDeliveryError(f"No transport configured for channel '{reminder.channel}'")
        if not patient.email:
            raise ReminderDeliveryError("Patient has no email address")

        local_start = timezone.localtime(appointment.scheduled_at)
        subject = f"Appointment reminder - {local_start:%Y-%m-%d %H:%M}"
        message = (
            f"Hello {patient.full_name},\n\n"
            f"This is a reminder of your appointment with Dr. {appointment.doctor.full_name} "
            f"on {local_start:%A, %B %d, %Y} at {local_start:%H:%M}.\n"
        )
        send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, [patient.email], fail_silently=False)
        logger.info(f"Reminder {reminder.pk} emailed to {patient.email} for appointment {appointment.pk}")


def notify_waiting_list(appointment):
    """Tell the longest-waiting patient for the doctor that a slot opened up"""
    entry = WaitingListService.notify_next(appointment.doctor_id)
    if entry is None:
        return None

    patient = entry.patient
    local_start = timezone.localtime(appointment.scheduled_at)
    logger.info(
        f"Waiting list entry {entry.pk}: notifying patient {patient.pk} about freed slot "
        f"{local_start:%Y-%m-%d %H:%M} with doctor {appointment.doctor_id}"
    )

    if patient.email:
        send_mail(
            "An appointment slot is available",
            (
                f"Hello {patient.full_name},\n\n"
                f"A slot with Dr. {appointment.doctor.full_name} opened up on "
                f"{local_start:%A, %B %d, %Y} at {local_start:%H:%M}. "
                f"Contact the clinic to book it.\n"
            ),
            settings.DEFAULT_FROM_EMAIL,
            [patient.email],
            fail_silently=False,
        )
    return entry
