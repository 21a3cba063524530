# apps/notifications/signals.py
import logging

from django.dispatch import receiver

from apps.appointments.signals import appointment_booked, appointment_rescheduled, slot_freed
from .services import ReminderService, notify_waiting_list

logger = logging.getLogger(__name__)


@receiver(appointment_booked)
def schedule_reminders_for_new_appointment(sender, appointment, **kwargs):
    ReminderService.schedule_reminders(appointment)


@receiver(appointment_rescheduled)
def reschedule_reminders(sender, appointment, **kwargs):
    ReminderService.cancel_pending(appointment)
    ReminderService.schedule_reminders(appointment)


@receiver(slot_freed)
def drop_reminders_for_freed_slot(sender, appointment, **kwargs):
    ReminderService.cancel_pending(appointment)


@receiver(slot_freed)
def notify_waiting_list_on_freed_slot(sender, appointment, **kwargs):
    notify_waiting_list(appointment)
