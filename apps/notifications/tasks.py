# apps/notifications/tasks.py (for Celery)
from celery import shared_task

from .services import ReminderService


@shared_task
def process_due_reminders():
    """Deliver due appointment reminders (run hourly by celery beat)"""
    return ReminderService.process_due_reminders()
