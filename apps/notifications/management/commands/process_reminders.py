from django.core.management.base import BaseCommand

from apps.notifications.services import ReminderService


class Command(BaseCommand):
    help = "Deliver appointment reminders that are due (same work as the hourly celery task)"

    def add_arguments(self, parser):
        parser.add_argument('--batch-size', type=int, default=None,
                            help="Maximum number of reminders to claim in this run")

    def handle(self, *args, **options):
        results = ReminderService.process_due_reminders(batch_size=options['batch_size'])
        self.stdout.write(self.style.SUCCESS(
            f"Reminders processed: {results['sent']} sent, {results['failed']} failed"
        ))
