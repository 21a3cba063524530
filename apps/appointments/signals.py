# apps/appointments/signals.py
#
# Intents emitted after an appointment write has committed. Receivers live in
# the apps that deliver them (see apps.notifications.signals).

from django.dispatch import Signal

# sender=Appointment, appointment=<Appointment>
appointment_booked = Signal()
appointment_rescheduled = Signal()
slot_freed = Signal()
