# apps/notifications/admin.py
from django.contrib import admin

from .models import AppointmentReminder


@admin.register(AppointmentReminder)
class AppointmentReminderAdmin(admin.ModelAdmin):
    list_display = ('appointment', 'channel', 'scheduled_for', 'status', 'sent_at')
    list_filter = ('channel', 'status')
    search_fields = ('appointment__patient__full_name', 'appointment__patient__email', 'error_message')
    readonly_fields = ('created_at', 'sent_at', 'error_message')
    raw_id_fields = ('appointment',)
    date_hierarchy = 'scheduled_for'
