# apps/appointments/admin.py

from django.contrib import admin
from .models import Appointment, WaitingListEntry


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'scheduled_at', 'duration_minutes', 'status', 'type')
    list_filter = ('status', 'type', 'scheduled_at')
    search_fields = ('patient__full_name', 'patient__email', 'doctor__user__full_name', 'qr_token')
    readonly_fields = (
        'qr_token', 'checked_in_at', 'cancelled_at', 'previous_scheduled_at',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    raw_id_fields = ('patient', 'doctor', 'cancelled_by')
    date_hierarchy = 'scheduled_at'

    fieldsets = (
        ('Appointment', {
            'fields': ('patient', 'doctor', 'scheduled_at', 'duration_minutes', 'previous_scheduled_at',
                       'status', 'type', 'notes')
        }),
        ('Check-in', {
            'fields': ('qr_token', 'checked_in_at')
        }),
        ('Cancellation', {
            'fields': ('cancelled_by', 'cancellation_reason', 'cancelled_at'),
            'classes': ('collapse',)
        }),
        ('Audit', {
            'fields': ('created_by', 'updated_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(WaitingListEntry)
class WaitingListEntryAdmin(admin.ModelAdmin):
    list_display = ('patient', 'doctor', 'preferred_date', 'notified_at', 'created_at')
    list_filter = ('notified_at',)
    search_fields = ('patient__full_name', 'doctor__user__full_name')
    raw_id_fields = ('patient', 'doctor')
