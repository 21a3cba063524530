# apps/doctors/admin.py

from django.contrib import admin
from .models import Doctor, DoctorSchedule, DoctorScheduleException


class DoctorScheduleInline(admin.TabularInline):
    model = DoctorSchedule
    extra = 0
    fields = ('day_of_week', 'start_time', 'end_time', 'slot_duration', 'is_active')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'full_name', 'specialization', 'is_active')
    list_filter = ('specialization', 'is_active')
    search_fields = ('user__email', 'user__full_name', 'specialization')
    readonly_fields = ('created_at', 'updated_at', 'created_by', 'updated_by')
    raw_id_fields = ('user',)
    inlines = [DoctorScheduleInline]


@admin.register(DoctorSchedule)
class DoctorScheduleAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'day_of_week', 'start_time', 'end_time', 'slot_duration', 'is_active')
    list_filter = ('day_of_week', 'is_active')
    raw_id_fields = ('doctor',)


@admin.register(DoctorScheduleException)
class DoctorScheduleExceptionAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'date', 'is_blocked', 'start_time', 'end_time', 'reason')
    list_filter = ('is_blocked', 'date')
    search_fields = ('doctor__user__full_name', 'reason')
    raw_id_fields = ('doctor',)
    date_hierarchy = 'date'
