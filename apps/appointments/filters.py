# apps/appointments/filters.py

from django_filters import rest_framework as filters

from core.constants import AppointmentStatus
from .models import Appointment


class AppointmentFilter(filters.FilterSet):
    """Filter for appointment lists"""

    status = filters.ChoiceFilter(choices=AppointmentStatus.choices)
    doctor = filters.NumberFilter(field_name='doctor_id')
    patient = filters.NumberFilter(field_name='patient_id')
    # "from" is a keyword, so the field is declared under another name
    start = filters.DateTimeFilter(field_name='scheduled_at', lookup_expr='gte')
    to = filters.DateTimeFilter(field_name='scheduled_at', lookup_expr='lte')

    class Meta:
        model = Appointment
        fields = ['status', 'doctor', 'patient', 'type']

    def __init__(self, data=None, *args, **kwargs):
        if data is not None and 'from' in data:
            data = data.copy()
            data['start'] = data['from']
        super().__init__(data, *args, **kwargs)
