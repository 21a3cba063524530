# apps/patients/serializers.py
from rest_framework import serializers

from .models import Patient


class PatientMinimalSerializer(serializers.ModelSerializer):
    """Patient summary nested in appointment payloads"""

    class Meta:
        model = Patient
        fields = ['id', 'full_name', 'email', 'phone']
        read_only_fields = fields
