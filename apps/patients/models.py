# apps/patients/models.py
from django.db import models
from core.mixins.audit_fields import AuditFieldsMixin


class Patient(AuditFieldsMixin, models.Model):
    """Patient record; linked to a User account only when the patient can log in"""

    user = models.OneToOneField(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='patient_profile'
    )

    # Contact
    full_name = models.CharField(max_length=150)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'patients'
        ordering = ['full_name']
        indexes = [
            models.Index(fields=['user']),
            models.Index(fields=['email']),
        ]

    def __str__(self):
        return self.full_name
