import itertools
from datetime import date, time, timedelta

import pytest
from rest_framework.test import APIClient

from apps.accounts.models import User
from apps.appointments.models import Appointment
from apps.doctors.models import Doctor, DoctorSchedule
from apps.patients.models import Patient
from core.constants import AppointmentStatus, DayOfWeek, UserRoles
from core.utils import local_datetime

# A Monday far enough ahead that reminders are always in the future
MONDAY = date(2030, 1, 7)
TUESDAY = MONDAY + timedelta(days=1)

_counter = itertools.count(1)


def at(day, hour, minute=0):
    """Aware datetime for a civil time in the clinic's zone"""
    return local_datetime(day, time(hour, minute))


@pytest.fixture
def make_user(db):
    def _make(role, **extra):
        n = next(_counter)
        extra.setdefault('email', f"{role.lower()}{n}@clinic.test")
        extra.setdefault('full_name', f"{role.title()} {n}")
        return User.objects.create_user(password='s3cret-pass', role=role, **extra)
    return _make


@pytest.fixture
def clinic_admin(make_user):
    return make_user(UserRoles.ADMIN)


@pytest.fixture
def receptionist(make_user):
    return make_user(UserRoles.RECEPTIONIST)


@pytest.fixture
def nurse(make_user):
    return make_user(UserRoles.NURSE)


@pytest.fixture
def make_doctor(make_user):
    def _make(**extra):
        return Doctor.objects.create(user=make_user(UserRoles.DOCTOR), **extra)
    return _make


@pytest.fixture
def doctor(make_doctor):
    return make_doctor(specialization='General Medicine')


@pytest.fixture
def other_doctor(make_doctor):
    return make_doctor(specialization='Pediatrics')


@pytest.fixture
def patient_user(make_user):
    return make_user(UserRoles.PATIENT)


@pytest.fixture
def patient(patient_user):
    return Patient.objects.create(
        user=patient_user,
        full_name='Ana Torres',
        email='ana.torres@example.com',
        phone='5551234567',
    )


@pytest.fixture
def other_patient(db):
    return Patient.objects.create(full_name='Luis Ramos', email='luis.ramos@example.com')


@pytest.fixture
def monday_schedule(doctor):
    """Mondays 09:00-12:00 in 30 minute slots"""
    return DoctorSchedule.objects.create(
        doctor=doctor,
        day_of_week=DayOfWeek.MONDAY,
        start_time=time(9, 0),
        end_time=time(12, 0),
        slot_duration=30,
    )


@pytest.fixture
def book(db):
    """Insert an appointment directly, bypassing the booking rules"""
    def _book(patient, doctor, scheduled_at, duration_minutes=30, status=AppointmentStatus.SCHEDULED, **extra):
        return Appointment.objects.create(
            patient=patient,
            doctor=doctor,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=status,
            **extra
        )
    return _book


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _client
