import base64

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.appointments.models import Appointment, WaitingListEntry
from core.constants import AppointmentStatus
from tests.conftest import MONDAY, TUESDAY, at

pytestmark = pytest.mark.django_db

APPOINTMENTS_URL = '/api/appointments/'
SLOTS_URL = '/api/appointments/available-slots/'
WAITING_LIST_URL = '/api/appointments/waiting-list/'


def detail_url(appointment, suffix=''):
    return f'{APPOINTMENTS_URL}{appointment.pk}/{suffix}'


def checkin_url(token):
    return f'{APPOINTMENTS_URL}checkin/{token}/'


def booking(patient, doctor, **overrides):
    payload = {
        'patient': patient.pk,
        'doctor': doctor.pk,
        'scheduled_at': at(MONDAY, 10, 0).isoformat(),
        'duration_minutes': 30,
    }
    payload.update(overrides)
    return payload


# =========================
# booking
# =========================

def test_receptionist_books_an_appointment(client_for, receptionist, doctor, patient):
    response = client_for(receptionist).post(APPOINTMENTS_URL, booking(patient, doctor), format='json')

    assert response.status_code == 201
    assert response.data['status'] == AppointmentStatus.SCHEDULED
    assert response.data['patient']['full_name'] == patient.full_name
    assert response.data['doctor']['id'] == doctor.pk
    assert response.data['qr_token']
    assert Appointment.objects.get(pk=response.data['id']).created_by == receptionist


def test_double_booking_returns_409(client_for, receptionist, doctor, patient, other_patient):
    client = client_for(receptionist)
    client.post(APPOINTMENTS_URL, booking(patient, doctor), format='json')

    response = client.post(
        APPOINTMENTS_URL,
        booking(other_patient, doctor, scheduled_at=at(MONDAY, 10, 15).isoformat()),
        format='json'
    )

    assert response.status_code == 409
    assert response.data == {
        'error': 'The doctor already has an appointment at that time.',
        'code': 'double_booking',
    }


def test_booking_without_duration_uses_default(client_for, receptionist, doctor, patient):
    payload = booking(patient, doctor)
    del payload['duration_minutes']

    response = client_for(receptionist).post(APPOINTMENTS_URL, payload, format='json')

    assert response.status_code == 201
    assert response.data['duration_minutes'] == 30


def test_booking_validation_errors(client_for, receptionist, doctor, patient):
    response = client_for(receptionist).post(
        APPOINTMENTS_URL, booking(patient, doctor, duration_minutes=0, scheduled_at='tomorrow'), format='json'
    )

    assert response.status_code == 400
    assert response.data['code'] == 'validation_error'
    assert set(response.data['details']) == {'duration_minutes', 'scheduled_at'}


def test_booking_unknown_doctor_returns_404(client_for, receptionist, patient, doctor):
    payload = booking(patient, doctor)
    payload['doctor'] = 999999

    response = client_for(receptionist).post(APPOINTMENTS_URL, payload, format='json')

    assert response.status_code == 404
    assert response.data['code'] == 'doctor_not_found'
    assert not Appointment.objects.exists()


@pytest.mark.parametrize('role_fixture', ['nurse', 'patient_user'])
def test_roles_without_booking_rights(request, client_for, doctor, patient, role_fixture):
    user = request.getfixturevalue(role_fixture)

    response = client_for(user).post(APPOINTMENTS_URL, booking(patient, doctor), format='json')

    assert response.status_code == 403
    assert not Appointment.objects.exists()


# =========================
# slots
# =========================

def test_available_slots_endpoint(client_for, nurse, doctor, patient, monday_schedule, book):
    book(patient, doctor, at(MONDAY, 10, 0))

    response = client_for(nurse).get(SLOTS_URL, {'doctor': doctor.pk, 'date': '2030-01-07'})

    assert response.status_code == 200
    assert len(response.data) == 6
    assert {'time': '10:00', 'available': False} in response.data
    assert {'time': '09:00', 'available': True} in response.data


def test_available_slots_requires_valid_parameters(client_for, nurse, doctor):
    client = client_for(nurse)

    assert client.get(SLOTS_URL, {'doctor': doctor.pk}).status_code == 400
    assert client.get(SLOTS_URL, {'doctor': doctor.pk, 'date': '2030-13-01'}).status_code == 400
    assert client.get(SLOTS_URL, {'date': '2030-01-07'}).status_code == 400


def test_available_slots_unknown_doctor(client_for, nurse):
    response = client_for(nurse).get(SLOTS_URL, {'doctor': 999999, 'date': '2030-01-07'})

    assert response.status_code == 404


def test_patients_cannot_query_slots(client_for, patient_user, doctor):
    response = client_for(patient_user).get(SLOTS_URL, {'doctor': doctor.pk, 'date': '2030-01-07'})

    assert response.status_code == 403


# =========================
# listing and scoping
# =========================

def test_list_filters(client_for, receptionist, doctor, other_doctor, patient, other_patient, book):
    book(patient, doctor, at(MONDAY, 9, 0))
    book(other_patient, other_doctor, at(MONDAY, 9, 0))
    book(patient, doctor, at(TUESDAY, 9, 0), status=AppointmentStatus.CANCELLED)
    client = client_for(receptionist)

    assert len(client.get(APPOINTMENTS_URL).data) == 3
    assert len(client.get(APPOINTMENTS_URL, {'doctor': doctor.pk}).data) == 2
    assert len(client.get(APPOINTMENTS_URL, {'patient': other_patient.pk}).data) == 1
    assert len(client.get(APPOINTMENTS_URL, {'status': AppointmentStatus.CANCELLED}).data) == 1
    assert len(client.get(APPOINTMENTS_URL, {'from': at(TUESDAY, 0, 0).isoformat()}).data) == 1
    assert len(client.get(APPOINTMENTS_URL, {'to': at(MONDAY, 23, 0).isoformat()}).data) == 2


def test_list_is_ordered_by_start(client_for, receptionist, doctor, patient, book):
    later = book(patient, doctor, at(MONDAY, 11, 0))
    earlier = book(patient, doctor, at(MONDAY, 9, 0))

    response = client_for(receptionist).get(APPOINTMENTS_URL)

    assert [item['id'] for item in response.data] == [earlier.pk, later.pk]


def test_doctor_only_sees_own_agenda(client_for, doctor, other_doctor, patient, book):
    mine = book(patient, doctor, at(MONDAY, 9, 0))
    theirs = book(patient, other_doctor, at(MONDAY, 9, 0))
    client = client_for(doctor.user)

    assert [item['id'] for item in client.get(APPOINTMENTS_URL).data] == [mine.pk]
    assert client.get(detail_url(theirs)).status_code == 404


def test_patient_only_sees_own_bookings(client_for, patient_user, doctor, patient, other_patient, book):
    mine = book(patient, doctor, at(MONDAY, 9, 0))
    theirs = book(other_patient, doctor, at(MONDAY, 10, 0))
    client = client_for(patient_user)

    assert [item['id'] for item in client.get(APPOINTMENTS_URL).data] == [mine.pk]
    assert client.get(detail_url(mine)).status_code == 200
    assert client.get(detail_url(theirs)).status_code == 404


def test_retrieve_unknown_appointment(client_for, receptionist):
    response = client_for(receptionist).get(f'{APPOINTMENTS_URL}999999/')

    assert response.status_code == 404
    assert response.data['code'] == 'appointment_not_found'


# =========================
# lifecycle endpoints
# =========================

def test_cancel_twice_returns_409(client_for, receptionist, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))
    client = client_for(receptionist)

    first = client.post(detail_url(appointment, 'cancel/'), {'reason': 'Flu'}, format='json')
    second = client.post(detail_url(appointment, 'cancel/'), {}, format='json')

    assert first.status_code == 200
    assert first.data['status'] == AppointmentStatus.CANCELLED
    assert first.data['cancellation_reason'] == 'Flu'
    assert second.status_code == 409
    assert second.data['code'] == 'already_cancelled'


def test_patient_cancels_own_appointment(client_for, patient_user, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))

    response = client_for(patient_user).post(detail_url(appointment, 'cancel/'), {}, format='json')

    assert response.status_code == 200
    assert response.data['cancelled_by'] == patient_user.pk


def test_nurse_cannot_cancel(client_for, nurse, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))

    response = client_for(nurse).post(detail_url(appointment, 'cancel/'), {}, format='json')

    assert response.status_code == 403


def test_reschedule_endpoint(client_for, receptionist, doctor, patient, other_patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))
    book(other_patient, doctor, at(MONDAY, 11, 0))
    client = client_for(receptionist)

    conflict = client.post(
        detail_url(appointment, 'reschedule/'), {'scheduled_at': at(MONDAY, 11, 0).isoformat()}, format='json'
    )
    assert conflict.status_code == 409
    assert conflict.data['code'] == 'double_booking'

    moved = client.post(
        detail_url(appointment, 'reschedule/'),
        {'scheduled_at': at(MONDAY, 10, 0).isoformat(), 'duration_minutes': 60},
        format='json'
    )
    assert moved.status_code == 200
    assert moved.data['status'] == AppointmentStatus.SCHEDULED
    assert moved.data['duration_minutes'] == 60

    appointment.refresh_from_db()
    assert appointment.scheduled_at == at(MONDAY, 10, 0)
    assert appointment.previous_scheduled_at == at(MONDAY, 9, 0)


def test_patch_updates_status_through_the_transition_table(client_for, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))
    client = client_for(doctor.user)

    confirmed = client.patch(detail_url(appointment), {'status': AppointmentStatus.CONFIRMED}, format='json')
    assert confirmed.status_code == 200
    assert confirmed.data['status'] == AppointmentStatus.CONFIRMED

    illegal = client.patch(detail_url(appointment), {'status': AppointmentStatus.COMPLETED}, format='json')
    assert illegal.status_code == 409
    assert illegal.data == {
        'error': 'Cannot change status from CONFIRMED to COMPLETED.',
        'code': 'invalid_transition',
    }


def test_put_updates_notes(client_for, receptionist, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))

    response = client_for(receptionist).put(detail_url(appointment), {'notes': 'Wheelchair access'}, format='json')

    assert response.status_code == 200
    assert response.data['notes'] == 'Wheelchair access'


def test_qr_endpoint_returns_a_png(client_for, patient_user, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))

    response = client_for(patient_user).get(detail_url(appointment, 'qr/'))

    assert response.status_code == 200
    assert response.data['qr_token'] == appointment.qr_token
    assert response.data['checkin_url'].endswith(appointment.qr_token)
    assert base64.b64decode(response.data['image_base64']).startswith(b'\x89PNG')


# =========================
# QR check-in
# =========================

def test_anyone_can_look_up_an_appointment_by_token(api_client, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))

    response = api_client.get(checkin_url(appointment.qr_token))

    assert response.status_code == 200
    assert response.data['id'] == appointment.pk
    assert 'qr_token' not in response.data
    assert 'notes' not in response.data


def test_front_desk_checks_in_by_token(client_for, nurse, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))
    client = client_for(nurse)

    first = client.post(checkin_url(appointment.qr_token))
    second = client.post(checkin_url(appointment.qr_token))

    assert first.status_code == 200
    assert first.data['status'] == AppointmentStatus.CHECKED_IN
    assert first.data['checked_in_at'] is not None
    assert second.status_code == 409
    assert second.data['code'] == 'already_checked_in'


def test_check_in_of_cancelled_appointment(client_for, receptionist, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0), status=AppointmentStatus.CANCELLED)

    response = client_for(receptionist).post(checkin_url(appointment.qr_token))

    assert response.status_code == 409
    assert response.data['code'] == 'appointment_cancelled'


def test_check_in_requires_front_desk_role(api_client, client_for, doctor, patient, book):
    appointment = book(patient, doctor, at(MONDAY, 9, 0))

    assert api_client.post(checkin_url(appointment.qr_token)).status_code == 401
    assert client_for(doctor.user).post(checkin_url(appointment.qr_token)).status_code == 403


def test_unknown_token(api_client):
    response = api_client.get(checkin_url('does-not-exist'))

    assert response.status_code == 404


# =========================
# waiting list
# =========================

def test_waiting_list_crud(client_for, receptionist, doctor, patient, other_patient):
    client = client_for(receptionist)

    first = client.post(WAITING_LIST_URL, {'patient': patient.pk, 'doctor': doctor.pk}, format='json')
    second = client.post(
        WAITING_LIST_URL, {'patient': other_patient.pk, 'preferred_date': '2030-01-07', 'notes': 'Mornings'},
        format='json'
    )
    assert first.status_code == 201
    assert second.status_code == 201
    assert second.data['doctor'] is None

    listing = client.get(WAITING_LIST_URL)
    assert [item['id'] for item in listing.data] == [first.data['id'], second.data['id']]
    assert listing.data[0]['patient_details']['full_name'] == patient.full_name

    removed = client.delete(f"{WAITING_LIST_URL}{first.data['id']}/")
    assert removed.status_code == 204
    assert list(WaitingListEntry.objects.values_list('id', flat=True)) == [second.data['id']]


def test_remove_unknown_waiting_list_entry(client_for, receptionist):
    response = client_for(receptionist).delete(f'{WAITING_LIST_URL}999999/')

    assert response.status_code == 404
    assert response.data['code'] == 'waiting_list_entry_not_found'


def test_waiting_list_requires_front_desk_role(client_for, doctor):
    response = client_for(doctor.user).get(WAITING_LIST_URL)

    assert response.status_code == 403


# =========================
# bearer tokens
# =========================

def test_bearer_token_authenticates(receptionist, doctor, patient, book):
    book(patient, doctor, at(MONDAY, 9, 0))
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(receptionist).access_token}')

    response = client.get(APPOINTMENTS_URL)

    assert response.status_code == 200
    assert len(response.data) == 1


def test_disabled_account_is_rejected(receptionist):
    token = RefreshToken.for_user(receptionist).access_token
    receptionist.is_active = False
    receptionist.save()
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

    response = client.get(APPOINTMENTS_URL)

    assert response.status_code == 401


def test_garbage_token_is_rejected(api_client):
    api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')

    assert api_client.get(APPOINTMENTS_URL).status_code == 401
