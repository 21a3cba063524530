# core/exceptions.py

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError as DRFValidationError
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class Validation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_error'


class AppointmentNotFound(NotFound):
    default_detail = 'Appointment not found.'
    default_code = 'appointment_not_found'


class DoctorNotFound(NotFound):
    default_detail = 'Doctor not found.'
    default_code = 'doctor_not_found'


class PatientNotFound(NotFound):
    default_detail = 'Patient not found.'
    default_code = 'patient_not_found'


class ScheduleExceptionNotFound(NotFound):
    default_detail = 'Schedule exception not found.'
    default_code = 'schedule_exception_not_found'


class WaitingListEntryNotFound(NotFound):
    default_detail = 'Waiting list entry not found.'
    default_code = 'waiting_list_entry_not_found'


class DoubleBooking(Conflict):
    default_detail = 'The doctor already has an appointment at that time.'
    default_code = 'double_booking'


class DuplicateScheduleException(Conflict):
    default_detail = 'An exception already exists for that date.'
    default_code = 'duplicate_schedule_exception'


class AlreadyCancelled(Conflict):
    default_detail = 'The appointment is already cancelled.'
    default_code = 'already_cancelled'


class AlreadyCheckedIn(Conflict):
    default_detail = 'The patient has already checked in.'
    default_code = 'already_checked_in'


class AppointmentCancelled(Conflict):
    default_detail = 'The appointment is cancelled.'
    default_code = 'appointment_cancelled'


class InvalidTransition(Conflict):
    default_code = 'invalid_transition'

    def __init__(self, current, target):
        super().__init__(f'Cannot change status from {current} to {target}.')
        self.current = current
        self.target = target


def api_exception_handler(exc, context):
    """
    Render every error as {"error": ..., "code": ...}.

    Field-level validation errors keep their per-field messages under "details".
    """
    if isinstance(exc, DjangoValidationError):
        exc = DRFValidationError(detail=exc.message_dict if hasattr(exc, 'error_dict') else exc.messages)
    elif isinstance(exc, IntegrityError):
        logger.warning(f"Integrity error translated to conflict: {exc}")
        exc = Conflict()

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, DRFValidationError):
        body = {
            'error': 'Validation error',
            'code': Validation.default_code,
            'details': response.data,
        }
    else:
        detail = getattr(exc, 'detail', None)
        body = {
            'error': str(detail) if detail is not None else str(exc),
            'code': detail.code if hasattr(detail, 'code') else getattr(exc, 'default_code', 'error'),
        }

    response.data = body
    return response
