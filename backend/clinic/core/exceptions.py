"""
Custom exceptions for the clinic core.

Each service raises the most specific class below; controllers translate
them into HTTP status codes in one place.
"""

from datetime import date, time
from typing import Any, Optional


class ClinicError(Exception):
    """Base class for every error raised by the clinic core."""

    status_code = 500
    error_code = "server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ClinicError, ValueError):
    """Missing or malformed input, including out-of-range pagination."""

    status_code = 400
    error_code = "validation_error"


class NotFoundError(ClinicError):
    """A referenced entity does not exist."""

    status_code = 404
    error_code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found with ID: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class IneligiblePatientError(ClinicError):
    """Patient insurance has not been paid recently enough to book a visit."""

    status_code = 422
    error_code = "ineligible_patient"

    def __init__(self, patient_id: Optional[int], months: int = 6):
        super().__init__(
            f"Patient {patient_id} insurance is not valid "
            f"(must be paid within last {months} months)"
        )
        self.patient_id = patient_id


class SlotAlreadyBookedError(ClinicError):
    """The doctor already has a visit at the requested date and time."""

    status_code = 409
    error_code = "slot_already_booked"

    def __init__(self, visit_date: date, visit_time: time):
        super().__init__(
            f"Visit time {visit_time.isoformat()} on {visit_date.isoformat()} "
            f"is already booked"
        )
        self.visit_date = visit_date
        self.visit_time = visit_time


class AccessDeniedError(ClinicError):
    """Caller is not allowed to see or modify the requested visit."""

    status_code = 403
    error_code = "access_denied"


class InvalidVisitStateError(ClinicError):
    """Requested status transition is not allowed from the visit's current status."""

    status_code = 409
    error_code = "invalid_state"
