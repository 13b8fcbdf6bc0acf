"""
Booking rules applied to every visit create/update.
"""

import calendar
import logging
from datetime import date, datetime, time
from typing import Callable, Optional

from clinic.core import config
from clinic.core.exceptions import IneligiblePatientError, SlotAlreadyBookedError
from clinic.domain.entities import Doctor, Patient
from clinic.domain.interfaces import IVisitReader

logger = logging.getLogger(__name__)

Clock = Callable[[], date]


def today_in_app_tz() -> date:
    return datetime.now(config.APP_TZ).date()


def subtract_months(value: date, months: int) -> date:
    """Go back `months` calendar months, clamping to the last day of the month.

    subtract_months(date(2024, 8, 31), 6) == date(2024, 2, 29)
    """
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


class SchedulingRule:
    """Decides whether a patient may book a doctor's slot.

    Two checks, in order:
    - Insurance eligibility: last payment no older than
      INSURANCE_VALIDITY_MONTHS before today (today from the clock).
    - Slot conflict: the doctor has no other visit at the same date and time.
      A visit being updated may keep its own slot.
    """

    def __init__(
        self,
        visit_reader: IVisitReader,
        clock: Optional[Clock] = None,
        validity_months: Optional[int] = None,
    ):
        self.visit_reader = visit_reader
        self.clock = clock or today_in_app_tz
        self.validity_months = (
            validity_months
            if validity_months is not None
            else config.INSURANCE_VALIDITY_MONTHS
        )

    def has_valid_insurance(self, patient: Patient) -> bool:
        last_payment = patient.last_insurance_payment_date
        if last_payment is None:
            return False
        cutoff = subtract_months(self.clock(), self.validity_months)
        return last_payment >= cutoff

    def validate(
        self,
        patient: Patient,
        doctor: Doctor,
        proposed_date: date,
        proposed_time: time,
        existing_visit_id: Optional[int] = None,
    ) -> None:
        """Raise if the booking is not allowed.

        Raises:
            IneligiblePatientError: insurance missing or too old
            SlotAlreadyBookedError: another visit holds the doctor's slot
        """
        if not self.has_valid_insurance(patient):
            logger.warning(
                "Booking rejected: insurance not valid",
                extra={
                    "context": {
                        "patient_id": patient.id,
                        "last_insurance_payment_date": patient.last_insurance_payment_date,
                    }
                },
            )
            raise IneligiblePatientError(patient.id, self.validity_months)

        existing = self.visit_reader.find_by_doctor_and_date_time(
            doctor.id, proposed_date, proposed_time
        )
        if existing is not None and (
            existing_visit_id is None or existing.id != existing_visit_id
        ):
            logger.warning(
                "Booking rejected: slot already booked",
                extra={
                    "context": {
                        "doctor_id": doctor.id,
                        "visit_date": proposed_date,
                        "visit_time": proposed_time,
                        "conflicting_visit_id": existing.id,
                    }
                },
            )
            raise SlotAlreadyBookedError(proposed_date, proposed_time)
