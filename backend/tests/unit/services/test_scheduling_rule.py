"""
Unit tests for the booking rule: insurance eligibility and slot conflicts.
"""

from datetime import date, time

import pytest

from clinic.core.exceptions import IneligiblePatientError, SlotAlreadyBookedError
from clinic.services.scheduling import SchedulingRule, subtract_months
from tests.factories.domain_factories import (
    VISIT_DATE,
    VISIT_TIME,
    make_doctor,
    make_patient,
    make_visit,
)
from tests.factories.repository_factories import VisitRepositoryFactory

TODAY = date(2024, 7, 15)


@pytest.fixture
def visit_reader():
    return VisitRepositoryFactory.create_mock_reader()


@pytest.fixture
def rule(visit_reader):
    return SchedulingRule(visit_reader, clock=lambda: TODAY, validity_months=6)


@pytest.mark.unit
class TestSubtractMonths:
    def test_simple(self):
        assert subtract_months(date(2024, 7, 15), 6) == date(2024, 1, 15)

    def test_crosses_year(self):
        assert subtract_months(date(2024, 3, 10), 6) == date(2023, 9, 10)

    def test_clamps_to_month_end(self):
        assert subtract_months(date(2024, 8, 31), 6) == date(2024, 2, 29)
        assert subtract_months(date(2023, 8, 31), 6) == date(2023, 2, 28)


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.visit
class TestInsuranceEligibility:
    def test_payment_today_is_valid(self, rule):
        assert rule.has_valid_insurance(make_patient(last_insurance_payment_date=TODAY))

    def test_payment_exactly_six_months_ago_is_valid(self, rule):
        patient = make_patient(last_insurance_payment_date=date(2024, 1, 15))
        assert rule.has_valid_insurance(patient)

    def test_payment_one_day_too_old_is_invalid(self, rule):
        patient = make_patient(last_insurance_payment_date=date(2024, 1, 14))
        assert not rule.has_valid_insurance(patient)

    def test_missing_payment_is_invalid(self, rule):
        assert not rule.has_valid_insurance(make_patient(last_insurance_payment_date=None))

    def test_eligibility_uses_clock_not_visit_date(self, rule, visit_reader):
        # Visit far in the future; payment valid relative to today
        patient = make_patient(last_insurance_payment_date=date(2024, 2, 1))

        rule.validate(patient, make_doctor(), date(2025, 12, 1), time(10, 0))

    def test_ineligible_patient_raises_with_patient_id(self, rule, visit_reader):
        patient = make_patient(id=77, last_insurance_payment_date=date(2023, 1, 1))

        with pytest.raises(IneligiblePatientError) as exc_info:
            rule.validate(patient, make_doctor(), VISIT_DATE, VISIT_TIME)

        assert exc_info.value.patient_id == 77
        visit_reader.find_by_doctor_and_date_time.assert_not_called()


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.visit
class TestSlotConflict:
    def test_free_slot_passes(self, rule, visit_reader):
        rule.validate(make_patient(last_insurance_payment_date=TODAY), make_doctor(), VISIT_DATE, VISIT_TIME)

        visit_reader.find_by_doctor_and_date_time.assert_called_once_with(
            10, VISIT_DATE, VISIT_TIME
        )

    def test_taken_slot_on_create_raises(self, rule, visit_reader):
        visit_reader.find_by_doctor_and_date_time.return_value = make_visit(id=3)

        with pytest.raises(SlotAlreadyBookedError) as exc_info:
            rule.validate(make_patient(last_insurance_payment_date=TODAY), make_doctor(), VISIT_DATE, VISIT_TIME)

        assert exc_info.value.visit_date == VISIT_DATE
        assert exc_info.value.visit_time == VISIT_TIME
        assert "10:00:00 on 2024-01-10" in exc_info.value.message

    def test_taken_by_another_visit_on_update_raises(self, rule, visit_reader):
        visit_reader.find_by_doctor_and_date_time.return_value = make_visit(id=3)

        with pytest.raises(SlotAlreadyBookedError):
            rule.validate(
                make_patient(last_insurance_payment_date=TODAY),
                make_doctor(),
                VISIT_DATE,
                VISIT_TIME,
                existing_visit_id=4,
            )

    def test_visit_may_keep_its_own_slot(self, rule, visit_reader):
        visit_reader.find_by_doctor_and_date_time.return_value = make_visit(id=3)

        rule.validate(
            make_patient(last_insurance_payment_date=TODAY),
            make_doctor(),
            VISIT_DATE,
            VISIT_TIME,
            existing_visit_id=3,
        )
