"""
Unit tests for VisitService.create_visit.

Covers:
- Successful creation with treatment and sick leave
- Missing or invalid request data
- Missing patient, doctor or diagnosis
- Insurance and slot rules
- Doctor ownership when a caller is supplied
"""

from datetime import date

import pytest

from clinic.core.exceptions import (
    AccessDeniedError,
    IneligiblePatientError,
    InvalidRequestError,
    NotFoundError,
    SlotAlreadyBookedError,
)
from clinic.core.security import ROLE_ADMIN, ROLE_DOCTOR, CallerContext
from clinic.domain.entities import VisitStatus
from clinic.schemas.dtos import VisitResponse
from tests.factories.domain_factories import (
    VISIT_DATE,
    VISIT_TIME,
    make_create_request,
    make_diagnosis,
    make_doctor,
    make_patient,
    make_sick_leave_request,
    make_treatment_request,
    make_visit,
)


@pytest.fixture
def known_entities(mock_patient_repo, mock_doctor_repo, mock_diagnosis_repo):
    mock_patient_repo.get_by_id.return_value = make_patient()
    mock_doctor_repo.get_by_id.return_value = make_doctor()
    mock_diagnosis_repo.get_by_id.return_value = make_diagnosis()


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.visit
class TestVisitServiceCreation:
    """Test visit creation functionality."""

    def test_create_visit_success(self, visit_service, mock_visit_repo, known_entities):
        request = make_create_request(notes="First visit")

        result = visit_service.create_visit(request)

        assert isinstance(result, VisitResponse)
        assert result.id == 1
        assert result.status == VisitStatus.SCHEDULED.value
        assert (result.visit_date, result.visit_time) == (VISIT_DATE, VISIT_TIME)
        assert (result.patient_id, result.doctor_id, result.diagnosis_id) == (1, 10, 100)
        assert result.notes == "First visit"
        assert result.treatment is None
        assert result.sick_leave_issued is False
        mock_visit_repo.find_by_doctor_and_date_time.assert_called_once_with(
            10, VISIT_DATE, VISIT_TIME
        )
        mock_visit_repo.save.assert_called_once()

    def test_create_visit_with_children(self, visit_service, mock_visit_repo, known_entities):
        request = make_create_request(
            treatment=make_treatment_request(), sick_leave=make_sick_leave_request()
        )

        result = visit_service.create_visit(request)

        saved_visit = mock_visit_repo.save.call_args[0][0]
        assert saved_visit.treatment.visit is saved_visit
        assert [m.name for m in saved_visit.treatment.medicines] == [
            "Paracetamol",
            "Vitamin C",
        ]
        assert result.sick_leave_issued is True
        assert result.sick_leave.duration_days == 5
        assert [m.name for m in result.treatment.medicines] == ["Paracetamol", "Vitamin C"]

    def test_create_visit_none_request(self, visit_service, mock_visit_repo):
        with pytest.raises(InvalidRequestError):
            visit_service.create_visit(None)
        mock_visit_repo.save.assert_not_called()

    def test_create_visit_invalid_request(self, visit_service, mock_patient_repo):
        with pytest.raises(InvalidRequestError, match="Visit date"):
            visit_service.create_visit(make_create_request(visit_date=None))
        mock_patient_repo.get_by_id.assert_not_called()

    def test_create_visit_invalid_sick_leave(self, visit_service):
        request = make_create_request(sick_leave=make_sick_leave_request(duration_days=0))

        with pytest.raises(InvalidRequestError, match="at least 1 day"):
            visit_service.create_visit(request)

    @pytest.mark.parametrize(
        "missing,entity",
        [("patient", "Patient"), ("doctor", "Doctor"), ("diagnosis", "Diagnosis")],
    )
    def test_create_visit_missing_reference(
        self,
        visit_service,
        mock_visit_repo,
        mock_patient_repo,
        mock_doctor_repo,
        mock_diagnosis_repo,
        known_entities,
        missing,
        entity,
    ):
        repos = {
            "patient": mock_patient_repo,
            "doctor": mock_doctor_repo,
            "diagnosis": mock_diagnosis_repo,
        }
        repos[missing].get_by_id.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            visit_service.create_visit(make_create_request())

        assert exc_info.value.entity == entity
        assert f"{entity} not found with ID" in exc_info.value.message
        mock_visit_repo.save.assert_not_called()

    def test_create_visit_ineligible_patient(
        self, visit_service, mock_visit_repo, mock_patient_repo, known_entities
    ):
        mock_patient_repo.get_by_id.return_value = make_patient(
            last_insurance_payment_date=date(2023, 1, 1)
        )

        with pytest.raises(IneligiblePatientError):
            visit_service.create_visit(make_create_request())
        mock_visit_repo.save.assert_not_called()

    def test_create_visit_slot_taken(self, visit_service, mock_visit_repo, known_entities):
        mock_visit_repo.find_by_doctor_and_date_time.return_value = make_visit(id=9)

        with pytest.raises(SlotAlreadyBookedError):
            visit_service.create_visit(make_create_request())
        mock_visit_repo.save.assert_not_called()

    def test_create_visit_by_owning_doctor(self, visit_service, known_entities):
        caller = CallerContext.of("doctor-sub-10", [ROLE_DOCTOR])

        result = visit_service.create_visit(make_create_request(), caller)

        assert result.doctor_id == 10

    def test_create_visit_by_admin_for_any_doctor(self, visit_service, known_entities):
        caller = CallerContext.of("admin-sub", [ROLE_ADMIN])

        assert visit_service.create_visit(make_create_request(), caller).id == 1

    def test_create_visit_by_other_doctor_denied(
        self, visit_service, mock_visit_repo, known_entities
    ):
        caller = CallerContext.of("doctor-sub-99", [ROLE_DOCTOR])

        with pytest.raises(AccessDeniedError):
            visit_service.create_visit(make_create_request(), caller)
        mock_visit_repo.save.assert_not_called()

    def test_slot_taken_at_commit_propagates(
        self, visit_service, mock_visit_repo, known_entities
    ):
        mock_visit_repo.save.side_effect = SlotAlreadyBookedError(VISIT_DATE, VISIT_TIME)

        with pytest.raises(SlotAlreadyBookedError):
            visit_service.create_visit(make_create_request())
