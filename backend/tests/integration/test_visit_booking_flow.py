"""
End-to-end visit workflows through VisitService and the SQLAlchemy
repositories on in-memory SQLite.
"""

from datetime import date, time

import pytest

from clinic.core.exceptions import (
    AccessDeniedError,
    IneligiblePatientError,
    InvalidVisitStateError,
    SlotAlreadyBookedError,
)
from clinic.core.security import ROLE_DOCTOR, ROLE_PATIENT, CallerContext
from clinic.db.base import Medicine as DbMedicine
from clinic.repositories import (
    DiagnosisRepository,
    DoctorRepository,
    PatientRepository,
    VisitRepository,
)
from clinic.schemas.dtos import (
    PatientVisitScheduleRequest,
    VisitCreateRequest,
    VisitDocumentationRequest,
    VisitUpdateRequest,
)
from clinic.services.scheduling import SchedulingRule
from clinic.services.visit_service import VisitService
from tests.factories.domain_factories import (
    make_sick_leave_request,
    make_treatment_request,
)

# Cutoff for six months of insurance is 2023-12-15
CLINIC_TODAY = date(2024, 6, 15)
SLOT_DATE = date(2024, 6, 20)

DOCTOR_CALLER = CallerContext.of("doctor-sub-10", [ROLE_DOCTOR])
PATIENT_CALLER = CallerContext.of("patient-sub-1", [ROLE_PATIENT])


@pytest.fixture
def service(db_session, clinic_rows, list_executor):
    visit_repo = VisitRepository(db_session)
    return VisitService(
        visit_repo=visit_repo,
        patient_repo=PatientRepository(db_session),
        doctor_repo=DoctorRepository(db_session),
        diagnosis_repo=DiagnosisRepository(db_session),
        scheduling_rule=SchedulingRule(visit_repo, clock=lambda: CLINIC_TODAY),
        executor=list_executor,
    )


def create_request(rows, **overrides):
    fields = dict(
        visit_date=SLOT_DATE,
        visit_time=time(10, 0),
        patient_id=rows.patient_id,
        doctor_id=rows.doctor_id,
        diagnosis_id=rows.flu_id,
    )
    fields.update(overrides)
    return VisitCreateRequest(**fields)


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.visit
class TestVisitBookingFlow:
    def test_slot_is_booked_once(self, service, clinic_rows):
        first = service.create_visit(create_request(clinic_rows), DOCTOR_CALLER)

        with pytest.raises(SlotAlreadyBookedError):
            service.create_visit(create_request(clinic_rows), DOCTOR_CALLER)

        # Same time with another doctor is fine
        other = service.create_visit(
            create_request(clinic_rows, doctor_id=clinic_rows.other_doctor_id)
        )
        assert other.id != first.id

    def test_update_keeps_own_slot_and_replaces_children(
        self, service, clinic_rows, db_session
    ):
        created = service.create_visit(
            create_request(clinic_rows, treatment=make_treatment_request()),
            DOCTOR_CALLER,
        )

        updated = service.update_visit(
            VisitUpdateRequest(
                id=created.id,
                visit_date=SLOT_DATE,
                visit_time=time(10, 0),
                patient_id=clinic_rows.patient_id,
                doctor_id=clinic_rows.doctor_id,
                diagnosis_id=clinic_rows.angina_id,
                sick_leave=make_sick_leave_request(start_date=SLOT_DATE),
            ),
            DOCTOR_CALLER,
        )

        assert updated.diagnosis_id == clinic_rows.angina_id
        assert updated.treatment is None
        assert updated.sick_leave_issued is True
        assert db_session.query(DbMedicine).count() == 0

    def test_update_into_taken_slot(self, service, clinic_rows):
        service.create_visit(create_request(clinic_rows))
        second = service.create_visit(create_request(clinic_rows, visit_time=time(11, 0)))

        with pytest.raises(SlotAlreadyBookedError):
            service.update_visit(
                VisitUpdateRequest(
                    id=second.id,
                    visit_date=SLOT_DATE,
                    visit_time=time(10, 0),
                    patient_id=clinic_rows.patient_id,
                    doctor_id=clinic_rows.doctor_id,
                    diagnosis_id=clinic_rows.flu_id,
                )
            )

    def test_lapsed_insurance_is_rejected(self, service, clinic_rows):
        with pytest.raises(IneligiblePatientError):
            service.create_visit(
                create_request(clinic_rows, patient_id=clinic_rows.other_patient_id)
            )

    def test_list_futures_see_saved_visits(self, service, clinic_rows):
        created = service.create_visit(create_request(clinic_rows))

        page = service.get_visits(0, 10, "visit_date", True, "petrov").result(timeout=5)
        by_range = service.get_visits_by_date_range(
            date(2024, 6, 1), date(2024, 6, 30), 0, 10
        ).result(timeout=5)
        by_doctor = service.get_visits_by_doctor_status_and_date_range(
            clinic_rows.doctor_id, "SCHEDULED", date(2024, 6, 1), date(2024, 6, 30), 0, 10
        ).result(timeout=5)

        assert [v.id for v in page.items] == [created.id]
        assert by_range.total == 1
        assert by_doctor.total == 1

    def test_patient_schedules_then_doctor_documents(self, service, clinic_rows):
        scheduled = service.schedule_visit_for_patient(
            PatientVisitScheduleRequest(
                patient_id=clinic_rows.patient_id,
                doctor_id=clinic_rows.doctor_id,
                visit_date=SLOT_DATE,
                visit_time=time(9, 30),
            ),
            PATIENT_CALLER,
        )
        assert scheduled.status == "SCHEDULED"
        assert scheduled.diagnosis_id is None

        documented = service.document_visit(
            scheduled.id,
            VisitDocumentationRequest(
                notes="Sore throat",
                diagnosis_id=clinic_rows.angina_id,
                treatment=make_treatment_request(),
            ),
            DOCTOR_CALLER,
        )

        assert documented.status == "COMPLETED"
        assert documented.notes == "Sore throat"
        assert [m.name for m in documented.treatment.medicines] == [
            "Paracetamol",
            "Vitamin C",
        ]
        with pytest.raises(InvalidVisitStateError):
            service.cancel_visit(scheduled.id, PATIENT_CALLER)

    def test_patient_cancels_own_visit_only(self, service, clinic_rows):
        mine = service.create_visit(create_request(clinic_rows))

        with pytest.raises(AccessDeniedError):
            service.cancel_visit(
                mine.id, CallerContext.of("patient-sub-2", [ROLE_PATIENT])
            )

        cancelled = service.cancel_visit(mine.id, PATIENT_CALLER)
        assert cancelled.status == "CANCELLED_BY_PATIENT"
        assert service.get_visit(mine.id).status == "CANCELLED_BY_PATIENT"

    def test_delete_visit(self, service, clinic_rows):
        created = service.create_visit(
            create_request(clinic_rows, sick_leave=make_sick_leave_request())
        )

        service.delete_visit(created.id)

        page = service.get_visits(0, 10, "id", True, None).result(timeout=5)
        assert page.total == 0
