"""
Visit service: create/update/delete/get/list workflows for visits.
"""

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import date
from typing import Callable, Optional

from clinic.core import config
from clinic.core.exceptions import (
    AccessDeniedError,
    InvalidRequestError,
    InvalidVisitStateError,
    NotFoundError,
)
from clinic.core.logging_config import log_performance
from clinic.core.pagination import (
    Page,
    PageRequest,
    build_page_request,
    filter_pattern,
    is_blank_filter,
)
from clinic.core.security import ROLE_DOCTOR, CallerContext
from clinic.domain.entities import (
    VISIT_SORT_FIELDS,
    Diagnosis,
    Doctor,
    Patient,
    Visit,
    VisitStatus,
)
from clinic.domain.interfaces import (
    IDiagnosisReader,
    IDoctorReader,
    IPatientReader,
    IVisitRepository,
)
from clinic.schemas.dtos import (
    PatientVisitScheduleRequest,
    VisitCreateRequest,
    VisitDocumentationRequest,
    VisitResponse,
    VisitUpdateRequest,
)
from clinic.services.clinical_aggregate import rebuild_children
from clinic.services.scheduling import SchedulingRule

logger = logging.getLogger(__name__)

DEFAULT_SORT_FIELD = "visit_date"

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def get_list_executor() -> ThreadPoolExecutor:
    """Shared worker pool for list queries, created on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=config.LIST_WORKER_THREADS,
                thread_name_prefix="visit-list",
            )
        return _executor


class VisitService:
    """Application service for visit-related use-cases.

    Depends on repository interfaces only. Every operation that takes a
    `CallerContext` uses it for authorization; none of them read request
    globals. List operations validate synchronously and return a Future.
    """

    def __init__(
        self,
        visit_repo: IVisitRepository,
        patient_repo: IPatientReader,
        doctor_repo: IDoctorReader,
        diagnosis_repo: IDiagnosisReader,
        scheduling_rule: Optional[SchedulingRule] = None,
        executor: Optional[Executor] = None,
    ):
        self.visit_repo = visit_repo
        self.patient_repo = patient_repo
        self.doctor_repo = doctor_repo
        self.diagnosis_repo = diagnosis_repo
        self.scheduling_rule = scheduling_rule or SchedulingRule(visit_repo)
        self.executor = executor or get_list_executor()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_visit(
        self, request: VisitCreateRequest, caller: Optional[CallerContext] = None
    ) -> VisitResponse:
        """Create a new SCHEDULED visit with its treatment and sick leave.

        Business Rules:
        - Patient, doctor and diagnosis must exist
        - A calling doctor may only book for themselves (admins may book any)
        - Patient insurance must be valid and the doctor's slot free
        """
        if request is None:
            raise InvalidRequestError("Visit data is required")
        request.validate()

        logger.debug(
            "Creating visit",
            extra={
                "context": {
                    "patient_id": request.patient_id,
                    "doctor_id": request.doctor_id,
                    "visit_date": request.visit_date,
                    "visit_time": request.visit_time,
                }
            },
        )

        patient = self._get_patient(request.patient_id)
        doctor = self._get_doctor(request.doctor_id)
        if caller is not None:
            self._ensure_doctor_ownership(caller, doctor)
        diagnosis = self._get_diagnosis(request.diagnosis_id)

        self.scheduling_rule.validate(
            patient, doctor, request.visit_date, request.visit_time
        )

        visit = Visit(
            visit_date=request.visit_date,
            visit_time=request.visit_time,
            status=VisitStatus.SCHEDULED,
            patient=patient,
            doctor=doctor,
            diagnosis=diagnosis,
            notes=request.notes,
        )
        rebuild_children(visit, request.treatment, request.sick_leave)

        saved = self.visit_repo.save(visit)
        logger.info(
            "Visit created",
            extra={
                "context": {
                    "visit_id": saved.id,
                    "patient_id": patient.id,
                    "doctor_id": doctor.id,
                }
            },
        )
        return VisitResponse.from_domain(saved)

    def update_visit(
        self, request: VisitUpdateRequest, caller: Optional[CallerContext] = None
    ) -> VisitResponse:
        """Update a visit, replacing its children with the request's.

        The visit may keep its own slot; omitting treatment or sick leave
        removes them.
        """
        if request is None or request.id is None:
            raise InvalidRequestError("Visit ID is required for update")
        request.validate()

        visit = self._get_visit(request.id)

        patient = self._get_patient(request.patient_id)
        doctor = self._get_doctor(request.doctor_id)
        if caller is not None:
            self._ensure_doctor_ownership(caller, visit.doctor)
            self._ensure_doctor_ownership(caller, doctor)
        diagnosis = self._get_diagnosis(request.diagnosis_id)

        self.scheduling_rule.validate(
            patient,
            doctor,
            request.visit_date,
            request.visit_time,
            existing_visit_id=visit.id,
        )

        visit.visit_date = request.visit_date
        visit.visit_time = request.visit_time
        visit.patient = patient
        visit.doctor = doctor
        visit.diagnosis = diagnosis
        visit.notes = request.notes
        rebuild_children(visit, request.treatment, request.sick_leave)

        saved = self.visit_repo.save(visit)
        logger.info("Visit updated", extra={"context": {"visit_id": saved.id}})
        return VisitResponse.from_domain(saved)

    def delete_visit(self, visit_id: int) -> None:
        """Delete a visit and everything it owns."""
        if visit_id is None:
            raise InvalidRequestError("Visit ID is required")
        if not self.visit_repo.exists_by_id(visit_id):
            logger.warning(
                "Delete requested for missing visit",
                extra={"context": {"visit_id": visit_id}},
            )
            raise NotFoundError("Visit", visit_id)

        self.visit_repo.delete_by_id(visit_id)
        logger.info("Visit deleted", extra={"context": {"visit_id": visit_id}})

    def schedule_visit_for_patient(
        self, request: PatientVisitScheduleRequest, caller: CallerContext
    ) -> VisitResponse:
        """Book a visit for the calling patient, without diagnosis or children."""
        if request is None:
            raise InvalidRequestError("Visit data is required")
        if caller is None:
            raise AccessDeniedError("Authenticated patient is required")
        request.validate()

        patient = self._get_patient(request.patient_id)
        if not caller.is_admin and patient.external_id != caller.principal_id:
            logger.warning(
                "Patient tried to book for another patient",
                extra={
                    "context": {
                        "principal_id": caller.principal_id,
                        "patient_id": patient.id,
                    }
                },
            )
            raise AccessDeniedError("Patients can only schedule visits for themselves")
        doctor = self._get_doctor(request.doctor_id)

        self.scheduling_rule.validate(
            patient, doctor, request.visit_date, request.visit_time
        )

        visit = Visit(
            visit_date=request.visit_date,
            visit_time=request.visit_time,
            status=VisitStatus.SCHEDULED,
            patient=patient,
            doctor=doctor,
        )
        saved = self.visit_repo.save(visit)
        logger.info(
            "Visit scheduled by patient",
            extra={"context": {"visit_id": saved.id, "patient_id": patient.id}},
        )
        return VisitResponse.from_domain(saved)

    def document_visit(
        self,
        visit_id: int,
        request: VisitDocumentationRequest,
        caller: Optional[CallerContext] = None,
    ) -> VisitResponse:
        """Record the outcome of a SCHEDULED visit and mark it COMPLETED."""
        if visit_id is None:
            raise InvalidRequestError("Visit ID is required")
        if request is None:
            raise InvalidRequestError("Documentation data is required")
        request.validate()

        visit = self._get_visit(visit_id)
        if caller is not None:
            self._ensure_doctor_ownership(caller, visit.doctor)
        if not visit.is_scheduled:
            raise InvalidVisitStateError(
                f"Only scheduled visits can be documented (status: {visit.status.value})"
            )

        if request.diagnosis_id is not None:
            visit.diagnosis = self._get_diagnosis(request.diagnosis_id)
        visit.notes = request.notes
        rebuild_children(visit, request.treatment, request.sick_leave)
        visit.status = VisitStatus.COMPLETED

        saved = self.visit_repo.save(visit)
        logger.info("Visit documented", extra={"context": {"visit_id": saved.id}})
        return VisitResponse.from_domain(saved)

    def cancel_visit(self, visit_id: int, caller: CallerContext) -> VisitResponse:
        """Cancel a SCHEDULED visit.

        A patient may cancel only their own visit (CANCELLED_BY_PATIENT);
        doctors cancel their own visits and admins any (CANCELLED).
        """
        if visit_id is None:
            raise InvalidRequestError("Visit ID is required")
        if caller is None:
            raise AccessDeniedError("Authenticated caller is required")

        visit = self._get_visit(visit_id)
        if caller.is_patient:
            self._ensure_patient_access(caller, visit.patient)
            new_status = VisitStatus.CANCELLED_BY_PATIENT
        else:
            self._ensure_doctor_ownership(caller, visit.doctor)
            new_status = VisitStatus.CANCELLED

        if not visit.is_scheduled:
            raise InvalidVisitStateError(
                f"Only scheduled visits can be cancelled (status: {visit.status.value})"
            )

        visit.status = new_status
        saved = self.visit_repo.save(visit)
        logger.info(
            "Visit cancelled",
            extra={"context": {"visit_id": saved.id, "status": new_status.value}},
        )
        return VisitResponse.from_domain(saved)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_visit(
        self, visit_id: int, caller: Optional[CallerContext] = None
    ) -> VisitResponse:
        """Get one visit; a patient caller only sees their own visits."""
        if visit_id is None:
            raise InvalidRequestError("Visit ID is required")
        visit = self._get_visit(visit_id)
        if caller is not None and caller.is_patient:
            self._ensure_patient_access(caller, visit.patient)
        return VisitResponse.from_domain(visit)

    def get_visits(
        self,
        page_index: int,
        page_size: int,
        sort_field: str = DEFAULT_SORT_FIELD,
        ascending: bool = True,
        filter: Optional[str] = None,
    ) -> "Future[Page[VisitResponse]]":
        """List visits, optionally filtered by patient or doctor text.

        Pagination is validated before dispatch; invalid input raises here,
        not through the returned future.
        """
        page_request = build_page_request(page_index, page_size, sort_field, ascending)
        if page_request.sort_field not in VISIT_SORT_FIELDS:
            raise InvalidRequestError(
                f"Cannot sort visits by '{page_request.sort_field}'"
            )
        if is_blank_filter(filter):
            return self._submit_page(self.visit_repo.find_all, page_request)
        return self._submit_page(
            self.visit_repo.find_by_patient_or_doctor_filter,
            filter_pattern(filter),
            page_request,
        )

    def get_visits_by_patient(
        self,
        patient_id: int,
        page_index: int,
        page_size: int,
        caller: Optional[CallerContext] = None,
    ) -> "Future[Page[VisitResponse]]":
        if patient_id is None:
            raise InvalidRequestError("Patient ID is required")
        page_request = build_page_request(page_index, page_size, DEFAULT_SORT_FIELD)
        patient = self._get_patient(patient_id)
        if caller is not None and caller.is_patient:
            self._ensure_patient_access(caller, patient)
        return self._submit_page(self.visit_repo.find_by_patient, patient.id, page_request)

    def get_visits_by_diagnosis(
        self, diagnosis_id: int, page_index: int, page_size: int
    ) -> "Future[Page[VisitResponse]]":
        if diagnosis_id is None:
            raise InvalidRequestError("Diagnosis ID is required")
        page_request = build_page_request(page_index, page_size, DEFAULT_SORT_FIELD)
        diagnosis = self._get_diagnosis(diagnosis_id)
        return self._submit_page(
            self.visit_repo.find_by_diagnosis, diagnosis.id, page_request
        )

    def get_visits_by_date_range(
        self, start: date, end: date, page_index: int, page_size: int
    ) -> "Future[Page[VisitResponse]]":
        self._validate_date_range(start, end)
        page_request = build_page_request(page_index, page_size, DEFAULT_SORT_FIELD)
        return self._submit_page(
            self.visit_repo.find_by_date_range, start, end, page_request
        )

    def get_visits_by_doctor_status_and_date_range(
        self,
        doctor_id: int,
        status: VisitStatus,
        start: date,
        end: date,
        page_index: int,
        page_size: int,
    ) -> "Future[Page[VisitResponse]]":
        """Doctor's visits with `status` between `start` and `end`, oldest first."""
        if doctor_id is None:
            raise InvalidRequestError("Doctor ID is required")
        if status is None:
            raise InvalidRequestError("Visit status is required")
        try:
            status = VisitStatus(status)
        except ValueError:
            raise InvalidRequestError(f"Unknown visit status: {status}")
        self._validate_date_range(start, end)
        page_request = build_page_request(page_index, page_size, DEFAULT_SORT_FIELD)
        doctor = self._get_doctor(doctor_id)
        return self._submit_page(
            self.visit_repo.find_by_doctor_status_and_date_range,
            doctor.id,
            status,
            start,
            end,
            page_request,
        )

    def get_visits_by_doctor_and_date_range(
        self,
        doctor_id: int,
        start: date,
        end: date,
        page_index: int,
        page_size: int,
    ) -> "Future[Page[VisitResponse]]":
        """Doctor's visits of any status between `start` and `end`."""
        if doctor_id is None:
            raise InvalidRequestError("Doctor ID is required")
        self._validate_date_range(start, end)
        page_request = build_page_request(page_index, page_size, DEFAULT_SORT_FIELD)
        doctor = self._get_doctor(doctor_id)
        return self._submit_page(
            self.visit_repo.find_by_doctor_and_date_range,
            doctor.id,
            start,
            end,
            page_request,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _submit_page(
        self, query: Callable[..., Page[Visit]], *args
    ) -> "Future[Page[VisitResponse]]":
        def run() -> Page[VisitResponse]:
            started = time.perf_counter()
            page = query(*args)
            log_performance(
                getattr(query, "__name__", "visit_query"),
                (time.perf_counter() - started) * 1000,
                returned=len(page.items),
                total=page.total,
            )
            return page.map(VisitResponse.from_domain)

        return self.executor.submit(run)

    @staticmethod
    def _validate_date_range(start: Optional[date], end: Optional[date]) -> None:
        if start is None or end is None:
            raise InvalidRequestError("Start and end dates are required")
        if start > end:
            raise InvalidRequestError("Start date must be before or equal to end date")

    def _get_visit(self, visit_id: int) -> Visit:
        visit = self.visit_repo.get_by_id(visit_id)
        if visit is None:
            raise NotFoundError("Visit", visit_id)
        return visit

    def _get_patient(self, patient_id: int) -> Patient:
        patient = self.patient_repo.get_by_id(patient_id)
        if patient is None:
            raise NotFoundError("Patient", patient_id)
        return patient

    def _get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.doctor_repo.get_by_id(doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor", doctor_id)
        return doctor

    def _get_diagnosis(self, diagnosis_id: int) -> Diagnosis:
        diagnosis = self.diagnosis_repo.get_by_id(diagnosis_id)
        if diagnosis is None:
            raise NotFoundError("Diagnosis", diagnosis_id)
        return diagnosis

    @staticmethod
    def _ensure_patient_access(caller: CallerContext, patient: Patient) -> None:
        if patient.external_id != caller.principal_id:
            logger.warning(
                "Patient denied access to another patient's visits",
                extra={
                    "context": {
                        "principal_id": caller.principal_id,
                        "patient_id": patient.id,
                    }
                },
            )
            raise AccessDeniedError("Patients can only access their own visits")

    @staticmethod
    def _ensure_doctor_ownership(caller: CallerContext, doctor: Doctor) -> None:
        if caller.is_admin:
            return
        if not caller.has_role(ROLE_DOCTOR) or doctor.external_id != caller.principal_id:
            logger.warning(
                "Caller does not own the doctor's visits",
                extra={
                    "context": {
                        "principal_id": caller.principal_id,
                        "doctor_id": doctor.id,
                    }
                },
            )
            raise AccessDeniedError("Doctors can only manage their own visits")
