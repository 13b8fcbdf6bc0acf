"""
Visit repository implementation backed by SQLAlchemy.
"""

import logging
from datetime import date, time
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased, joinedload, selectinload

from clinic.core.exceptions import (
    InvalidRequestError,
    NotFoundError,
    SlotAlreadyBookedError,
)
from clinic.core.pagination import LIKE_ESCAPE, Page, PageRequest
from clinic.db.base import Doctor as DbDoctor
from clinic.db.base import Medicine as DbMedicine
from clinic.db.base import Patient as DbPatient
from clinic.db.base import SickLeave as DbSickLeave
from clinic.db.base import Treatment as DbTreatment
from clinic.db.base import Visit as DbVisit
from clinic.domain.entities import VISIT_SORT_FIELDS, Medicine, SickLeave, Treatment
from clinic.domain.entities import Visit as DomainVisit
from clinic.domain.entities import VisitStatus
from clinic.domain.interfaces import IVisitRepository

from .diagnosis_repo import DiagnosisRepository
from .doctor_repo import DoctorRepository
from .patient_repo import PatientRepository

logger = logging.getLogger(__name__)

SLOT_CONSTRAINT_NAME = "uq_visits_doctor_slot"


def _is_slot_violation(error: IntegrityError) -> bool:
    message = str(error.orig)
    # PostgreSQL reports the constraint name, SQLite the column list
    return SLOT_CONSTRAINT_NAME in message or (
        "visits.doctor_id" in message and "visits.visit_time" in message
    )


class VisitRepository(IVisitRepository):
    """Repository for Visit persistence operations.

    Visits are loaded together with their patient, doctor, diagnosis,
    treatment (with medicines) and sick leave, and returned as domain
    aggregates. `save` commits; a failed commit is rolled back.
    """

    def __init__(self, db_session) -> None:
        self.db = db_session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _load_options():
        return (
            joinedload(DbVisit.patient),
            joinedload(DbVisit.doctor),
            joinedload(DbVisit.diagnosis),
            selectinload(DbVisit.treatment).selectinload(DbTreatment.medicines),
            selectinload(DbVisit.sick_leave),
        )

    def _base_query(self):
        return self.db.query(DbVisit).options(*self._load_options())

    def get_by_id(self, visit_id: int) -> Optional[DomainVisit]:
        db_visit = self._base_query().filter(DbVisit.id == visit_id).first()
        return self._to_domain(db_visit) if db_visit else None

    def find_by_doctor_and_date_time(
        self, doctor_id: int, visit_date: date, visit_time: time
    ) -> Optional[DomainVisit]:
        db_visit = (
            self._base_query()
            .filter(
                DbVisit.doctor_id == doctor_id,
                DbVisit.visit_date == visit_date,
                DbVisit.visit_time == visit_time,
            )
            .first()
        )
        return self._to_domain(db_visit) if db_visit else None

    def exists_by_id(self, visit_id: int) -> bool:
        return (
            self.db.query(DbVisit.id).filter(DbVisit.id == visit_id).first()
            is not None
        )

    def find_all(self, page_request: PageRequest) -> Page[DomainVisit]:
        return self._page(self.db.query(DbVisit), page_request)

    def find_by_patient_or_doctor_filter(
        self, pattern: str, page_request: PageRequest
    ) -> Page[DomainVisit]:
        patient = aliased(DbPatient)
        doctor = aliased(DbDoctor)
        columns = (patient.name, patient.egn, doctor.name, doctor.unique_id_number)
        query = (
            self.db.query(DbVisit)
            .join(patient, DbVisit.patient_id == patient.id)
            .join(doctor, DbVisit.doctor_id == doctor.id)
            .filter(
                or_(
                    *(
                        func.lower(column).like(pattern, escape=LIKE_ESCAPE)
                        for column in columns
                    )
                )
            )
        )
        return self._page(query, page_request)

    def find_by_patient(
        self, patient_id: int, page_request: PageRequest
    ) -> Page[DomainVisit]:
        query = self.db.query(DbVisit).filter(DbVisit.patient_id == patient_id)
        return self._page(query, page_request)

    def find_by_diagnosis(
        self, diagnosis_id: int, page_request: PageRequest
    ) -> Page[DomainVisit]:
        query = self.db.query(DbVisit).filter(DbVisit.diagnosis_id == diagnosis_id)
        return self._page(query, page_request)

    def find_by_date_range(
        self, start: date, end: date, page_request: PageRequest
    ) -> Page[DomainVisit]:
        query = self.db.query(DbVisit).filter(DbVisit.visit_date.between(start, end))
        return self._page(query, page_request)

    def find_by_doctor_status_and_date_range(
        self,
        doctor_id: int,
        status: VisitStatus,
        start: date,
        end: date,
        page_request: PageRequest,
    ) -> Page[DomainVisit]:
        query = self.db.query(DbVisit).filter(
            DbVisit.doctor_id == doctor_id,
            DbVisit.status == VisitStatus(status).value,
            DbVisit.visit_date.between(start, end),
        )
        # Oldest first regardless of the requested sort
        ordering = (DbVisit.visit_date.asc(), DbVisit.visit_time.asc())
        return self._page(query, page_request, ordering)

    def find_by_doctor_and_date_range(
        self, doctor_id: int, start: date, end: date, page_request: PageRequest
    ) -> Page[DomainVisit]:
        query = self.db.query(DbVisit).filter(
            DbVisit.doctor_id == doctor_id,
            DbVisit.visit_date.between(start, end),
        )
        return self._page(query, page_request)

    def _page(
        self, query, page_request: PageRequest, ordering=None
    ) -> Page[DomainVisit]:
        if ordering is None:
            if page_request.sort_field not in VISIT_SORT_FIELDS:
                raise InvalidRequestError(
                    f"Cannot sort visits by '{page_request.sort_field}'"
                )
            column = getattr(DbVisit, page_request.sort_field)
            ordering = (column.asc() if page_request.ascending else column.desc(),)

        total = query.count()
        rows = (
            query.options(*self._load_options())
            .order_by(*ordering, DbVisit.id)
            .offset(page_request.offset)
            .limit(page_request.limit)
            .all()
        )
        return Page(
            items=[self._to_domain(row) for row in rows],
            total=total,
            page_index=page_request.page_index,
            page_size=page_request.page_size,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, visit: DomainVisit) -> DomainVisit:
        """Insert or update a visit and replace its children to match."""
        if visit.id is None:
            db_visit = DbVisit()
            self.db.add(db_visit)
        else:
            db_visit = self.db.query(DbVisit).filter_by(id=visit.id).first()
            if db_visit is None:
                raise NotFoundError("Visit", visit.id)

        db_visit.visit_date = visit.visit_date
        db_visit.visit_time = visit.visit_time
        db_visit.status = visit.status.value
        db_visit.notes = visit.notes
        db_visit.patient_id = visit.patient.id
        db_visit.doctor_id = visit.doctor.id
        db_visit.diagnosis_id = visit.diagnosis.id if visit.diagnosis else None

        try:
            self._sync_children(db_visit, visit)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_slot_violation(e):
                logger.warning(
                    "Slot taken at commit time",
                    extra={
                        "context": {
                            "doctor_id": visit.doctor.id,
                            "visit_date": visit.visit_date,
                            "visit_time": visit.visit_time,
                        }
                    },
                )
                raise SlotAlreadyBookedError(visit.visit_date, visit.visit_time) from e
            logger.error(
                "Failed to save visit",
                extra={"context": {"visit_id": visit.id, "error": str(e)}},
                exc_info=True,
            )
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(db_visit)
        return self._to_domain(db_visit)

    def _sync_children(self, db_visit: DbVisit, visit: DomainVisit) -> None:
        # Children keep their rows only while the domain aggregate still
        # holds the same child; anything rebuilt gets fresh rows.
        current_treatment = db_visit.treatment
        if visit.treatment is None:
            db_visit.treatment = None
        elif current_treatment is None or current_treatment.id != visit.treatment.id:
            if current_treatment is not None:
                db_visit.treatment = None
                self.db.flush()
            db_visit.treatment = DbTreatment(
                description=visit.treatment.description,
                medicines=[
                    DbMedicine(
                        name=m.name,
                        dosage=m.dosage,
                        frequency=m.frequency,
                        position=position,
                    )
                    for position, m in enumerate(visit.treatment.medicines)
                ],
            )

        current_sick_leave = db_visit.sick_leave
        if visit.sick_leave is None:
            db_visit.sick_leave = None
        elif current_sick_leave is None or current_sick_leave.id != visit.sick_leave.id:
            if current_sick_leave is not None:
                db_visit.sick_leave = None
                self.db.flush()
            db_visit.sick_leave = DbSickLeave(
                start_date=visit.sick_leave.start_date,
                duration_days=visit.sick_leave.duration_days,
            )

    def delete_by_id(self, visit_id: int) -> bool:
        db_visit = self.db.query(DbVisit).filter_by(id=visit_id).first()
        if db_visit is None:
            return False
        try:
            self.db.delete(db_visit)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return True

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _to_domain(self, db_visit: DbVisit) -> DomainVisit:
        """Convert database model to domain aggregate."""
        visit = DomainVisit(
            id=db_visit.id,
            visit_date=db_visit.visit_date,
            visit_time=db_visit.visit_time,
            status=VisitStatus(db_visit.status),
            patient=PatientRepository._to_domain(db_visit.patient),
            doctor=DoctorRepository._to_domain(db_visit.doctor),
            diagnosis=(
                DiagnosisRepository._to_domain(db_visit.diagnosis)
                if db_visit.diagnosis
                else None
            ),
            notes=db_visit.notes,
        )

        if db_visit.treatment is not None:
            treatment = Treatment(
                id=db_visit.treatment.id,
                description=db_visit.treatment.description,
                visit=visit,
            )
            treatment.medicines = [
                Medicine(
                    id=m.id,
                    name=m.name,
                    dosage=m.dosage,
                    frequency=m.frequency,
                    treatment=treatment,
                )
                for m in db_visit.treatment.medicines
            ]
            visit.treatment = treatment

        if db_visit.sick_leave is not None:
            visit.sick_leave = SickLeave(
                id=db_visit.sick_leave.id,
                start_date=db_visit.sick_leave.start_date,
                duration_days=db_visit.sick_leave.duration_days,
                visit=visit,
            )

        return visit
