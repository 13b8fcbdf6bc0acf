"""
Abstract repository interfaces, split into read and write contracts.

Services depend on these ABCs only; the SQLAlchemy implementations live in
clinic.repositories and tests substitute Mock(spec=...) doubles.
"""

from abc import ABC, abstractmethod
from datetime import date, time
from typing import Optional

from clinic.core.pagination import Page, PageRequest

from .entities import Diagnosis, Doctor, Patient, Visit, VisitStatus


class IPatientReader(ABC):
    """Interface for patient read operations."""

    @abstractmethod
    def get_by_id(self, patient_id: int) -> Optional[Patient]:
        """Get patient by ID."""
        pass


class IDoctorReader(ABC):
    """Interface for doctor read operations."""

    @abstractmethod
    def get_by_id(self, doctor_id: int) -> Optional[Doctor]:
        """Get doctor by ID."""
        pass


class IDiagnosisReader(ABC):
    """Interface for diagnosis read operations."""

    @abstractmethod
    def get_by_id(self, diagnosis_id: int) -> Optional[Diagnosis]:
        """Get diagnosis by ID."""
        pass


class IVisitReader(ABC):
    """Interface for visit read operations."""

    @abstractmethod
    def get_by_id(self, visit_id: int) -> Optional[Visit]:
        """Get visit by ID, with its treatment and sick leave loaded."""
        pass

    @abstractmethod
    def find_by_doctor_and_date_time(
        self, doctor_id: int, visit_date: date, visit_time: time
    ) -> Optional[Visit]:
        """Get the visit occupying a doctor's slot, regardless of status."""
        pass

    @abstractmethod
    def exists_by_id(self, visit_id: int) -> bool:
        pass

    @abstractmethod
    def find_all(self, page_request: PageRequest) -> Page[Visit]:
        pass

    @abstractmethod
    def find_by_patient_or_doctor_filter(
        self, pattern: str, page_request: PageRequest
    ) -> Page[Visit]:
        """Visits whose patient or doctor name/identifier matches `pattern` (SQL LIKE)."""
        pass

    @abstractmethod
    def find_by_patient(self, patient_id: int, page_request: PageRequest) -> Page[Visit]:
        pass

    @abstractmethod
    def find_by_diagnosis(
        self, diagnosis_id: int, page_request: PageRequest
    ) -> Page[Visit]:
        pass

    @abstractmethod
    def find_by_date_range(
        self, start: date, end: date, page_request: PageRequest
    ) -> Page[Visit]:
        """Visits with start <= visit_date <= end."""
        pass

    @abstractmethod
    def find_by_doctor_status_and_date_range(
        self,
        doctor_id: int,
        status: VisitStatus,
        start: date,
        end: date,
        page_request: PageRequest,
    ) -> Page[Visit]:
        """Doctor's visits in a status and date range, ordered by date then time."""
        pass

    @abstractmethod
    def find_by_doctor_and_date_range(
        self, doctor_id: int, start: date, end: date, page_request: PageRequest
    ) -> Page[Visit]:
        """Doctor's visits of any status with start <= visit_date <= end."""
        pass


class IVisitWriter(ABC):
    """Interface for visit write operations."""

    @abstractmethod
    def save(self, visit: Visit) -> Visit:
        """Insert or update a visit together with its children.

        Raises SlotAlreadyBookedError when the (doctor, date, time) slot is
        taken at commit time.
        """
        pass

    @abstractmethod
    def delete_by_id(self, visit_id: int) -> bool:
        """Delete a visit and its children."""
        pass


class IVisitRepository(IVisitReader, IVisitWriter):
    """Complete visit repository interface."""

    pass
