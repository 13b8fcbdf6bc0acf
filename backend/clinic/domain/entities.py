"""
Domain entities - Pure business logic, no framework dependencies.

A Visit is the aggregate root: it exclusively owns at most one Treatment
(which owns its Medicines) and at most one SickLeave. Patients, doctors and
diagnoses are referenced, never owned.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import List, Optional


# Fields a visit listing may be ordered by
VISIT_SORT_FIELDS = ("id", "visit_date", "visit_time", "status")


class VisitStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    CANCELLED_BY_PATIENT = "CANCELLED_BY_PATIENT"


@dataclass
class Patient:
    """Domain entity representing a Patient.

    `external_id` is the identity-provider subject of the patient's account;
    row-level access compares it with the caller's principal id.
    """

    id: Optional[int] = None
    name: str = ""
    egn: str = ""
    external_id: Optional[str] = None
    last_insurance_payment_date: Optional[date] = None
    general_practitioner_id: Optional[int] = None

    def __post_init__(self):
        """Validate domain rules."""
        if not self.name:
            raise ValueError("Name is required")


@dataclass
class Doctor:
    """Domain entity representing a Doctor."""

    id: Optional[int] = None
    name: str = ""
    unique_id_number: str = ""
    is_general_practitioner: bool = False
    external_id: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Name is required")


@dataclass
class Diagnosis:
    id: Optional[int] = None
    name: str = ""
    description: Optional[str] = None


@dataclass
class Medicine:
    """A single prescribed medicine, owned by a Treatment."""

    id: Optional[int] = None
    name: str = ""
    dosage: str = ""
    frequency: str = ""
    treatment: Optional["Treatment"] = field(default=None, repr=False, compare=False)


@dataclass
class Treatment:
    """Treatment prescribed during a Visit, with its ordered medicines."""

    id: Optional[int] = None
    description: str = ""
    medicines: List[Medicine] = field(default_factory=list)
    visit: Optional["Visit"] = field(default=None, repr=False, compare=False)


@dataclass
class SickLeave:
    """Sick leave issued during a Visit."""

    id: Optional[int] = None
    start_date: Optional[date] = None
    duration_days: int = 0
    visit: Optional["Visit"] = field(default=None, repr=False, compare=False)


@dataclass
class Visit:
    """Domain entity for a Visit between a patient and a doctor.

    No two visits may share (doctor, visit_date, visit_time). The children
    (`treatment`, `sick_leave`) are replaced wholesale, never merged.
    """

    id: Optional[int] = None
    visit_date: Optional[date] = None
    visit_time: Optional[time] = None
    status: VisitStatus = VisitStatus.SCHEDULED
    patient: Optional[Patient] = None
    doctor: Optional[Doctor] = None
    diagnosis: Optional[Diagnosis] = None
    notes: Optional[str] = None
    treatment: Optional[Treatment] = None
    sick_leave: Optional[SickLeave] = None

    def __post_init__(self):
        """Validate business rules."""
        if self.visit_date is None:
            raise ValueError("Visit date is required")
        if self.visit_time is None:
            raise ValueError("Visit time is required")
        if self.patient is None:
            raise ValueError("Patient is required")
        if self.doctor is None:
            raise ValueError("Doctor is required")
        if not isinstance(self.status, VisitStatus):
            self.status = VisitStatus(self.status)

    @property
    def sick_leave_issued(self) -> bool:
        return self.sick_leave is not None

    @property
    def is_scheduled(self) -> bool:
        return self.status == VisitStatus.SCHEDULED
