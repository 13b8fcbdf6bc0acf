from .diagnosis_repo import DiagnosisRepository
from .doctor_repo import DoctorRepository
from .patient_repo import PatientRepository
from .visit_repo import VisitRepository

__all__ = [
    "DiagnosisRepository",
    "DoctorRepository",
    "PatientRepository",
    "VisitRepository",
]
