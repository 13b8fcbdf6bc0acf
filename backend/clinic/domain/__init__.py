"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Visit aggregate and the entities it references
- interfaces.py: Repository contracts
"""

from .entities import (
    Diagnosis,
    Doctor,
    Medicine,
    Patient,
    SickLeave,
    Treatment,
    Visit,
    VisitStatus,
)
from .interfaces import (
    IDiagnosisReader,
    IDoctorReader,
    IPatientReader,
    IVisitReader,
    IVisitRepository,
    IVisitWriter,
)

__all__ = [
    # Domain entities
    "Patient",
    "Doctor",
    "Diagnosis",
    "Medicine",
    "Treatment",
    "SickLeave",
    "Visit",
    "VisitStatus",
    # Repository interfaces
    "IPatientReader",
    "IDoctorReader",
    "IDiagnosisReader",
    "IVisitRepository",
    # Segregated interfaces
    "IVisitReader",
    "IVisitWriter",
]
