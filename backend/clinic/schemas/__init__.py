"""
Schemas package - Data Transfer Objects and validation.

This package contains DTOs that define the API contracts
and handle request validation.
"""

from .dtos import (
    MedicineRequest,
    MedicineResponse,
    PatientVisitScheduleRequest,
    SickLeaveRequest,
    SickLeaveResponse,
    TreatmentRequest,
    TreatmentResponse,
    VisitCreateRequest,
    VisitDocumentationRequest,
    VisitResponse,
    VisitUpdateRequest,
)

__all__ = [
    # Child payloads
    "MedicineRequest",
    "TreatmentRequest",
    "SickLeaveRequest",
    # Visit requests
    "VisitCreateRequest",
    "VisitUpdateRequest",
    "PatientVisitScheduleRequest",
    "VisitDocumentationRequest",
    # Responses
    "VisitResponse",
    "TreatmentResponse",
    "MedicineResponse",
    "SickLeaveResponse",
]
