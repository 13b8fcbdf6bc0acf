"""
Data Transfer Objects (DTOs) and validation schemas.

Request DTOs validate themselves and raise InvalidRequestError; response
DTOs are frozen projections built from domain entities, so callers never
receive live aggregates.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Dict, List, Optional, Tuple

from clinic.core import config
from clinic.core.exceptions import InvalidRequestError


def _parse_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidRequestError(f"Invalid {field_name}: expected YYYY-MM-DD")


def _parse_time(value: Any, field_name: str) -> Optional[time]:
    if value is None or isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise InvalidRequestError(f"Invalid {field_name}: expected HH:MM[:SS]")


def _parse_int(value: Any, field_name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid {field_name}: expected an integer")


def _require_id(value: Optional[int], field_name: str) -> None:
    if value is None or value <= 0:
        raise InvalidRequestError(f"Valid {field_name} is required")


def _require_text(value: Any, message: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(message)


def _require_object(value: Any, field_name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidRequestError(f"Invalid {field_name}: expected an object")
    return value


@dataclass
class MedicineRequest:
    """DTO for one medicine inside a treatment payload."""

    name: str
    dosage: str
    frequency: str

    def validate(self) -> None:
        _require_text(self.name, "Medicine name is required")
        _require_text(self.dosage, "Medicine dosage is required")
        _require_text(self.frequency, "Medicine frequency is required")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MedicineRequest":
        data = _require_object(data, "medicine")
        return cls(
            name=data.get("name", ""),
            dosage=data.get("dosage", ""),
            frequency=data.get("frequency", ""),
        )


@dataclass
class TreatmentRequest:
    """DTO for the desired treatment of a visit."""

    description: str
    medicines: List[MedicineRequest] = field(default_factory=list)

    def validate(self) -> None:
        _require_text(self.description, "Treatment description is required")
        for medicine in self.medicines:
            medicine.validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreatmentRequest":
        data = _require_object(data, "treatment")
        medicines = data.get("medicines")
        if medicines is None:
            medicines = []
        if not isinstance(medicines, list):
            raise InvalidRequestError("Invalid medicines: expected a list")
        return cls(
            description=data.get("description", ""),
            medicines=[MedicineRequest.from_dict(m) for m in medicines],
        )


@dataclass
class SickLeaveRequest:
    """DTO for the desired sick leave of a visit."""

    start_date: Optional[date]
    duration_days: int

    def validate(self) -> None:
        if self.start_date is None:
            raise InvalidRequestError("Sick leave start date is required")
        if self.duration_days is None or self.duration_days < 1:
            raise InvalidRequestError("Sick leave duration must be at least 1 day")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SickLeaveRequest":
        data = _require_object(data, "sick_leave")
        return cls(
            start_date=_parse_date(data.get("start_date"), "start_date"),
            duration_days=_parse_int(data.get("duration_days"), "duration_days"),
        )


def _children_from_dict(
    data: Dict[str, Any],
) -> Tuple[Optional[TreatmentRequest], Optional[SickLeaveRequest]]:
    treatment = data.get("treatment")
    sick_leave = data.get("sick_leave")
    return (
        TreatmentRequest.from_dict(treatment) if treatment is not None else None,
        SickLeaveRequest.from_dict(sick_leave) if sick_leave is not None else None,
    )


@dataclass
class VisitCreateRequest:
    """DTO for visit creation requests."""

    visit_date: Optional[date]
    visit_time: Optional[time]
    patient_id: Optional[int]
    doctor_id: Optional[int]
    diagnosis_id: Optional[int]
    notes: Optional[str] = None
    treatment: Optional[TreatmentRequest] = None
    sick_leave: Optional[SickLeaveRequest] = None

    def validate(self) -> None:
        """Validate the request data."""
        if self.visit_date is None:
            raise InvalidRequestError("Visit date is required")
        if self.visit_time is None:
            raise InvalidRequestError("Visit time is required")
        _require_id(self.patient_id, "patient_id")
        _require_id(self.doctor_id, "doctor_id")
        _require_id(self.diagnosis_id, "diagnosis_id")
        if self.notes is not None and not isinstance(self.notes, str):
            raise InvalidRequestError("Invalid notes: expected a string")
        if self.treatment is not None:
            self.treatment.validate()
        if self.sick_leave is not None:
            self.sick_leave.validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisitCreateRequest":
        treatment, sick_leave = _children_from_dict(data)
        return cls(
            visit_date=_parse_date(data.get("visit_date"), "visit_date"),
            visit_time=_parse_time(data.get("visit_time"), "visit_time"),
            patient_id=_parse_int(data.get("patient_id"), "patient_id"),
            doctor_id=_parse_int(data.get("doctor_id"), "doctor_id"),
            diagnosis_id=_parse_int(data.get("diagnosis_id"), "diagnosis_id"),
            notes=data.get("notes"),
            treatment=treatment,
            sick_leave=sick_leave,
        )


@dataclass
class VisitUpdateRequest(VisitCreateRequest):
    """DTO for visit update requests. Omitted children are removed."""

    id: Optional[int] = None

    def validate(self) -> None:
        if self.id is None:
            raise InvalidRequestError("Visit ID is required")
        super().validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisitUpdateRequest":
        base = VisitCreateRequest.from_dict(data)
        return cls(
            id=_parse_int(data.get("id"), "id"),
            visit_date=base.visit_date,
            visit_time=base.visit_time,
            patient_id=base.patient_id,
            doctor_id=base.doctor_id,
            diagnosis_id=base.diagnosis_id,
            notes=base.notes,
            treatment=base.treatment,
            sick_leave=base.sick_leave,
        )


@dataclass
class PatientVisitScheduleRequest:
    """DTO for a patient booking a visit for themselves.

    Self-booked visits must fall inside working hours on a slot boundary.
    """

    patient_id: Optional[int]
    doctor_id: Optional[int]
    visit_date: Optional[date]
    visit_time: Optional[time]

    def validate(self) -> None:
        _require_id(self.patient_id, "patient_id")
        _require_id(self.doctor_id, "doctor_id")
        if self.visit_date is None:
            raise InvalidRequestError("Visit date is required")
        if self.visit_time is None:
            raise InvalidRequestError("Visit time is required")
        if not (config.VISIT_START_TIME <= self.visit_time <= config.VISIT_END_TIME):
            raise InvalidRequestError(
                f"Visit time must be between {config.VISIT_START_TIME.strftime('%H:%M')} "
                f"and {config.VISIT_END_TIME.strftime('%H:%M')}"
            )
        if (
            self.visit_time.minute % config.VISIT_SLOT_MINUTES != 0
            or self.visit_time.second != 0
            or self.visit_time.microsecond != 0
        ):
            raise InvalidRequestError(
                f"Visit time must be on a {config.VISIT_SLOT_MINUTES}-minute slot"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatientVisitScheduleRequest":
        return cls(
            patient_id=_parse_int(data.get("patient_id"), "patient_id"),
            doctor_id=_parse_int(data.get("doctor_id"), "doctor_id"),
            visit_date=_parse_date(data.get("visit_date"), "visit_date"),
            visit_time=_parse_time(data.get("visit_time"), "visit_time"),
        )


@dataclass
class VisitDocumentationRequest:
    """DTO for a doctor documenting the outcome of a scheduled visit."""

    notes: str
    diagnosis_id: Optional[int] = None
    treatment: Optional[TreatmentRequest] = None
    sick_leave: Optional[SickLeaveRequest] = None

    def validate(self) -> None:
        _require_text(self.notes, "Visit notes are required")
        if self.diagnosis_id is not None:
            _require_id(self.diagnosis_id, "diagnosis_id")
        if self.treatment is not None:
            self.treatment.validate()
        if self.sick_leave is not None:
            self.sick_leave.validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisitDocumentationRequest":
        treatment, sick_leave = _children_from_dict(data)
        return cls(
            notes=data.get("notes", ""),
            diagnosis_id=_parse_int(data.get("diagnosis_id"), "diagnosis_id"),
            treatment=treatment,
            sick_leave=sick_leave,
        )


@dataclass(frozen=True)
class MedicineResponse:
    name: str
    dosage: str
    frequency: str

    @classmethod
    def from_domain(cls, medicine) -> "MedicineResponse":
        return cls(name=medicine.name, dosage=medicine.dosage, frequency=medicine.frequency)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "dosage": self.dosage, "frequency": self.frequency}


@dataclass(frozen=True)
class TreatmentResponse:
    description: str
    medicines: Tuple[MedicineResponse, ...] = ()

    @classmethod
    def from_domain(cls, treatment) -> "TreatmentResponse":
        return cls(
            description=treatment.description,
            medicines=tuple(MedicineResponse.from_domain(m) for m in treatment.medicines),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "medicines": [m.to_dict() for m in self.medicines],
        }


@dataclass(frozen=True)
class SickLeaveResponse:
    start_date: date
    duration_days: int

    @classmethod
    def from_domain(cls, sick_leave) -> "SickLeaveResponse":
        return cls(start_date=sick_leave.start_date, duration_days=sick_leave.duration_days)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "duration_days": self.duration_days,
        }


@dataclass(frozen=True)
class VisitResponse:
    """DTO for visit API responses."""

    id: int
    visit_date: date
    visit_time: time
    status: str
    notes: Optional[str]
    patient_id: int
    doctor_id: int
    diagnosis_id: Optional[int]
    sick_leave_issued: bool
    treatment: Optional[TreatmentResponse] = None
    sick_leave: Optional[SickLeaveResponse] = None

    @classmethod
    def from_domain(cls, visit) -> "VisitResponse":
        """Create response from domain entity."""
        return cls(
            id=visit.id,
            visit_date=visit.visit_date,
            visit_time=visit.visit_time,
            status=visit.status.value,
            notes=visit.notes,
            patient_id=visit.patient.id,
            doctor_id=visit.doctor.id,
            diagnosis_id=visit.diagnosis.id if visit.diagnosis else None,
            sick_leave_issued=visit.sick_leave_issued,
            treatment=(
                TreatmentResponse.from_domain(visit.treatment) if visit.treatment else None
            ),
            sick_leave=(
                SickLeaveResponse.from_domain(visit.sick_leave) if visit.sick_leave else None
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "visit_date": self.visit_date.isoformat(),
            "visit_time": self.visit_time.isoformat(),
            "status": self.status,
            "notes": self.notes,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "diagnosis_id": self.diagnosis_id,
            "sick_leave_issued": self.sick_leave_issued,
            "treatment": self.treatment.to_dict() if self.treatment else None,
            "sick_leave": self.sick_leave.to_dict() if self.sick_leave else None,
        }

