"""
Visit controller - JSON endpoints for visit scheduling and documentation.

Handles only HTTP concerns: parses input into DTOs, resolves the caller,
delegates to VisitService and renders the standard response envelope.
Service errors are mapped to status codes by the blueprint error handler.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, request

from clinic.core.api_utils import api_response, error_response
from clinic.core.auth_decorators import get_current_caller, jwt_required, roles_required
from clinic.core.exceptions import ClinicError, InvalidRequestError
from clinic.core.pagination import Page
from clinic.core.security import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT
from clinic.db.session import SessionLocal
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
from clinic.services.visit_service import DEFAULT_SORT_FIELD, VisitService

logger = logging.getLogger(__name__)

visits_bp = Blueprint("visits", __name__, url_prefix="/api/visits")

DEFAULT_PAGE_SIZE = 20


def build_visit_service(db_session) -> VisitService:
    """Default factory wiring VisitService to SQLAlchemy repositories."""
    visit_repo = VisitRepository(db_session)
    return VisitService(
        visit_repo=visit_repo,
        patient_repo=PatientRepository(db_session),
        doctor_repo=DoctorRepository(db_session),
        diagnosis_repo=DiagnosisRepository(db_session),
    )


@contextmanager
def visit_service_scope():
    """Yield a VisitService bound to a fresh session, closing it afterwards."""
    factory = current_app.config.get("VISIT_SERVICE_FACTORY") or build_visit_service
    db = SessionLocal()
    try:
        yield factory(db)
    finally:
        db.close()


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return data


def _int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequestError(f"Query parameter '{name}' must be an integer")


def _date_arg(name: str) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidRequestError(f"Query parameter '{name}' must be YYYY-MM-DD")


def _page_to_dict(page: Page) -> Dict[str, Any]:
    return {
        "items": [item.to_dict() for item in page.items],
        "total": page.total,
        "page": page.page_index,
        "size": page.page_size,
        "total_pages": page.total_pages,
    }


@visits_bp.errorhandler(ClinicError)
def handle_clinic_error(error: ClinicError):
    if error.status_code >= 500:
        logger.error(
            "Visit request failed",
            extra={"context": {"path": request.path, "error": error.message}},
            exc_info=True,
        )
    return error_response(error)


@visits_bp.route("", methods=["POST"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def create_visit():
    create_request = VisitCreateRequest.from_dict(_json_body())
    create_request.validate()
    with visit_service_scope() as service:
        response = service.create_visit(create_request, get_current_caller())
    return api_response(True, "Visit created", response.to_dict(), 201)


@visits_bp.route("/<int:visit_id>", methods=["PUT"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def update_visit(visit_id: int):
    data = _json_body()
    data["id"] = visit_id
    update_request = VisitUpdateRequest.from_dict(data)
    update_request.validate()
    with visit_service_scope() as service:
        response = service.update_visit(update_request, get_current_caller())
    return api_response(True, "Visit updated", response.to_dict())


@visits_bp.route("/<int:visit_id>", methods=["DELETE"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def delete_visit(visit_id: int):
    with visit_service_scope() as service:
        service.delete_visit(visit_id)
    return api_response(True, "Visit deleted")


@visits_bp.route("/<int:visit_id>", methods=["GET"])
@jwt_required
def get_visit(visit_id: int):
    with visit_service_scope() as service:
        response = service.get_visit(visit_id, get_current_caller())
    return api_response(True, "Visit retrieved", response.to_dict())


@visits_bp.route("", methods=["GET"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def list_visits():
    """List visits.

    Query params: page (0-based), size, sort, direction (asc|desc), filter.
    """
    page_index = _int_arg("page", 0)
    page_size = _int_arg("size", DEFAULT_PAGE_SIZE)
    sort_field = request.args.get("sort", DEFAULT_SORT_FIELD)
    ascending = request.args.get("direction", "asc").lower() != "desc"
    filter_text = request.args.get("filter")

    with visit_service_scope() as service:
        future = service.get_visits(
            page_index, page_size, sort_field, ascending, filter_text
        )
        page = future.result()
    return api_response(True, "Visits retrieved", _page_to_dict(page))


@visits_bp.route("/schedule", methods=["POST"])
@roles_required(ROLE_PATIENT)
def schedule_visit():
    schedule_request = PatientVisitScheduleRequest.from_dict(_json_body())
    schedule_request.validate()
    with visit_service_scope() as service:
        response = service.schedule_visit_for_patient(
            schedule_request, get_current_caller()
        )
    return api_response(True, "Visit scheduled", response.to_dict(), 201)


@visits_bp.route("/<int:visit_id>/document", methods=["POST"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def document_visit(visit_id: int):
    documentation = VisitDocumentationRequest.from_dict(_json_body())
    documentation.validate()
    with visit_service_scope() as service:
        response = service.document_visit(
            visit_id, documentation, get_current_caller()
        )
    return api_response(True, "Visit documented", response.to_dict())


@visits_bp.route("/<int:visit_id>/cancel", methods=["POST"])
@jwt_required
def cancel_visit(visit_id: int):
    with visit_service_scope() as service:
        response = service.cancel_visit(visit_id, get_current_caller())
    return api_response(True, "Visit cancelled", response.to_dict())


@visits_bp.route("/patient/<int:patient_id>", methods=["GET"])
@jwt_required
def list_patient_visits(patient_id: int):
    page_index = _int_arg("page", 0)
    page_size = _int_arg("size", DEFAULT_PAGE_SIZE)
    with visit_service_scope() as service:
        future = service.get_visits_by_patient(
            patient_id, page_index, page_size, get_current_caller()
        )
        page = future.result()
    return api_response(True, "Visits retrieved", _page_to_dict(page))


@visits_bp.route("/range", methods=["GET"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def list_visits_in_range():
    start, end = _date_arg("start"), _date_arg("end")
    page_index = _int_arg("page", 0)
    page_size = _int_arg("size", DEFAULT_PAGE_SIZE)
    with visit_service_scope() as service:
        page = service.get_visits_by_date_range(
            start, end, page_index, page_size
        ).result()
    return api_response(True, "Visits retrieved", _page_to_dict(page))


@visits_bp.route("/doctor/<int:doctor_id>", methods=["GET"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def list_doctor_visits(doctor_id: int):
    """Doctor's visits in a status between two dates, oldest first."""
    status = request.args.get("status")
    start, end = _date_arg("start"), _date_arg("end")
    page_index = _int_arg("page", 0)
    page_size = _int_arg("size", DEFAULT_PAGE_SIZE)
    with visit_service_scope() as service:
        page = service.get_visits_by_doctor_status_and_date_range(
            doctor_id, status, start, end, page_index, page_size
        ).result()
    return api_response(True, "Visits retrieved", _page_to_dict(page))


@visits_bp.route("/doctor/<int:doctor_id>/range", methods=["GET"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def list_doctor_visits_in_range(doctor_id: int):
    start, end = _date_arg("start"), _date_arg("end")
    page_index = _int_arg("page", 0)
    page_size = _int_arg("size", DEFAULT_PAGE_SIZE)
    with visit_service_scope() as service:
        page = service.get_visits_by_doctor_and_date_range(
            doctor_id, start, end, page_index, page_size
        ).result()
    return api_response(True, "Visits retrieved", _page_to_dict(page))


@visits_bp.route("/diagnosis/<int:diagnosis_id>", methods=["GET"])
@roles_required(ROLE_ADMIN, ROLE_DOCTOR)
def list_diagnosis_visits(diagnosis_id: int):
    page_index = _int_arg("page", 0)
    page_size = _int_arg("size", DEFAULT_PAGE_SIZE)
    with visit_service_scope() as service:
        page = service.get_visits_by_diagnosis(
            diagnosis_id, page_index, page_size
        ).result()
    return api_response(True, "Visits retrieved", _page_to_dict(page))
