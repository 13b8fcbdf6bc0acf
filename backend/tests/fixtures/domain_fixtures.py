"""
Service-level fixtures: mocked repositories, a fixed clock and a worker pool.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from clinic.services.scheduling import SchedulingRule
from clinic.services.visit_service import VisitService
from tests.factories.domain_factories import TODAY
from tests.factories.repository_factories import (
    DiagnosisRepositoryFactory,
    DoctorRepositoryFactory,
    PatientRepositoryFactory,
    VisitRepositoryFactory,
)


@pytest.fixture
def list_executor():
    """Single worker pool shut down after each test."""
    executor = ThreadPoolExecutor(max_workers=1)
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture
def mock_visit_repo():
    return VisitRepositoryFactory.create_mock_full()


@pytest.fixture
def mock_patient_repo():
    return PatientRepositoryFactory.create_mock_reader()


@pytest.fixture
def mock_doctor_repo():
    return DoctorRepositoryFactory.create_mock_reader()


@pytest.fixture
def mock_diagnosis_repo():
    return DiagnosisRepositoryFactory.create_mock_reader()


@pytest.fixture
def visit_service(
    mock_visit_repo,
    mock_patient_repo,
    mock_doctor_repo,
    mock_diagnosis_repo,
    list_executor,
) -> VisitService:
    """VisitService over mocked repositories with the clock fixed at TODAY."""
    return VisitService(
        visit_repo=mock_visit_repo,
        patient_repo=mock_patient_repo,
        doctor_repo=mock_doctor_repo,
        diagnosis_repo=mock_diagnosis_repo,
        scheduling_rule=SchedulingRule(mock_visit_repo, clock=lambda: TODAY),
        executor=list_executor,
    )
