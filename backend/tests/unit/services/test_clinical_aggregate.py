"""
Unit tests for replacing a visit's treatment and sick leave.
"""

from datetime import date

import pytest

from clinic.services.clinical_aggregate import rebuild_children
from tests.factories.domain_factories import (
    attach_children,
    make_sick_leave_request,
    make_treatment_request,
    make_visit,
)


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.visit
class TestRebuildChildren:
    def test_builds_treatment_with_medicines_in_order(self):
        visit = make_visit()

        rebuild_children(visit, make_treatment_request(), None)

        assert visit.treatment.description == "Rest and fluids"
        assert visit.treatment.visit is visit
        assert [m.name for m in visit.treatment.medicines] == ["Paracetamol", "Vitamin C"]
        first = visit.treatment.medicines[0]
        assert (first.dosage, first.frequency) == ("500mg", "3x daily")
        assert all(m.treatment is visit.treatment for m in visit.treatment.medicines)
        assert all(m.id is None for m in visit.treatment.medicines)

    def test_builds_sick_leave(self):
        visit = make_visit()

        rebuild_children(visit, None, make_sick_leave_request(duration_days=4))

        assert visit.sick_leave.start_date == date(2024, 1, 10)
        assert visit.sick_leave.duration_days == 4
        assert visit.sick_leave.visit is visit
        assert visit.sick_leave_issued

    def test_omitted_children_are_removed(self):
        visit = attach_children(make_visit())

        rebuild_children(visit)

        assert visit.treatment is None
        assert visit.sick_leave is None
        assert not visit.sick_leave_issued

    def test_replaces_instead_of_merging(self):
        visit = attach_children(make_visit())
        old_treatment = visit.treatment

        rebuild_children(
            visit, make_treatment_request(description="Antibiotics", medicines=[]), None
        )

        assert visit.treatment is not old_treatment
        assert visit.treatment.id is None
        assert visit.treatment.description == "Antibiotics"
        assert visit.treatment.medicines == []
        assert visit.sick_leave is None

    def test_payloads_are_copied_verbatim_without_validation(self):
        visit = make_visit()

        rebuild_children(visit, None, make_sick_leave_request(duration_days=0))

        assert visit.sick_leave.duration_days == 0
