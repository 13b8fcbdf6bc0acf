"""
Replace-or-clear assembly of a visit's clinical children.
"""

from typing import Optional

from clinic.domain.entities import Medicine, SickLeave, Treatment, Visit
from clinic.schemas.dtos import SickLeaveRequest, TreatmentRequest


def rebuild_children(
    visit: Visit,
    treatment_desired: Optional[TreatmentRequest] = None,
    sick_leave_desired: Optional[SickLeaveRequest] = None,
) -> None:
    """Replace the visit's Treatment (with Medicines) and SickLeave.

    Existing children are always dropped first; a new child is built only
    when its desired payload is given. Payloads are not validated here.
    """
    visit.treatment = None
    if treatment_desired is not None:
        treatment = Treatment(description=treatment_desired.description, visit=visit)
        treatment.medicines = [
            Medicine(
                name=m.name,
                dosage=m.dosage,
                frequency=m.frequency,
                treatment=treatment,
            )
            for m in treatment_desired.medicines
        ]
        visit.treatment = treatment

    visit.sick_leave = None
    if sick_leave_desired is not None:
        visit.sick_leave = SickLeave(
            start_date=sick_leave_desired.start_date,
            duration_days=sick_leave_desired.duration_days,
            visit=visit,
        )
