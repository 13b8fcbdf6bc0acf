from typing import Optional

from clinic.db.base import Patient as DbPatient
from clinic.domain.entities import Patient as DomainPatient
from clinic.domain.interfaces import IPatientReader


class PatientRepository(IPatientReader):
    """Read access to patients, mapped to domain entities."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, patient_id: int) -> Optional[DomainPatient]:
        db_patient = self.db.query(DbPatient).filter_by(id=patient_id).first()
        return self._to_domain(db_patient) if db_patient else None

    @staticmethod
    def _to_domain(db_patient: DbPatient) -> DomainPatient:
        """Convert database model to domain entity."""
        return DomainPatient(
            id=db_patient.id,
            name=db_patient.name,
            egn=db_patient.egn,
            external_id=db_patient.external_id,
            last_insurance_payment_date=db_patient.last_insurance_payment_date,
            general_practitioner_id=db_patient.general_practitioner_id,
        )
