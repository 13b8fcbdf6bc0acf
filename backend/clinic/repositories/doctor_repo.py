from typing import Optional

from clinic.db.base import Doctor as DbDoctor
from clinic.domain.entities import Doctor as DomainDoctor
from clinic.domain.interfaces import IDoctorReader


class DoctorRepository(IDoctorReader):
    """Read access to doctors, mapped to domain entities."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, doctor_id: int) -> Optional[DomainDoctor]:
        db_doctor = self.db.query(DbDoctor).filter_by(id=doctor_id).first()
        return self._to_domain(db_doctor) if db_doctor else None

    @staticmethod
    def _to_domain(db_doctor: DbDoctor) -> DomainDoctor:
        return DomainDoctor(
            id=db_doctor.id,
            name=db_doctor.name,
            unique_id_number=db_doctor.unique_id_number,
            is_general_practitioner=bool(db_doctor.is_general_practitioner),
            external_id=db_doctor.external_id,
        )
