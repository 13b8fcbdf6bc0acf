from typing import Optional

from clinic.db.base import Diagnosis as DbDiagnosis
from clinic.domain.entities import Diagnosis as DomainDiagnosis
from clinic.domain.interfaces import IDiagnosisReader


class DiagnosisRepository(IDiagnosisReader):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, diagnosis_id: int) -> Optional[DomainDiagnosis]:
        db_diagnosis = self.db.query(DbDiagnosis).filter_by(id=diagnosis_id).first()
        return self._to_domain(db_diagnosis) if db_diagnosis else None

    @staticmethod
    def _to_domain(db_diagnosis: DbDiagnosis) -> DomainDiagnosis:
        return DomainDiagnosis(
            id=db_diagnosis.id,
            name=db_diagnosis.name,
            description=db_diagnosis.description,
        )
