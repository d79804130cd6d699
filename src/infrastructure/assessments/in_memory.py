from copy import deepcopy
from threading import Lock
from typing import Optional

from src.core.assessment.models import AssessmentIdempotencyRecord, AssessmentRecord
from src.core.assessment.repository import AssessmentRepository


class InMemoryAssessmentRepository(AssessmentRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._assessments: dict[str, AssessmentRecord] = {}
        self._idempotency: dict[str, AssessmentIdempotencyRecord] = {}

    def get_idempotency(self, *, idempotency_key: str) -> Optional[AssessmentIdempotencyRecord]:
        with self._lock:
            record = self._idempotency.get(idempotency_key)
            return deepcopy(record) if record is not None else None

    def save_idempotency(self, record: AssessmentIdempotencyRecord) -> None:
        with self._lock:
            self._idempotency[record.idempotency_key] = deepcopy(record)

    def create_assessment(self, assessment: AssessmentRecord) -> None:
        with self._lock:
            self._assessments[assessment.assessment_id] = deepcopy(assessment)

    def update_assessment(self, assessment: AssessmentRecord) -> None:
        with self._lock:
            self._assessments[assessment.assessment_id] = deepcopy(assessment)

    def get_assessment(self, *, assessment_id: str) -> Optional[AssessmentRecord]:
        with self._lock:
            record = self._assessments.get(assessment_id)
            return deepcopy(record) if record is not None else None

    def list_assessments(self, *, client_id: str) -> list[AssessmentRecord]:
        with self._lock:
            rows = [row for row in self._assessments.values() if row.client_id == client_id]
            return deepcopy(rows)
