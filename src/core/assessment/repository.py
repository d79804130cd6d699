from typing import Optional, Protocol

from src.core.assessment.models import AssessmentIdempotencyRecord, AssessmentRecord
from src.core.models import Questionnaire


class AssessmentRepository(Protocol):
    def get_idempotency(
        self, *, idempotency_key: str
    ) -> Optional[AssessmentIdempotencyRecord]: ...

    def save_idempotency(self, record: AssessmentIdempotencyRecord) -> None: ...

    def create_assessment(self, assessment: AssessmentRecord) -> None: ...

    def update_assessment(self, assessment: AssessmentRecord) -> None: ...

    def get_assessment(self, *, assessment_id: str) -> Optional[AssessmentRecord]: ...

    def list_assessments(self, *, client_id: str) -> list[AssessmentRecord]: ...


class QuestionnaireCatalog(Protocol):
    def get_questionnaire(self, *, version: str) -> Optional[Questionnaire]: ...

    def list_questionnaires(self) -> list[Questionnaire]: ...
