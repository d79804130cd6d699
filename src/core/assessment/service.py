import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from src.core.assessment.classifier import classify_suitability
from src.core.assessment.confidence import (
    aggregate_confidence,
    build_transcript,
    eligibility_blockers,
    request_behavioral_analysis,
)
from src.core.assessment.models import (
    REJECTION_REASON,
    AssessmentFinalizeRequest,
    AssessmentIdempotencyRecord,
    AssessmentOverrideRequest,
    AssessmentRecord,
    AssessmentRejectRequest,
    AssessmentResponseRecord,
    AssessmentSubmitRequest,
    EligibilityReport,
)
from src.core.assessment.questionnaires import select_questionnaire
from src.core.assessment.repository import AssessmentRepository, QuestionnaireCatalog
from src.core.assessment.scoring import resolve_selections, response_map, score_responses
from src.core.collaborators import BehavioralAnalysisRequest, BehavioralAnalyzer
from src.core.common.fingerprint import request_fingerprint
from src.core.errors import (
    EligibilityError,
    IdempotencyConflictError,
    OverrideValidationError,
    RecordNotFoundError,
    StateConflictError,
)
from src.core.models import (
    ELIGIBILITY_CONFIDENCE_THRESHOLD,
    ClientProfile,
    Questionnaire,
    RiskCategory,
)

logger = logging.getLogger(__name__)


class AssessmentService:
    """
    Runs questionnaire submissions through scoring, classification and confidence, and
    owns the advisor review lifecycle of the resulting append-only assessment records.
    """

    def __init__(
        self,
        *,
        repository: AssessmentRepository,
        questionnaires: QuestionnaireCatalog,
        analyzer: Optional[BehavioralAnalyzer] = None,
        default_model_variant: str = "default",
    ) -> None:
        self._repository = repository
        self._questionnaires = questionnaires
        self._analyzer = analyzer
        self._default_model_variant = default_model_variant

    def get_questionnaire(self, *, version: str) -> Questionnaire:
        questionnaire = select_questionnaire(
            self._questionnaires.list_questionnaires(), version=version
        )
        if questionnaire is None:
            raise RecordNotFoundError("QUESTIONNAIRE_NOT_FOUND")
        return questionnaire

    def submit(
        self,
        *,
        payload: AssessmentSubmitRequest,
        idempotency_key: Optional[str] = None,
    ) -> AssessmentRecord:
        request_hash = request_fingerprint(payload)
        if idempotency_key:
            existing = self._repository.get_idempotency(idempotency_key=idempotency_key)
            if existing is not None:
                if existing.request_hash != request_hash:
                    raise IdempotencyConflictError(
                        "IDEMPOTENCY_KEY_CONFLICT: request hash mismatch"
                    )
                return self.get_assessment(assessment_id=existing.assessment_id)

        questionnaire = self.get_questionnaire(version=payload.questionnaire_version)
        questions = questionnaire.questions
        pairs = resolve_selections(questions, response_map(payload.responses))
        score = score_responses(questions, payload.responses)
        suitability = classify_suitability(questions, payload.responses)

        model_variant = payload.model_variant or self._default_model_variant
        analysis, fallback_reason = request_behavioral_analysis(
            self._analyzer,
            BehavioralAnalysisRequest(
                risk_category=suitability.risk_category,
                responses=build_transcript(pairs),
                client_context=_client_context(payload.client),
            ),
            model_variant=model_variant,
        )
        confidence = aggregate_confidence(
            normalized_score=score.normalized_score,
            analysis=analysis,
            profile=payload.client,
            fallback_reason=fallback_reason,
        )

        now = _utc_now()
        record = AssessmentRecord(
            assessment_id=f"ra_{uuid.uuid4().hex[:12]}",
            client_id=payload.client.client_id,
            questionnaire_id=questionnaire.questionnaire_id,
            questionnaire_version=questionnaire.version,
            created_at=now,
            request_hash=request_hash,
            model_variant=model_variant,
            responses=[
                AssessmentResponseRecord(
                    question_id=question.question_id,
                    question_text=question.text,
                    selected_option_id=option.option_id,
                    selected_option_text=option.text,
                    score_given=question.weight * option.score_value,
                )
                for question, option in pairs
            ],
            score=score,
            suitability=suitability,
            confidence=confidence,
            behavioral_summary=analysis.summary,
            client_profile=payload.client,
        )
        self._repository.create_assessment(record)
        if idempotency_key:
            self._repository.save_idempotency(
                AssessmentIdempotencyRecord(
                    idempotency_key=idempotency_key,
                    request_hash=request_hash,
                    assessment_id=record.assessment_id,
                    created_at=now,
                )
            )
        logger.info(
            "assessment.submitted",
            extra={
                "extra_fields": {
                    "assessment_id": record.assessment_id,
                    "risk_category": suitability.risk_category.value,
                    "knockout_triggered": suitability.knockout_triggered,
                    "analysis_source": confidence.analysis_source,
                }
            },
        )
        return record

    def get_assessment(self, *, assessment_id: str) -> AssessmentRecord:
        record = self._repository.get_assessment(assessment_id=assessment_id)
        if record is None:
            raise RecordNotFoundError("ASSESSMENT_NOT_FOUND")
        return record

    def list_assessments(self, *, client_id: str) -> list[AssessmentRecord]:
        rows = self._repository.list_assessments(client_id=client_id)
        return sorted(rows, key=lambda row: (row.created_at, row.assessment_id), reverse=True)

    def record_override(
        self, *, assessment_id: str, payload: AssessmentOverrideRequest
    ) -> AssessmentRecord:
        record = self._require_open(assessment_id)
        _apply_override(record, payload.override_category, payload.override_reason)
        self._repository.update_assessment(record)
        logger.info(
            "assessment.override_recorded",
            extra={
                "extra_fields": {
                    "assessment_id": assessment_id,
                    "computed_category": record.suitability.risk_category.value,
                    "override_category": payload.override_category.value,
                    "actor_id": payload.actor_id,
                }
            },
        )
        return record

    def finalize(
        self, *, assessment_id: str, payload: AssessmentFinalizeRequest
    ) -> AssessmentRecord:
        record = self._require_open(assessment_id)
        if payload.override_category is not None or payload.override_reason:
            if payload.override_category is None:
                raise OverrideValidationError("OVERRIDE_CATEGORY_REQUIRED")
            _apply_override(record, payload.override_category, payload.override_reason)
        record.status = "FINALIZED"
        record.finalized_by_advisor = True
        record.finalized_at = _utc_now()
        record.finalized_by = payload.actor_id
        self._repository.update_assessment(record)
        logger.info(
            "assessment.finalized",
            extra={
                "extra_fields": {
                    "assessment_id": assessment_id,
                    "effective_category": record.effective_category.value,
                }
            },
        )
        return record

    def reject(self, *, assessment_id: str, payload: AssessmentRejectRequest) -> AssessmentRecord:
        record = self._require_open(assessment_id)
        record.status = "REJECTED"
        record.finalized_by_advisor = False
        record.finalized_at = None
        record.finalized_by = None
        record.rejected_at = _utc_now()
        record.rejection_reason = (payload.reason or "").strip() or REJECTION_REASON
        self._repository.update_assessment(record)
        logger.info(
            "assessment.rejected",
            extra={"extra_fields": {"assessment_id": assessment_id, "actor_id": payload.actor_id}},
        )
        return record

    def eligibility(self, *, assessment_id: str) -> EligibilityReport:
        record = self.get_assessment(assessment_id=assessment_id)
        blockers = eligibility_blockers(
            finalized_by_advisor=record.finalized_by_advisor,
            final_confidence=record.confidence.final_confidence,
        )
        if record.status == "REJECTED":
            blockers.insert(0, "ASSESSMENT_REJECTED")
        return EligibilityReport(
            assessment_id=record.assessment_id,
            eligible=not blockers,
            finalized_by_advisor=record.finalized_by_advisor,
            final_confidence=record.confidence.final_confidence,
            threshold=ELIGIBILITY_CONFIDENCE_THRESHOLD,
            effective_category=record.effective_category,
            blockers=blockers,
        )

    def require_eligible(self, *, assessment_id: str) -> AssessmentRecord:
        report = self.eligibility(assessment_id=assessment_id)
        if not report.eligible:
            raise EligibilityError(f"IPS_NOT_ELIGIBLE: {', '.join(report.blockers)}")
        return self.get_assessment(assessment_id=assessment_id)

    def _require_open(self, assessment_id: str) -> AssessmentRecord:
        record = self.get_assessment(assessment_id=assessment_id)
        if record.status == "REJECTED":
            raise StateConflictError("ASSESSMENT_REJECTED")
        return record


def _apply_override(
    record: AssessmentRecord, category: RiskCategory, reason: Optional[str]
) -> None:
    normalized_reason = (reason or "").strip()
    if not normalized_reason:
        raise OverrideValidationError("OVERRIDE_REASON_REQUIRED")
    record.override_category = category
    record.override_reason = normalized_reason


def _client_context(profile: ClientProfile) -> dict:
    return profile.model_dump(mode="json", exclude={"first_name", "last_name", "email"})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
