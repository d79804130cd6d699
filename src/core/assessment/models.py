from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from src.core.models import (
    ClientProfile,
    ConfidenceResult,
    ResponseItem,
    RiskCategory,
    ScoreResult,
    SuitabilityResult,
)

AssessmentStatus = Literal["SUBMITTED", "FINALIZED", "REJECTED"]

REJECTION_REASON = "Rejected by advisor. Client requested to retake."


class AssessmentSubmitRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "client": {"client_id": "cl_001", "first_name": "Ada", "annual_income": "90000"},
                "questionnaire_version": "v1",
                "responses": [{"question_id": "q1", "selected_option_id": "q1_c"}],
            }
        }
    }

    client: ClientProfile = Field(description="Client profile used as analysis context.")
    questionnaire_version: str = Field(description="Questionnaire version answered.")
    responses: List[ResponseItem] = Field(description="One selected option per question.")
    model_variant: Optional[str] = Field(
        default=None,
        description="External model variant for the behavioral analysis call.",
        examples=["default"],
    )


class AssessmentResponseRecord(BaseModel):
    question_id: str
    question_text: str
    selected_option_id: str
    selected_option_text: str
    score_given: Decimal = Field(description="weight x selected option score.")


class AssessmentRecord(BaseModel):
    assessment_id: str
    client_id: str
    questionnaire_id: str
    questionnaire_version: str
    created_at: datetime
    request_hash: str
    model_variant: str
    responses: List[AssessmentResponseRecord]
    score: ScoreResult
    suitability: SuitabilityResult
    confidence: ConfidenceResult
    behavioral_summary: str = ""
    client_profile: ClientProfile
    status: AssessmentStatus = "SUBMITTED"
    finalized_by_advisor: bool = False
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    override_category: Optional[RiskCategory] = None
    override_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def effective_category(self) -> RiskCategory:
        return self.override_category or self.suitability.risk_category


class AssessmentIdempotencyRecord(BaseModel):
    idempotency_key: str
    request_hash: str
    assessment_id: str
    created_at: datetime


class AssessmentOverrideRequest(BaseModel):
    override_category: RiskCategory = Field(description="Advisor-selected category.")
    override_reason: str = Field(description="Mandatory free-text justification.")
    actor_id: Optional[str] = Field(default=None, description="Advisor recording the override.")


class AssessmentFinalizeRequest(BaseModel):
    actor_id: Optional[str] = Field(default=None, description="Finalizing advisor.")
    override_category: Optional[RiskCategory] = None
    override_reason: Optional[str] = None


class AssessmentRejectRequest(BaseModel):
    actor_id: Optional[str] = None
    reason: Optional[str] = Field(default=None, description="Defaults to the retake reason.")


class AssessmentListResponse(BaseModel):
    client_id: str
    items: List[AssessmentRecord]


class EligibilityReport(BaseModel):
    assessment_id: str
    eligible: bool
    finalized_by_advisor: bool
    final_confidence: Decimal
    threshold: Decimal
    effective_category: RiskCategory
    blockers: List[str] = Field(default_factory=list)
