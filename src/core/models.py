"""
FILE: src/core/models.py
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

ABILITY_KEYWORDS = ("horizon", "time", "withdraw", "income", "years")
TIME_HORIZON_KEYWORDS = ("horizon", "time")

CONSERVATIVE_UPPER_BOUND = Decimal("0.35")
MODERATE_UPPER_BOUND = Decimal("0.65")
ELIGIBILITY_CONFIDENCE_THRESHOLD = Decimal("65")


class RiskCategory(str, Enum):
    CONSERVATIVE = "Conservative"
    MODERATE = "Moderate"
    AGGRESSIVE = "Aggressive"

    @property
    def rank(self) -> int:
        return _CATEGORY_RANK[self]


_CATEGORY_RANK = {
    RiskCategory.CONSERVATIVE: 0,
    RiskCategory.MODERATE: 1,
    RiskCategory.AGGRESSIVE: 2,
}


class QuestionCategory(str, Enum):
    ABILITY = "ABILITY"
    WILLINGNESS = "WILLINGNESS"


AnalysisSource = Literal["EXTERNAL", "FALLBACK"]
AllocationSource = Literal["BASELINE", "GENERATED"]


def default_question_category(question_text: str) -> QuestionCategory:
    """Keyword default used only when a question is authored without a category tag."""
    text = question_text.lower()
    if any(keyword in text for keyword in ABILITY_KEYWORDS):
        return QuestionCategory.ABILITY
    return QuestionCategory.WILLINGNESS


def default_time_horizon_flag(question_text: str) -> bool:
    text = question_text.lower()
    return any(keyword in text for keyword in TIME_HORIZON_KEYWORDS)


class OptionSpec(BaseModel):
    option_id: str = Field(description="Answer option identifier.", examples=["q1_a"])
    text: str = Field(description="Answer option text.", examples=["Less than 3 years"])
    score_value: int = Field(
        ge=0,
        description="Non-negative score contributed by the option before weighting.",
        examples=[1],
    )


class QuestionSpec(BaseModel):
    question_id: str = Field(description="Question identifier.", examples=["q1"])
    text: str = Field(
        description="Question text presented to the investor.",
        examples=["What is your investment time horizon?"],
    )
    weight: Decimal = Field(gt=0, description="Positive question weight.", examples=["1"])
    order_number: int = Field(default=0, description="Display order inside the questionnaire.")
    category: Optional[QuestionCategory] = Field(
        default=None,
        description=(
            "Explicit ability/willingness tag. When omitted at authoring time it is defaulted "
            "from the question text keywords."
        ),
        examples=["ABILITY"],
    )
    time_horizon: Optional[bool] = Field(
        default=None,
        description=(
            "Whether the question measures investment time horizon and can trigger the "
            "knock-out rule. Defaulted from the question text when omitted."
        ),
    )
    options: List[OptionSpec] = Field(min_length=1, description="Ordered answer options.")

    @model_validator(mode="after")
    def apply_authoring_defaults(self) -> "QuestionSpec":
        if self.category is None:
            self.category = default_question_category(self.text)
        if self.time_horizon is None:
            self.time_horizon = default_time_horizon_flag(self.text)
        option_ids = [option.option_id for option in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError("option ids must be unique within a question")
        return self

    @property
    def max_score_value(self) -> int:
        return max(option.score_value for option in self.options)

    def find_option(self, option_id: str) -> Optional[OptionSpec]:
        return next((option for option in self.options if option.option_id == option_id), None)


class Questionnaire(BaseModel):
    questionnaire_id: str = Field(description="Questionnaire identifier.", examples=["rq_v1"])
    version: str = Field(description="Questionnaire version label.", examples=["v1"])
    methodology_reference: str = Field(
        default="",
        description="Reference to the scoring methodology the questionnaire follows.",
    )
    questions: List[QuestionSpec] = Field(description="Questions ordered by order_number.")

    @model_validator(mode="after")
    def order_questions(self) -> "Questionnaire":
        question_ids = [question.question_id for question in self.questions]
        if len(set(question_ids)) != len(question_ids):
            raise ValueError("question ids must be unique within a questionnaire")
        self.questions = sorted(self.questions, key=lambda question: question.order_number)
        return self


class ResponseItem(BaseModel):
    question_id: str = Field(description="Answered question identifier.", examples=["q1"])
    selected_option_id: str = Field(description="Selected option identifier.", examples=["q1_a"])


class ClientProfile(BaseModel):
    client_id: str = Field(description="Client identifier.", examples=["cl_001"])
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    dob: Optional[str] = Field(default=None, description="Date of birth (ISO date).")
    annual_income: Optional[Decimal] = None
    net_worth: Optional[Decimal] = None
    liquidity_needs: Optional[Decimal] = None
    tax_bracket: Optional[Decimal] = Field(default=None, description="Marginal tax bracket, %.")


class ScoreResult(BaseModel):
    raw_score: Decimal = Field(description="Sum of weight x selected option score.")
    max_score: Decimal = Field(description="Sum of weight x maximum option score.")
    normalized_score: Decimal = Field(description="raw_score / max_score, 0 when max is 0.")


class SuitabilityResult(BaseModel):
    risk_category: RiskCategory = Field(description="Computed category. Never mutated.")
    willingness_score: Decimal = Field(description="Willingness partition score, 0-100.")
    ability_score: Decimal = Field(description="Ability partition score, 0-100.")
    knockout_triggered: bool = Field(description="Whether the time-horizon knock-out fired.")


class BehavioralAnalysis(BaseModel):
    """Validated payload returned by the behavioral-analysis collaborator."""

    model_config = ConfigDict(extra="ignore")

    reliability: int = Field(ge=0, le=100)
    consistency: int = Field(ge=0, le=100)
    stability: int = Field(ge=0, le=100)
    summary: str = ""


class ConfidenceResult(BaseModel):
    boundary_distance: Decimal = Field(description="Boundary-distance sub-score, 0-100.")
    external_reliability: Decimal = Field(description="Collaborator reliability, 0-100.")
    consistency: Decimal = Field(description="Collaborator consistency, display only.")
    stability: Decimal = Field(description="Collaborator response stability, display only.")
    profile_completeness: Decimal = Field(description="Client profile completeness, 0-100.")
    final_confidence: Decimal = Field(description="Confidence used by the IPS gate, 0-100.")
    analysis_source: AnalysisSource = Field(
        description="EXTERNAL for a genuine analysis, FALLBACK for the neutral substitute."
    )
    fallback_reason: Optional[str] = Field(
        default=None,
        description="Reason code recorded when the neutral fallback was substituted.",
    )


class TargetAllocation(BaseModel):
    asset_class: str = Field(description="Asset class bucket.", examples=["Equity"])
    target_percent: Decimal = Field(ge=0, le=100, description="Target weight, percent.")
    lower_band: Decimal = Field(ge=0, le=100, description="Lower drift band, percent.")
    upper_band: Decimal = Field(ge=0, le=100, description="Upper drift band, percent.")

    @model_validator(mode="after")
    def bands_bracket_target(self) -> "TargetAllocation":
        if not (self.lower_band <= self.target_percent <= self.upper_band):
            raise ValueError("lower_band <= target_percent <= upper_band must hold")
        return self


class AllocationModel(BaseModel):
    risk_category: RiskCategory
    targets: Dict[str, Decimal] = Field(description="Target percent per asset class.")
    rebalance_cadence: str = Field(examples=["Quarterly"])


class AllocationSet(BaseModel):
    risk_category: RiskCategory
    target_allocations: List[TargetAllocation]
    rebalancing_cadence: str
    source: AllocationSource
    narrative_text: str = ""
    fallback_reason: Optional[str] = None

    @property
    def total_percent(self) -> Decimal:
        return sum(
            (allocation.target_percent for allocation in self.target_allocations), Decimal("0")
        )


class Security(BaseModel):
    security_id: str = Field(description="Security identifier.", examples=["sec_vti"])
    name: str = Field(description="Security display name.", examples=["Total Market ETF"])
    asset_class: str = Field(description="Catalog asset class.", examples=["Equity"])
    price: Decimal = Field(description="Current unit price.", examples=["245.10"])


class Holding(BaseModel):
    """One priced position.

    Instances are immutable; percent, amount and units are always produced together by the
    portfolio engine constructors so the non-authoritative fields are never stale.
    """

    model_config = ConfigDict(frozen=True)

    holding_id: str
    security_id: str
    security_name: str = ""
    asset_class: str = ""
    price: Decimal
    allocated_percent: Decimal
    allocated_amount: Decimal
    units: Decimal


PortfolioApprovalStatus = Literal["PENDING", "APPROVED"]


class Portfolio(BaseModel):
    portfolio_id: str
    client_id: str
    ips_id: Optional[str] = None
    total_portfolio_value: Decimal = Field(
        description="Fixed portfolio value: invested amount plus cash at every state."
    )
    cash_balance: Decimal = Field(description="Residual cash, recomputed after every edit.")
    holdings: List[Holding] = Field(default_factory=list)
    approval_status: PortfolioApprovalStatus = "PENDING"
    client_approved: bool = False
    client_approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_investment_amount(self) -> Decimal:
        return sum((holding.allocated_amount for holding in self.holdings), Decimal("0"))

    @property
    def total_allocated_percent(self) -> Decimal:
        return sum((holding.allocated_percent for holding in self.holdings), Decimal("0"))

    def find_holding(self, holding_id: str) -> Optional[Holding]:
        return next((h for h in self.holdings if h.holding_id == holding_id), None)
