"""
FILE: src/core/assessment/confidence.py
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from src.core.collaborators import (
    BehavioralAnalysisRequest,
    BehavioralAnalyzer,
    TranscriptEntry,
)
from src.core.errors import ExternalServiceError
from src.core.models import (
    CONSERVATIVE_UPPER_BOUND,
    ELIGIBILITY_CONFIDENCE_THRESHOLD,
    MODERATE_UPPER_BOUND,
    BehavioralAnalysis,
    ClientProfile,
    ConfidenceResult,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_MODERATE_HALF_WIDTH = (MODERATE_UPPER_BOUND - CONSERVATIVE_UPPER_BOUND) / 2
_AGGRESSIVE_WIDTH = Decimal("1") - MODERATE_UPPER_BOUND

NEUTRAL_FALLBACK = BehavioralAnalysis(
    reliability=50,
    consistency=50,
    stability=50,
    summary="AI analysis unavailable. Deterministic scoring used.",
)

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "dob",
    "annual_income",
    "net_worth",
    "liquidity_needs",
    "tax_bracket",
)


def clamp_percent(value: Decimal) -> Decimal:
    return max(_ZERO, min(_HUNDRED, value))


def boundary_distance(normalized_score: Decimal) -> Decimal:
    if normalized_score <= CONSERVATIVE_UPPER_BOUND:
        distance = (CONSERVATIVE_UPPER_BOUND - normalized_score) / CONSERVATIVE_UPPER_BOUND
    elif normalized_score <= MODERATE_UPPER_BOUND:
        distance = (
            min(
                normalized_score - CONSERVATIVE_UPPER_BOUND,
                MODERATE_UPPER_BOUND - normalized_score,
            )
            / _MODERATE_HALF_WIDTH
        )
    else:
        distance = (normalized_score - MODERATE_UPPER_BOUND) / _AGGRESSIVE_WIDTH
    return clamp_percent(distance * _HUNDRED)


def profile_completeness(profile: Optional[ClientProfile]) -> Decimal:
    if profile is None:
        return _ZERO
    filled = sum(1 for name in PROFILE_FIELDS if getattr(profile, name) not in (None, ""))
    return Decimal(filled) / Decimal(len(PROFILE_FIELDS)) * _HUNDRED


def request_behavioral_analysis(
    analyzer: Optional[BehavioralAnalyzer],
    request: BehavioralAnalysisRequest,
    *,
    model_variant: str,
) -> tuple[BehavioralAnalysis, Optional[str]]:
    """
    Calls the behavioral collaborator, substituting the neutral fallback on failure.

    Returns the analysis together with the fallback reason code (None for a genuine
    analysis) so callers can persist which one they got.
    """
    if analyzer is None:
        logger.warning(
            "behavioral_analysis.fallback",
            extra={"extra_fields": {"reason": "ANALYZER_NOT_CONFIGURED"}},
        )
        return NEUTRAL_FALLBACK, "ANALYZER_NOT_CONFIGURED"
    try:
        return analyzer.analyze(request, model_variant=model_variant), None
    except ExternalServiceError as exc:
        reason = str(exc).split(":", 1)[0] or "EXTERNAL_SERVICE_ERROR"
        logger.warning(
            "behavioral_analysis.fallback",
            extra={"extra_fields": {"reason": reason, "model_variant": model_variant}},
        )
        return NEUTRAL_FALLBACK, reason


def aggregate_confidence(
    *,
    normalized_score: Decimal,
    analysis: BehavioralAnalysis,
    profile: Optional[ClientProfile],
    fallback_reason: Optional[str] = None,
) -> ConfidenceResult:
    reliability = clamp_percent(Decimal(analysis.reliability))
    return ConfidenceResult(
        boundary_distance=boundary_distance(normalized_score),
        external_reliability=reliability,
        consistency=clamp_percent(Decimal(analysis.consistency)),
        stability=clamp_percent(Decimal(analysis.stability)),
        profile_completeness=profile_completeness(profile),
        final_confidence=reliability,
        analysis_source="FALLBACK" if fallback_reason else "EXTERNAL",
        fallback_reason=fallback_reason,
    )


def eligibility_blockers(*, finalized_by_advisor: bool, final_confidence: Decimal) -> list[str]:
    blockers = []
    if not finalized_by_advisor:
        blockers.append("ASSESSMENT_NOT_FINALIZED")
    if final_confidence < ELIGIBILITY_CONFIDENCE_THRESHOLD:
        blockers.append("CONFIDENCE_BELOW_THRESHOLD")
    return blockers


def is_eligible_for_ips(*, finalized_by_advisor: bool, final_confidence: Decimal) -> bool:
    return not eligibility_blockers(
        finalized_by_advisor=finalized_by_advisor, final_confidence=final_confidence
    )


def build_transcript(pairs: Iterable) -> list[TranscriptEntry]:
    return [
        TranscriptEntry(question=question.text, answer=option.text) for question, option in pairs
    ]
