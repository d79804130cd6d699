"""
FILE: src/core/assessment/classifier.py
"""

from decimal import Decimal
from typing import Iterable, List, Tuple

from src.core.assessment.scoring import resolve_selections, response_map, weighted_totals
from src.core.models import (
    CONSERVATIVE_UPPER_BOUND,
    MODERATE_UPPER_BOUND,
    OptionSpec,
    QuestionCategory,
    QuestionSpec,
    ResponseItem,
    RiskCategory,
    SuitabilityResult,
)

_HUNDRED = Decimal("100")
_KNOCKOUT_MAX_SCORE_VALUE = 1


def category_for_score(score: Decimal) -> RiskCategory:
    """Maps a 0-1 score onto the three categories using the fixed boundaries."""
    if score <= CONSERVATIVE_UPPER_BOUND:
        return RiskCategory.CONSERVATIVE
    if score <= MODERATE_UPPER_BOUND:
        return RiskCategory.MODERATE
    return RiskCategory.AGGRESSIVE


def _partition_percent(pairs: List[Tuple[QuestionSpec, OptionSpec]]) -> Decimal:
    raw_score, max_score = weighted_totals(pairs)
    if max_score <= 0:
        return Decimal("0")
    return raw_score / max_score * _HUNDRED


def is_knockout(question: QuestionSpec, option: OptionSpec) -> bool:
    return (
        question.category == QuestionCategory.ABILITY
        and bool(question.time_horizon)
        and option.score_value <= _KNOCKOUT_MAX_SCORE_VALUE
    )


def classify_suitability(
    questions: List[QuestionSpec], responses: Iterable[ResponseItem]
) -> SuitabilityResult:
    """
    Splits answers into ability and willingness partitions and classifies on the weaker one.

    A very short time horizon answer forces Conservative regardless of the other answers.
    """
    pairs = resolve_selections(questions, response_map(responses))
    ability = [pair for pair in pairs if pair[0].category == QuestionCategory.ABILITY]
    willingness = [pair for pair in pairs if pair[0].category != QuestionCategory.ABILITY]

    willingness_score = _partition_percent(willingness)
    ability_score = _partition_percent(ability)
    knockout = any(is_knockout(question, option) for question, option in ability)

    if knockout:
        category = RiskCategory.CONSERVATIVE
    else:
        category = category_for_score(min(willingness_score, ability_score) / _HUNDRED)

    return SuitabilityResult(
        risk_category=category,
        willingness_score=willingness_score,
        ability_score=ability_score,
        knockout_triggered=knockout,
    )
