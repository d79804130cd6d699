"""
FILE: src/core/assessment/scoring.py
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Tuple

from src.core.errors import IncompleteResponseError, UnknownResponseError
from src.core.models import OptionSpec, QuestionSpec, ResponseItem, ScoreResult

_ZERO = Decimal("0")


def response_map(responses: Iterable[ResponseItem]) -> Dict[str, str]:
    """Maps question id -> selected option id, rejecting duplicate answers."""
    selected: Dict[str, str] = {}
    for item in responses:
        if item.question_id in selected:
            raise UnknownResponseError(f"DUPLICATE_RESPONSE: {item.question_id}")
        selected[item.question_id] = item.selected_option_id
    return selected


def resolve_selections(
    questions: List[QuestionSpec], selected: Mapping[str, str]
) -> List[Tuple[QuestionSpec, OptionSpec]]:
    """
    Pairs every question with its selected option.

    Partial response sets are rejected rather than scored; answers that reference an unknown
    question or option are rejected as well.
    """
    known_ids = {question.question_id for question in questions}
    unknown = sorted(question_id for question_id in selected if question_id not in known_ids)
    if unknown:
        raise UnknownResponseError(f"UNKNOWN_QUESTION: {', '.join(unknown)}")

    missing = [q.question_id for q in questions if q.question_id not in selected]
    if missing:
        raise IncompleteResponseError(f"INCOMPLETE_RESPONSE_SET: missing {', '.join(missing)}")

    pairs: List[Tuple[QuestionSpec, OptionSpec]] = []
    for question in questions:
        option = question.find_option(selected[question.question_id])
        if option is None:
            raise UnknownResponseError(
                f"UNKNOWN_OPTION: {question.question_id}/{selected[question.question_id]}"
            )
        pairs.append((question, option))
    return pairs


def weighted_totals(pairs: Iterable[Tuple[QuestionSpec, OptionSpec]]) -> Tuple[Decimal, Decimal]:
    raw_score = _ZERO
    max_score = _ZERO
    for question, option in pairs:
        raw_score += question.weight * option.score_value
        max_score += question.weight * question.max_score_value
    return raw_score, max_score


def score_responses(
    questions: List[QuestionSpec], responses: Iterable[ResponseItem]
) -> ScoreResult:
    pairs = resolve_selections(questions, response_map(responses))
    raw_score, max_score = weighted_totals(pairs)
    normalized = raw_score / max_score if max_score > 0 else _ZERO
    return ScoreResult(raw_score=raw_score, max_score=max_score, normalized_score=normalized)
