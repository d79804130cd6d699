import json
import logging
from typing import Optional

from pydantic import ValidationError

from src.core.models import Questionnaire

logger = logging.getLogger(__name__)


def _options(question_id: str, *texts: str) -> list[dict]:
    return [
        {
            "option_id": f"{question_id}_{chr(ord('a') + index)}",
            "text": text,
            "score_value": index + 1,
        }
        for index, text in enumerate(texts)
    ]


DEFAULT_QUESTIONNAIRE_PAYLOAD = {
    "questionnaire_id": "rq_default_v1",
    "version": "v1",
    "methodology_reference": "Willingness/ability split, minimum-of-partitions classification.",
    "questions": [
        {
            "question_id": "q1",
            "order_number": 1,
            "text": "What is your investment time horizon?",
            "weight": "1",
            "options": _options(
                "q1", "Less than 2 years", "2 to 5 years", "5 to 10 years", "More than 10 years"
            ),
        },
        {
            "question_id": "q2",
            "order_number": 2,
            "text": "How would you react if your portfolio fell 20% in a single month?",
            "weight": "2",
            "options": _options(
                "q2",
                "Sell everything",
                "Sell part of the portfolio",
                "Hold and wait",
                "Buy more",
            ),
        },
        {
            "question_id": "q3",
            "order_number": 3,
            "text": "Which statement best describes your primary investment goal?",
            "weight": "1",
            "options": _options(
                "q3",
                "Preserve capital",
                "Generate steady returns",
                "Balanced growth",
                "Maximise long-term growth",
            ),
        },
        {
            "question_id": "q4",
            "order_number": 4,
            "text": "How stable is your income expected to be over the next five years?",
            "weight": "1",
            "options": _options(
                "q4", "Very uncertain", "Somewhat uncertain", "Stable", "Very stable and growing"
            ),
        },
        {
            "question_id": "q5",
            "order_number": 5,
            "text": "How much of this portfolio might you need to withdraw within three years?",
            "weight": "1",
            "options": _options("q5", "More than half", "A quarter to a half", "A little", "None"),
        },
        {
            "question_id": "q6",
            "order_number": 6,
            "text": "How would you describe your investment experience?",
            "weight": "1",
            "options": _options("q6", "None", "Limited", "Moderate", "Extensive"),
        },
    ],
}


def default_questionnaire() -> Questionnaire:
    return Questionnaire.model_validate(DEFAULT_QUESTIONNAIRE_PAYLOAD)


def parse_questionnaire_catalog(catalog_json: Optional[str]) -> list[Questionnaire]:
    normalized_json = (catalog_json or "").strip()
    if not normalized_json:
        return []
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        logger.warning("questionnaire_catalog.invalid_json")
        return []
    if not isinstance(raw, list):
        return []

    questionnaires: list[Questionnaire] = []
    for definition in raw:
        if not isinstance(definition, dict):
            continue
        try:
            questionnaires.append(Questionnaire.model_validate(definition))
        except ValidationError:
            logger.warning(
                "questionnaire_catalog.skipped_definition",
                extra={"extra_fields": {"version": str(definition.get("version"))}},
            )
    return questionnaires


def select_questionnaire(
    questionnaires: list[Questionnaire], *, version: str
) -> Optional[Questionnaire]:
    """Returns the requested version, else the first questionnaire available."""
    exact = next((q for q in questionnaires if q.version == version), None)
    if exact is not None:
        return exact
    if questionnaires:
        logger.info(
            "questionnaire.version_fallback",
            extra={
                "extra_fields": {
                    "requested_version": version,
                    "served_version": questionnaires[0].version,
                }
            },
        )
        return questionnaires[0]
    return None
