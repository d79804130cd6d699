import json
import logging
from typing import Optional

from pydantic import ValidationError

from src.core.assessment.questionnaires import default_questionnaire, parse_questionnaire_catalog
from src.core.models import Questionnaire, Security

logger = logging.getLogger(__name__)

DEFAULT_SECURITIES_PAYLOAD = [
    {
        "security_id": "sec_us_total_market",
        "name": "US Total Market Equity Fund",
        "asset_class": "Equity",
        "price": "245.10",
    },
    {
        "security_id": "sec_intl_developed",
        "name": "International Developed Equity Fund",
        "asset_class": "Equity",
        "price": "58.40",
    },
    {
        "security_id": "sec_core_bond",
        "name": "Core Aggregate Bond Fund",
        "asset_class": "Fixed Income",
        "price": "98.75",
    },
    {
        "security_id": "sec_short_treasury",
        "name": "Short-Term Treasury Fund",
        "asset_class": "Fixed Income",
        "price": "50.20",
    },
    {
        "security_id": "sec_real_estate",
        "name": "Real Estate Income Fund",
        "asset_class": "Alternatives",
        "price": "87.30",
    },
    {
        "security_id": "sec_gold_trust",
        "name": "Gold Trust",
        "asset_class": "Alternatives",
        "price": "185.00",
    },
]


def parse_security_catalog(catalog_json: Optional[str]) -> list[Security]:
    normalized_json = (catalog_json or "").strip()
    if not normalized_json:
        return [Security.model_validate(item) for item in DEFAULT_SECURITIES_PAYLOAD]
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        logger.warning("security_catalog.invalid_json")
        return []
    if not isinstance(raw, list):
        return []

    securities: list[Security] = []
    seen: set[str] = set()
    for definition in raw:
        if not isinstance(definition, dict):
            continue
        try:
            security = Security.model_validate(definition)
        except ValidationError:
            logger.warning(
                "security_catalog.skipped_definition",
                extra={"extra_fields": {"security_id": str(definition.get("security_id"))}},
            )
            continue
        if security.security_id in seen:
            continue
        seen.add(security.security_id)
        securities.append(security)
    return securities


class EnvJsonSecurityCatalog:
    """Securities keep catalog order within an asset class; the first one is the default pick."""

    def __init__(self, *, catalog_json: Optional[str]) -> None:
        self._securities = parse_security_catalog(catalog_json)

    def get_security(self, security_id: str) -> Optional[Security]:
        return next(
            (item for item in self._securities if item.security_id == security_id), None
        )

    def list_securities_by_asset_class(self, asset_class: str) -> list[Security]:
        return [item for item in self._securities if item.asset_class == asset_class]

    def list_securities(self) -> list[Security]:
        return sorted(self._securities, key=lambda item: (item.name, item.security_id))

    def list_asset_classes(self) -> list[str]:
        return sorted({item.asset_class for item in self._securities})


class EnvJsonQuestionnaireCatalog:
    def __init__(self, *, catalog_json: Optional[str]) -> None:
        self._questionnaires = parse_questionnaire_catalog(catalog_json) or [
            default_questionnaire()
        ]

    def get_questionnaire(self, *, version: str) -> Optional[Questionnaire]:
        return next((item for item in self._questionnaires if item.version == version), None)

    def list_questionnaires(self) -> list[Questionnaire]:
        return list(self._questionnaires)
