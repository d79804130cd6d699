import logging
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from src.core.allocation.builder import (
    allowed_asset_classes,
    build_allocation,
    validate_allocation_total,
)
from src.core.allocation.models import IpsAllocationUpdateRequest, IpsDocument, IpsGenerateRequest
from src.core.allocation.repository import IpsRepository
from src.core.assessment.models import AssessmentResponseRecord
from src.core.assessment.service import AssessmentService
from src.core.collaborators import AllocationGenerator, SecurityCatalog
from src.core.errors import RecordNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIME_HORIZON_YEARS = 5
_HORIZON_KEYWORDS = ("horizon", "years")
_FIRST_INTEGER = re.compile(r"(\d+)")


def extract_time_horizon(responses: Iterable[AssessmentResponseRecord]) -> int:
    for response in responses:
        text = response.question_text.lower()
        if not any(keyword in text for keyword in _HORIZON_KEYWORDS):
            continue
        match = _FIRST_INTEGER.search(response.selected_option_text)
        if match:
            return int(match.group(1))
        return DEFAULT_TIME_HORIZON_YEARS
    return DEFAULT_TIME_HORIZON_YEARS


class IpsService:
    def __init__(
        self,
        *,
        assessments: AssessmentService,
        repository: IpsRepository,
        catalog: SecurityCatalog,
        generator: Optional[AllocationGenerator] = None,
        default_model_variant: str = "default",
    ) -> None:
        self._assessments = assessments
        self._repository = repository
        self._catalog = catalog
        self._generator = generator
        self._default_model_variant = default_model_variant

    def generate(self, *, payload: IpsGenerateRequest) -> IpsDocument:
        assessment = self._assessments.require_eligible(assessment_id=payload.assessment_id)
        profile = assessment.client_profile
        category = assessment.effective_category
        horizon = extract_time_horizon(assessment.responses)
        liquidity = profile.liquidity_needs or Decimal("0")
        tax = profile.tax_bracket or Decimal("0")
        model_variant = payload.model_variant or self._default_model_variant

        allocation = build_allocation(
            category,
            generator=self._generator if payload.use_generator else None,
            time_horizon_years=horizon,
            liquidity_needs=liquidity,
            tax_considerations=tax,
            allowed_asset_classes=allowed_asset_classes(self._catalog.list_asset_classes()),
            model_variant=model_variant,
        )
        ips = IpsDocument(
            ips_id=f"ips_{uuid.uuid4().hex[:12]}",
            client_id=assessment.client_id,
            assessment_id=assessment.assessment_id,
            risk_category=category,
            time_horizon_years=horizon,
            liquidity_needs=liquidity,
            tax_considerations=tax,
            rebalancing_frequency=allocation.rebalancing_cadence,
            investment_objective=allocation.narrative_text,
            target_allocations=allocation.target_allocations,
            allocation_source=allocation.source,
            allocation_fallback_reason=allocation.fallback_reason,
            model_variant=model_variant,
            created_at=_utc_now(),
        )
        self._repository.create_ips(ips)
        logger.info(
            "ips.drafted",
            extra={
                "extra_fields": {
                    "ips_id": ips.ips_id,
                    "risk_category": category.value,
                    "allocation_source": allocation.source,
                }
            },
        )
        return ips

    def get_ips(self, *, ips_id: str) -> IpsDocument:
        ips = self._repository.get_ips(ips_id=ips_id)
        if ips is None:
            raise RecordNotFoundError("IPS_NOT_FOUND")
        return ips

    def latest_for_client(self, *, client_id: str) -> IpsDocument:
        rows = self._repository.list_ips(client_id=client_id)
        if not rows:
            raise RecordNotFoundError("IPS_NOT_FOUND")
        return max(rows, key=lambda row: (row.created_at, row.ips_id))

    def update_allocations(
        self, *, ips_id: str, payload: IpsAllocationUpdateRequest
    ) -> IpsDocument:
        ips = self.get_ips(ips_id=ips_id)
        validate_allocation_total(payload.target_allocations)
        ips.target_allocations = payload.target_allocations
        if payload.rebalancing_frequency:
            ips.rebalancing_frequency = payload.rebalancing_frequency
        ips.updated_at = _utc_now()
        self._repository.update_ips(ips)
        return ips


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
