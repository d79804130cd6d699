from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from src.core.models import AllocationModel, AllocationSource, RiskCategory, TargetAllocation

EQUITY = "Equity"
DEBT = "Debt"
ALTERNATIVES = "Alternatives"

ALLOCATION_MODELS: Dict[RiskCategory, AllocationModel] = {
    RiskCategory.CONSERVATIVE: AllocationModel(
        risk_category=RiskCategory.CONSERVATIVE,
        targets={EQUITY: Decimal("30"), DEBT: Decimal("60"), ALTERNATIVES: Decimal("10")},
        rebalance_cadence="Semi-Annual",
    ),
    RiskCategory.MODERATE: AllocationModel(
        risk_category=RiskCategory.MODERATE,
        targets={EQUITY: Decimal("50"), DEBT: Decimal("40"), ALTERNATIVES: Decimal("10")},
        rebalance_cadence="Quarterly",
    ),
    RiskCategory.AGGRESSIVE: AllocationModel(
        risk_category=RiskCategory.AGGRESSIVE,
        targets={EQUITY: Decimal("70"), DEBT: Decimal("20"), ALTERNATIVES: Decimal("10")},
        rebalance_cadence="Quarterly",
    ),
}

# Catalog asset classes that satisfy a baseline bucket, in lookup order.
ASSET_CLASS_ALIASES: Dict[str, tuple[str, ...]] = {
    DEBT: (DEBT, "Fixed Income"),
}

IpsStatus = Literal["DRAFT", "APPROVED"]


class IpsGenerateRequest(BaseModel):
    assessment_id: str = Field(description="Finalized, sufficiently confident assessment.")
    use_generator: bool = Field(
        default=True,
        description="Ask the external generator to perturb the baseline allocation.",
    )
    model_variant: Optional[str] = Field(default=None, examples=["default"])


class IpsDocument(BaseModel):
    ips_id: str
    client_id: str
    assessment_id: str
    risk_category: RiskCategory
    time_horizon_years: int
    liquidity_needs: Decimal
    tax_considerations: Decimal
    rebalancing_frequency: str
    investment_objective: str = ""
    target_allocations: List[TargetAllocation]
    allocation_source: AllocationSource
    allocation_fallback_reason: Optional[str] = None
    model_variant: str
    status: IpsStatus = "DRAFT"
    created_at: datetime
    updated_at: Optional[datetime] = None


class IpsAllocationUpdateRequest(BaseModel):
    target_allocations: List[TargetAllocation] = Field(min_length=1)
    rebalancing_frequency: Optional[str] = None
