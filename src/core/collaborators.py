from decimal import Decimal
from typing import List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from src.core.models import BehavioralAnalysis, RiskCategory, Security, TargetAllocation


class TranscriptEntry(BaseModel):
    question: str
    answer: str


class BehavioralAnalysisRequest(BaseModel):
    risk_category: RiskCategory
    responses: List[TranscriptEntry]
    client_context: dict = Field(default_factory=dict)


class AllocationGenerationRequest(BaseModel):
    risk_category: RiskCategory
    time_horizon_years: int
    liquidity_needs: Decimal
    tax_considerations: Decimal
    baseline_allocations: List[TargetAllocation]
    allowed_asset_classes: List[str]


class GeneratedTarget(BaseModel):
    model_config = ConfigDict(extra="ignore")

    asset_class: str = Field(min_length=1)
    target_percent: Decimal = Field(ge=0, le=100)
    lower_band: Optional[Decimal] = Field(default=None, ge=0, le=100)
    upper_band: Optional[Decimal] = Field(default=None, ge=0, le=100)


class GeneratedAllocation(BaseModel):
    """Validated payload returned by the allocation/IPS text collaborator."""

    model_config = ConfigDict(extra="ignore")

    target_allocations: List[GeneratedTarget] = Field(min_length=1)
    rebalancing_cadence: Optional[str] = None
    narrative_text: str = ""


class BehavioralAnalyzer(Protocol):
    def analyze(
        self, request: BehavioralAnalysisRequest, *, model_variant: str
    ) -> BehavioralAnalysis: ...


class AllocationGenerator(Protocol):
    def generate_allocation(
        self, request: AllocationGenerationRequest, *, model_variant: str
    ) -> GeneratedAllocation: ...


class SecurityCatalog(Protocol):
    def get_security(self, security_id: str) -> Optional[Security]: ...

    def list_securities_by_asset_class(self, asset_class: str) -> List[Security]: ...

    def list_securities(self) -> List[Security]: ...

    def list_asset_classes(self) -> List[str]: ...
