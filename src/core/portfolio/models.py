from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class RemovalPolicy(str, Enum):
    SELL = "SELL"
    REBALANCE = "REBALANCE"


class PortfolioBuildRequest(BaseModel):
    ips_id: str = Field(description="IPS whose target allocations seed the holdings.")
    total_investment: Decimal = Field(
        description="Capital to allocate; must be greater than zero.", examples=["100000"]
    )


class HoldingAddRequest(BaseModel):
    security_id: str = Field(description="Security to add with a zero allocation.")


class HoldingEditRequest(BaseModel):
    """Exactly one field is authoritative per edit; the others are re-derived."""

    allocated_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    allocated_amount: Optional[Decimal] = Field(default=None, ge=0)
    security_id: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_field(self) -> "HoldingEditRequest":
        provided = [
            name
            for name in ("allocated_percent", "allocated_amount", "security_id")
            if getattr(self, name) is not None
        ]
        if len(provided) != 1:
            raise ValueError(
                "exactly one of allocated_percent, allocated_amount, security_id is required"
            )
        return self


class ProposedHolding(BaseModel):
    holding_id: Optional[str] = Field(
        default=None, description="Existing holding id to keep; generated when omitted."
    )
    security_id: str
    allocated_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    allocated_amount: Optional[Decimal] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def exactly_one_authority(self) -> "ProposedHolding":
        if (self.allocated_percent is None) == (self.allocated_amount is None):
            raise ValueError("exactly one of allocated_percent, allocated_amount is required")
        return self


class BulkRebalanceRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "holdings": [
                    {"security_id": "sec_eq_1", "allocated_percent": "55"},
                    {"security_id": "sec_fi_1", "allocated_percent": "40"},
                ],
                "cash_balance": "5000",
            }
        }
    }

    holdings: List[ProposedHolding] = Field(description="Full proposed holdings list.")
    cash_balance: Decimal = Field(description="Proposed residual cash balance.")


class PortfolioApproveRequest(BaseModel):
    actor_id: Optional[str] = None
