"""
FILE: src/core/allocation/builder.py
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from src.core.allocation.models import ALLOCATION_MODELS, ASSET_CLASS_ALIASES
from src.core.collaborators import (
    AllocationGenerationRequest,
    AllocationGenerator,
    GeneratedAllocation,
    GeneratedTarget,
)
from src.core.errors import AllocationValidationError, ExternalServiceError
from src.core.models import AllocationSet, RiskCategory, TargetAllocation

logger = logging.getLogger(__name__)

DEFAULT_BAND_WIDTH = Decimal("5")
SUM_TOLERANCE = Decimal("0.5")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def default_bands(target_percent: Decimal) -> tuple[Decimal, Decimal]:
    lower = max(_ZERO, target_percent - DEFAULT_BAND_WIDTH)
    upper = min(_HUNDRED, target_percent + DEFAULT_BAND_WIDTH)
    return lower, upper


def target_with_bands(
    asset_class: str,
    target_percent: Decimal,
    lower_band: Optional[Decimal] = None,
    upper_band: Optional[Decimal] = None,
) -> TargetAllocation:
    """Uses the supplied bands when they bracket the target, else target +/- 5 points."""
    if (
        lower_band is None
        or upper_band is None
        or not (_ZERO <= lower_band <= target_percent <= upper_band <= _HUNDRED)
    ):
        lower_band, upper_band = default_bands(target_percent)
    return TargetAllocation(
        asset_class=asset_class,
        target_percent=target_percent,
        lower_band=lower_band,
        upper_band=upper_band,
    )


def validate_allocation_total(targets: Iterable[TargetAllocation]) -> Decimal:
    targets = list(targets)
    if not targets:
        raise AllocationValidationError("ALLOCATION_EMPTY")
    asset_classes = [target.asset_class for target in targets]
    if len(set(asset_classes)) != len(asset_classes):
        raise AllocationValidationError("ALLOCATION_DUPLICATE_ASSET_CLASS")
    total = sum((target.target_percent for target in targets), _ZERO)
    if abs(total - _HUNDRED) > SUM_TOLERANCE:
        raise AllocationValidationError(f"ALLOCATION_SUM_NOT_100: {total}")
    return total


def baseline_allocation(category: RiskCategory) -> AllocationSet:
    model = ALLOCATION_MODELS[category]
    return AllocationSet(
        risk_category=category,
        target_allocations=[
            target_with_bands(asset_class, percent)
            for asset_class, percent in model.targets.items()
        ],
        rebalancing_cadence=model.rebalance_cadence,
        source="BASELINE",
    )


def accept_generated_allocation(
    baseline: AllocationSet,
    generated: GeneratedAllocation,
    *,
    allowed_asset_classes: Iterable[str],
) -> AllocationSet:
    allowed = set(allowed_asset_classes)
    disallowed = sorted(
        {target.asset_class for target in generated.target_allocations} - allowed
    )
    if disallowed:
        raise AllocationValidationError(f"ASSET_CLASS_NOT_ALLOWED: {', '.join(disallowed)}")
    targets = [_to_target(target) for target in generated.target_allocations]
    validate_allocation_total(targets)
    return AllocationSet(
        risk_category=baseline.risk_category,
        target_allocations=targets,
        rebalancing_cadence=generated.rebalancing_cadence or baseline.rebalancing_cadence,
        source="GENERATED",
        narrative_text=generated.narrative_text,
    )


def build_allocation(
    category: RiskCategory,
    *,
    generator: Optional[AllocationGenerator],
    time_horizon_years: int,
    liquidity_needs: Decimal,
    tax_considerations: Decimal,
    allowed_asset_classes: List[str],
    model_variant: str,
) -> AllocationSet:
    """
    Builds target allocations for a category.

    The external generator may perturb the baseline; whatever it returns must use only the
    allowed asset classes and sum to 100 within tolerance, otherwise the baseline is kept.
    """
    baseline = baseline_allocation(category)
    if generator is None:
        return baseline

    allowed = allowed_asset_classes or [t.asset_class for t in baseline.target_allocations]
    request = AllocationGenerationRequest(
        risk_category=category,
        time_horizon_years=time_horizon_years,
        liquidity_needs=liquidity_needs,
        tax_considerations=tax_considerations,
        baseline_allocations=baseline.target_allocations,
        allowed_asset_classes=allowed,
    )
    try:
        generated = generator.generate_allocation(request, model_variant=model_variant)
        return accept_generated_allocation(baseline, generated, allowed_asset_classes=allowed)
    except (ExternalServiceError, AllocationValidationError) as exc:
        reason = str(exc).split(":", 1)[0]
        logger.warning(
            "allocation.generated_rejected",
            extra={
                "extra_fields": {
                    "risk_category": category.value,
                    "reason": reason,
                    "model_variant": model_variant,
                }
            },
        )
        return baseline.model_copy(update={"fallback_reason": reason})


def _to_target(target: GeneratedTarget) -> TargetAllocation:
    return target_with_bands(
        target.asset_class, target.target_percent, target.lower_band, target.upper_band
    )


def allowed_asset_classes(catalog_classes: Iterable[str]) -> List[str]:
    """Catalog classes plus the baseline buckets that one of them satisfies."""
    allowed = set(catalog_classes)
    for bucket, aliases in ASSET_CLASS_ALIASES.items():
        if allowed.intersection(aliases):
            allowed.add(bucket)
    return sorted(allowed)
