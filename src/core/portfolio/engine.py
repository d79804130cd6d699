"""
FILE: src/core/portfolio/engine.py

Percent / amount / units / cash arithmetic for portfolio holdings. Every operation is a pure
function from a portfolio to a new portfolio; cash is always recomputed from the full
holdings list.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from src.core.errors import PortfolioValidationError, RecordNotFoundError
from src.core.models import Holding, Portfolio, Security
from src.core.portfolio.models import ProposedHolding

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
RELATIVE_TOLERANCE = Decimal("0.000001")
OVER_ALLOCATION_TOLERANCE = Decimal("0.01")


def new_holding_id() -> str:
    return f"hld_{uuid.uuid4().hex[:12]}"


def units_for(amount: Decimal, price: Decimal) -> Decimal:
    if price <= 0:
        return _ZERO
    return amount / price


def percent_for(amount: Decimal, total_value: Decimal) -> Decimal:
    if total_value <= 0:
        return _ZERO
    return amount / total_value * _HUNDRED


def holding_from_percent(
    *,
    security: Security,
    percent: Decimal,
    total_value: Decimal,
    holding_id: Optional[str] = None,
) -> Holding:
    """Percent is authoritative: amount and units are derived from it."""
    if percent < 0:
        raise PortfolioValidationError("NEGATIVE_PERCENT")
    amount = total_value * percent / _HUNDRED
    return Holding(
        holding_id=holding_id or new_holding_id(),
        security_id=security.security_id,
        security_name=security.name,
        asset_class=security.asset_class,
        price=security.price,
        allocated_percent=percent,
        allocated_amount=amount,
        units=units_for(amount, security.price),
    )


def holding_from_amount(
    *,
    security: Security,
    amount: Decimal,
    total_value: Decimal,
    holding_id: Optional[str] = None,
) -> Holding:
    """Amount is authoritative: units and percent are derived from it."""
    if amount < 0:
        raise PortfolioValidationError("NEGATIVE_AMOUNT")
    if security.price <= 0:
        raise PortfolioValidationError(f"ZERO_PRICE_AMOUNT_EDIT: {security.security_id}")
    return Holding(
        holding_id=holding_id or new_holding_id(),
        security_id=security.security_id,
        security_name=security.name,
        asset_class=security.asset_class,
        price=security.price,
        allocated_percent=percent_for(amount, total_value),
        allocated_amount=amount,
        units=units_for(amount, security.price),
    )


def reprice_holding(holding: Holding, security: Security) -> Holding:
    """Security swap: the stored amount and percent are kept, units follow the new price."""
    return holding.model_copy(
        update={
            "security_id": security.security_id,
            "security_name": security.name,
            "asset_class": security.asset_class,
            "price": security.price,
            "units": units_for(holding.allocated_amount, security.price),
        }
    )


def _security_of(holding: Holding) -> Security:
    return Security(
        security_id=holding.security_id,
        name=holding.security_name,
        asset_class=holding.asset_class,
        price=holding.price,
    )


def compute_cash_balance(total_value: Decimal, holdings: Sequence[Holding]) -> Decimal:
    invested = sum((holding.allocated_amount for holding in holdings), _ZERO)
    return total_value - invested


def _tolerance(total_value: Decimal) -> Decimal:
    return max(abs(total_value), Decimal("1")) * RELATIVE_TOLERANCE


def _settle(portfolio: Portfolio, holdings: List[Holding]) -> Portfolio:
    total_value = portfolio.total_portfolio_value
    cash = compute_cash_balance(total_value, holdings)
    if cash < -_tolerance(total_value):
        raise PortfolioValidationError(f"NEGATIVE_CASH_BALANCE: {cash}")
    if cash < 0:
        # rounding residue below tolerance
        cash = _ZERO
    return portfolio.model_copy(update={"holdings": holdings, "cash_balance": cash})


def _locate(portfolio: Portfolio, holding_id: str) -> Tuple[int, Holding]:
    for index, holding in enumerate(portfolio.holdings):
        if holding.holding_id == holding_id:
            return index, holding
    raise RecordNotFoundError(f"HOLDING_NOT_FOUND: {holding_id}")


def _replace(portfolio: Portfolio, index: int, holding: Holding) -> List[Holding]:
    holdings = list(portfolio.holdings)
    holdings[index] = holding
    return holdings


def new_portfolio(
    *,
    portfolio_id: str,
    client_id: str,
    total_value: Decimal,
    ips_id: Optional[str] = None,
    targets: Sequence[Tuple[Security, Decimal]] = (),
    created_at: Optional[datetime] = None,
) -> Portfolio:
    if total_value <= 0:
        raise PortfolioValidationError("TOTAL_INVESTMENT_MUST_BE_POSITIVE")
    empty = Portfolio(
        portfolio_id=portfolio_id,
        client_id=client_id,
        ips_id=ips_id,
        total_portfolio_value=total_value,
        cash_balance=total_value,
        created_at=created_at,
    )
    holdings = [
        holding_from_percent(security=security, percent=percent, total_value=total_value)
        for security, percent in targets
    ]
    return _settle(empty, holdings)


def set_holding_percent(portfolio: Portfolio, holding_id: str, percent: Decimal) -> Portfolio:
    index, holding = _locate(portfolio, holding_id)
    updated = holding_from_percent(
        security=_security_of(holding),
        percent=percent,
        total_value=portfolio.total_portfolio_value,
        holding_id=holding.holding_id,
    )
    return _settle(portfolio, _replace(portfolio, index, updated))


def set_holding_amount(portfolio: Portfolio, holding_id: str, amount: Decimal) -> Portfolio:
    index, holding = _locate(portfolio, holding_id)
    updated = holding_from_amount(
        security=_security_of(holding),
        amount=amount,
        total_value=portfolio.total_portfolio_value,
        holding_id=holding.holding_id,
    )
    return _settle(portfolio, _replace(portfolio, index, updated))


def swap_holding_security(portfolio: Portfolio, holding_id: str, security: Security) -> Portfolio:
    index, holding = _locate(portfolio, holding_id)
    return _settle(portfolio, _replace(portfolio, index, reprice_holding(holding, security)))


def add_holding(
    portfolio: Portfolio, security: Security, holding_id: Optional[str] = None
) -> Portfolio:
    holding = holding_from_percent(
        security=security,
        percent=_ZERO,
        total_value=portfolio.total_portfolio_value,
        holding_id=holding_id,
    )
    return _settle(portfolio, [*portfolio.holdings, holding])


def sell_and_remove(portfolio: Portfolio, holding_id: str) -> Portfolio:
    """The removed amount returns to cash; other holdings keep their percentages."""
    index, _ = _locate(portfolio, holding_id)
    holdings = [h for position, h in enumerate(portfolio.holdings) if position != index]
    return _settle(portfolio, holdings)


def rebalance_and_remove(portfolio: Portfolio, holding_id: str) -> Portfolio:
    """
    Redistributes the removed holding's percent proportionally across the remaining holdings.

    factor = (remaining_total_percent + removed_percent) / remaining_total_percent; each
    remaining percent is scaled by it and amount/units are re-derived, so the freed share
    stays invested rather than going to cash.
    """
    index, removed = _locate(portfolio, holding_id)
    remaining = [h for position, h in enumerate(portfolio.holdings) if position != index]
    remaining_total = sum((h.allocated_percent for h in remaining), _ZERO)
    if remaining_total <= 0:
        raise PortfolioValidationError("REBALANCE_REMOVE_NO_REMAINING_WEIGHT")

    factor = (remaining_total + removed.allocated_percent) / remaining_total
    total_value = portfolio.total_portfolio_value
    holdings = [
        holding_from_percent(
            security=_security_of(holding),
            percent=holding.allocated_percent * factor,
            total_value=total_value,
            holding_id=holding.holding_id,
        )
        for holding in remaining
    ]
    return _settle(portfolio, holdings)


def bulk_rebalance(
    portfolio: Portfolio,
    proposals: Sequence[Tuple[ProposedHolding, Security]],
    cash_balance: Decimal,
) -> Portfolio:
    """
    Replaces the holdings list in one step.

    The proposal is refused as a whole when cash would be negative, when the percentages
    exceed 100 beyond tolerance, or when the proposed cash does not match the residual of the
    re-derived holdings.
    """
    if cash_balance < 0:
        raise PortfolioValidationError(f"NEGATIVE_CASH_BALANCE: {cash_balance}")

    total_value = portfolio.total_portfolio_value
    holdings: List[Holding] = []
    for proposal, security in proposals:
        if proposal.allocated_percent is not None:
            holding = holding_from_percent(
                security=security,
                percent=proposal.allocated_percent,
                total_value=total_value,
                holding_id=proposal.holding_id,
            )
        else:
            holding = holding_from_amount(
                security=security,
                amount=proposal.allocated_amount,
                total_value=total_value,
                holding_id=proposal.holding_id,
            )
        holdings.append(holding)

    holding_ids = [holding.holding_id for holding in holdings]
    if len(set(holding_ids)) != len(holding_ids):
        raise PortfolioValidationError("DUPLICATE_HOLDING_ID")

    total_percent = sum((holding.allocated_percent for holding in holdings), _ZERO)
    if total_percent > _HUNDRED + OVER_ALLOCATION_TOLERANCE:
        raise PortfolioValidationError(f"OVER_ALLOCATED: {total_percent}")

    residual = compute_cash_balance(total_value, holdings)
    if abs(residual - cash_balance) > _tolerance(total_value):
        raise PortfolioValidationError(
            f"CASH_BALANCE_MISMATCH: proposed {cash_balance}, residual {residual}"
        )
    return _settle(portfolio, holdings)
