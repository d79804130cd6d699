from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from src.api.dependencies import get_portfolio_service
from src.api.routers import advisory_config
from src.api.routers.advisory_http_errors import raise_advisory_http_exception
from src.core.errors import AdvisoryError
from src.core.models import Portfolio
from src.core.portfolio.models import (
    BulkRebalanceRequest,
    HoldingAddRequest,
    HoldingEditRequest,
    PortfolioApproveRequest,
    PortfolioBuildRequest,
    RemovalPolicy,
)
from src.core.portfolio.service import PortfolioService

router = APIRouter(tags=["Portfolio Construction"])

PortfolioId = Annotated[
    str, Path(description="Portfolio identifier.", examples=["pf_7d8e9f0a1b2c"])
]
HoldingId = Annotated[
    str, Path(description="Holding identifier.", examples=["hld_0a1b2c3d4e5f"])
]


def _assert_portfolio_apis_enabled() -> None:
    if not advisory_config.portfolio_api_enabled():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="PORTFOLIO_API_DISABLED")


@router.post(
    "/portfolios",
    response_model=Portfolio,
    status_code=status.HTTP_201_CREATED,
    summary="Build Portfolio From IPS",
    description=(
        "Selects the first catalog security for each IPS asset class and allocates the "
        "investment by target percent. Nothing is stored when a class has no security."
    ),
)
def build_portfolio(
    payload: PortfolioBuildRequest,
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.build(payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.get(
    "/portfolios/{portfolio_id}",
    response_model=Portfolio,
    status_code=status.HTTP_200_OK,
    summary="Get Portfolio",
)
def get_portfolio(
    portfolio_id: PortfolioId,
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.get_portfolio(portfolio_id=portfolio_id)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.get(
    "/clients/{client_id}/portfolio",
    response_model=Portfolio,
    status_code=status.HTTP_200_OK,
    summary="Get Latest Client Portfolio",
)
def get_latest_client_portfolio(
    client_id: Annotated[str, Path(description="Client identifier.", examples=["cl_001"])],
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.latest_for_client(client_id=client_id)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.post(
    "/portfolios/{portfolio_id}/holdings",
    response_model=Portfolio,
    status_code=status.HTTP_200_OK,
    summary="Add Holding",
    description="Appends a holding for the security with zero percent, amount and units.",
)
def add_holding(
    portfolio_id: PortfolioId,
    payload: HoldingAddRequest,
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.add_holding(portfolio_id=portfolio_id, payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.patch(
    "/portfolios/{portfolio_id}/holdings/{holding_id}",
    response_model=Portfolio,
    status_code=status.HTTP_200_OK,
    summary="Edit Holding",
    description=(
        "Edits exactly one of percent, amount or security. The other holding fields and the "
        "cash balance are re-derived."
    ),
)
def edit_holding(
    portfolio_id: PortfolioId,
    holding_id: HoldingId,
    payload: HoldingEditRequest,
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.edit_holding(
            portfolio_id=portfolio_id, holding_id=holding_id, payload=payload
        )
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.delete(
    "/portfolios/{portfolio_id}/holdings/{holding_id}",
    response_model=Portfolio,
    status_code=status.HTTP_200_OK,
    summary="Remove Holding",
    description=(
        "SELL returns the holding amount to cash. REBALANCE redistributes its percent "
        "proportionally across the remaining holdings."
    ),
)
def remove_holding(
    portfolio_id: PortfolioId,
    holding_id: HoldingId,
    policy: Annotated[
        RemovalPolicy,
        Query(description="Removal policy.", examples=["SELL"]),
    ],
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.remove_holding(
            portfolio_id=portfolio_id, holding_id=holding_id, policy=policy
        )
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.put(
    "/portfolios/{portfolio_id}/holdings",
    response_model=Portfolio,
    status_code=status.HTTP_200_OK,
    summary="Rebalance Portfolio",
    description="Replaces all holdings and the cash balance at once, or rejects the proposal.",
)
def rebalance_portfolio(
    portfolio_id: PortfolioId,
    payload: BulkRebalanceRequest,
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.rebalance(portfolio_id=portfolio_id, payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.post(
    "/portfolios/{portfolio_id}/approve",
    response_model=Portfolio,
    status_code=status.HTTP_200_OK,
    summary="Record Client Approval",
)
def approve_portfolio(
    portfolio_id: PortfolioId,
    payload: PortfolioApproveRequest,
    service: Annotated[PortfolioService, Depends(get_portfolio_service)] = None,
) -> Portfolio:
    _assert_portfolio_apis_enabled()
    try:
        return service.approve(portfolio_id=portfolio_id, payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)
