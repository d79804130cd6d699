from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from src.api.dependencies import get_ips_service
from src.api.routers.advisory_http_errors import raise_advisory_http_exception
from src.core.allocation.ips import IpsService
from src.core.allocation.models import (
    IpsAllocationUpdateRequest,
    IpsDocument,
    IpsGenerateRequest,
)
from src.core.errors import AdvisoryError

router = APIRouter(tags=["Investment Policy Statement"])

IpsId = Annotated[str, Path(description="IPS identifier.", examples=["ips_5a1b2c3d4e5f"])]


@router.post(
    "/ips",
    response_model=IpsDocument,
    status_code=status.HTTP_201_CREATED,
    summary="Draft Investment Policy Statement",
    description=(
        "Drafts an IPS for a finalized assessment whose confidence meets the threshold. "
        "Target allocations come from the fixed table unless the generator returns a valid "
        "alternative."
    ),
)
def draft_ips(
    payload: IpsGenerateRequest,
    service: Annotated[IpsService, Depends(get_ips_service)] = None,
) -> IpsDocument:
    try:
        return service.generate(payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.get(
    "/ips/{ips_id}",
    response_model=IpsDocument,
    status_code=status.HTTP_200_OK,
    summary="Get Investment Policy Statement",
)
def get_ips(
    ips_id: IpsId,
    service: Annotated[IpsService, Depends(get_ips_service)] = None,
) -> IpsDocument:
    try:
        return service.get_ips(ips_id=ips_id)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.get(
    "/clients/{client_id}/ips",
    response_model=IpsDocument,
    status_code=status.HTTP_200_OK,
    summary="Get Latest Client IPS",
)
def get_latest_client_ips(
    client_id: Annotated[str, Path(description="Client identifier.", examples=["cl_001"])],
    service: Annotated[IpsService, Depends(get_ips_service)] = None,
) -> IpsDocument:
    try:
        return service.latest_for_client(client_id=client_id)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.put(
    "/ips/{ips_id}/allocations",
    response_model=IpsDocument,
    status_code=status.HTTP_200_OK,
    summary="Replace IPS Target Allocations",
    description="Targets must sum to 100 (+/- 0.5) and each band must bracket its target.",
)
def update_ips_allocations(
    ips_id: IpsId,
    payload: IpsAllocationUpdateRequest,
    service: Annotated[IpsService, Depends(get_ips_service)] = None,
) -> IpsDocument:
    try:
        return service.update_allocations(ips_id=ips_id, payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)
