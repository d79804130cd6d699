from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_security_catalog
from src.core.collaborators import SecurityCatalog
from src.core.models import Security

router = APIRouter(tags=["Security Catalog"])


@router.get(
    "/securities",
    response_model=List[Security],
    status_code=status.HTTP_200_OK,
    summary="List Securities",
    description="Returns all catalog securities sorted by name.",
)
def list_securities(
    catalog: Annotated[SecurityCatalog, Depends(get_security_catalog)] = None,
) -> List[Security]:
    return catalog.list_securities()


@router.get(
    "/securities/asset-classes",
    response_model=List[str],
    status_code=status.HTTP_200_OK,
    summary="List Asset Classes",
)
def list_asset_classes(
    catalog: Annotated[SecurityCatalog, Depends(get_security_catalog)] = None,
) -> List[str]:
    return catalog.list_asset_classes()
