"""API routes for creating plan-capped store resources."""
from __future__ import annotations

from typing import Any, Dict, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ..feature_gates import FeatureGateError
from ..resources import ResourceConflictError, ResourceValidationError, StoreAccessError
from ..schemas.resources import CreatedResourceResponse, ProductImportRequest, ProductImportResponse
from ..services.resources import get_bulk_importer, get_resource_service
from .billing import _get_current_user

router = APIRouter(prefix="/api/stores/{store_id}", tags=["resources"])


def _raise_resource_http_error(exc: Exception) -> NoReturn:
    if isinstance(exc, FeatureGateError):
        raise exc.to_http_exception() from exc
    if isinstance(exc, StoreAccessError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found") from exc
    if isinstance(exc, ResourceConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ResourceValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise exc


@router.post("/products", response_model=CreatedResourceResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    store_id: str,
    payload: Dict[str, Any] = Body(...),
    *,
    current_user=Depends(_get_current_user),
) -> CreatedResourceResponse:
    service = get_resource_service()
    try:
        row = service.create_product(store_id, str(current_user.id), payload)
    except (FeatureGateError, StoreAccessError, ResourceConflictError, ResourceValidationError) as exc:
        _raise_resource_http_error(exc)
    return CreatedResourceResponse.from_row(row)


@router.post("/catalogs", response_model=CreatedResourceResponse, status_code=status.HTTP_201_CREATED)
def create_catalog(
    store_id: str,
    payload: Dict[str, Any] = Body(...),
    *,
    current_user=Depends(_get_current_user),
) -> CreatedResourceResponse:
    service = get_resource_service()
    try:
        row = service.create_catalog(store_id, str(current_user.id), payload)
    except (FeatureGateError, StoreAccessError, ResourceConflictError, ResourceValidationError) as exc:
        _raise_resource_http_error(exc)
    return CreatedResourceResponse.from_row(row)


@router.post("/products/import", response_model=ProductImportResponse)
def import_products(
    store_id: str,
    payload: ProductImportRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ProductImportResponse:
    importer = get_bulk_importer()
    try:
        report = importer.import_products(store_id, str(current_user.id), payload.rows)
    except StoreAccessError as exc:
        _raise_resource_http_error(exc)
    return ProductImportResponse.from_report(report)
