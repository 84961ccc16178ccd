from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from explorer.base import ErrorContextManager, get_service_name
from explorer.api.exceptions import AssetNotFoundError
from explorer.api.routers import get_assets_service
from explorer.api.services.assets_service import AssetsService
from explorer.api.utils.transaction_translator import list_response, serialize_asset

error_ctx = ErrorContextManager(get_service_name())

router = APIRouter(
    prefix="/assets",
    tags=["assets"],
    responses={
        404: {"description": "Not found"},
        500: {"description": "Internal server error"}
    }
)


@router.get(
    "/find",
    summary="Get an asset by identifier",
)
async def find_asset(
    id: str = Query(..., min_length=1, description="Asset identifier"),
    assets_service: AssetsService = Depends(get_assets_service),
):
    try:
        asset = await run_in_threadpool(assets_service.find, id)
    except Exception as e:
        error_ctx.log_error("Error finding asset", e, operation="find_asset", identifier=id)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    if asset is None:
        raise AssetNotFoundError(id)
    return serialize_asset(asset)


@router.get(
    "",
    summary="List assets",
    description="Returns a page of assets ordered by name. `search` matches part of the name or identifier.",
)
async def list_assets(
    search: Optional[str] = Query(None, min_length=1, description="Part of an asset name or identifier"),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(20, ge=1, le=100, description="Number of assets per page"),
    assets_service: AssetsService = Depends(get_assets_service),
):
    try:
        assets = await run_in_threadpool(assets_service.list, search=search, page=page, page_size=page_size)
        return list_response([serialize_asset(asset) for asset in assets])
    except Exception as e:
        error_ctx.log_error("Error listing assets", e, operation="list_assets", search=search)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
