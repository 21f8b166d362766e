"""
Exposes the detailed TVL charts and asset breakdowns to the frontend.
Error results from the controller are mapped to status codes here; nothing below this layer raises them.
"""
from functools import lru_cache

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from tvl_backend.core.config import get_settings
from tvl_backend.core.database import db_manager
from tvl_backend.schemas.api import (
    DetailedTvlApiResponse,
    ErrorCode,
    Failure,
    ProjectAssetsBreakdownApiResponse,
    TvlApiCharts,
)
from tvl_backend.schemas.tvl import ReportType
from tvl_backend.services.detailed_tvl import DetailedTvlController, create_detailed_tvl_controller

router = APIRouter(prefix="/api")

ERROR_STATUS = {
    ErrorCode.NO_DATA: 404,
    ErrorCode.INVALID_PROJECT_OR_ASSET: 404,
    ErrorCode.DATA_NOT_FULLY_SYNCED: 422,
}


@lru_cache()
def get_controller() -> DetailedTvlController:
    return create_detailed_tvl_controller(get_settings(), db_manager)


def error_response(failure: Failure) -> JSONResponse:
    return JSONResponse(status_code=ERROR_STATUS[failure.error], content={"error": failure.error.value})


@router.get("/detailed-tvl", response_model=DetailedTvlApiResponse)
async def get_detailed_tvl(controller: DetailedTvlController = Depends(get_controller)):
    result = await controller.get_detailed_tvl_api_response()
    if isinstance(result, Failure):
        return error_response(result)
    return result.data


@router.get(
    "/projects/{project_id}/tvl/chains/{chain_id}/assets/{asset_id}/types/{asset_type}",
    response_model=TvlApiCharts,
)
async def get_detailed_asset_tvl(
    project_id: str,
    chain_id: str,
    asset_id: str,
    asset_type: ReportType,
    controller: DetailedTvlController = Depends(get_controller),
):
    result = await controller.get_detailed_asset_tvl_api_response(project_id, chain_id, asset_id, asset_type)
    if isinstance(result, Failure):
        return error_response(result)
    return result.data


@router.get("/project-assets-breakdown", response_model=ProjectAssetsBreakdownApiResponse)
async def get_project_assets_breakdown(controller: DetailedTvlController = Depends(get_controller)):
    """
    Returns canonical, native and external asset breakdowns for every configured project.
    """
    result = await controller.get_project_token_breakdown_api_response()
    if isinstance(result, Failure):
        return error_response(result)
    return result.data
