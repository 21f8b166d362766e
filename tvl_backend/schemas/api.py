"""
Response contracts served to the frontend.
Models serialize with camelCase aliases; services construct them with snake_case names.
"""
from enum import Enum
from typing import Dict, Generic, List, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tvl_backend.schemas.tvl import ReportType, UnixTime

T = TypeVar('T')

ChartRow = List[Union[int, float]]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ErrorCode(str, Enum):
    NO_DATA = "NO_DATA"
    DATA_NOT_FULLY_SYNCED = "DATA_NOT_FULLY_SYNCED"
    INVALID_PROJECT_OR_ASSET = "INVALID_PROJECT_OR_ASSET"


class Success(ApiModel, Generic[T]):
    result: Literal["success"] = "success"
    data: T


class Failure(ApiModel):
    result: Literal["error"] = "error"
    error: ErrorCode


# --- Charts ---

class TvlApiChart(ApiModel):
    types: List[str]
    data: List[ChartRow]


class TvlApiCharts(ApiModel):
    hourly: TvlApiChart
    six_hourly: TvlApiChart
    daily: TvlApiChart


class ProjectToken(ApiModel):
    asset_id: str
    chain_id: str
    asset_type: List[ReportType]
    amount: float
    usd_value: float


class DetailedTvlProject(ApiModel):
    charts: TvlApiCharts
    tokens: List[ProjectToken]


class DetailedTvlApiResponse(ApiModel):
    combined: TvlApiCharts
    bridges: TvlApiCharts
    layers2s: TvlApiCharts = Field(alias="layers2s")
    projects: Dict[str, DetailedTvlProject]


# --- Breakdowns ---

class EscrowBreakdown(ApiModel):
    escrow_address: str
    balance: float
    usd_value: float


class CanonicalAssetBreakdown(ApiModel):
    asset_id: str
    chain_id: str
    usd_price: float
    balance: float
    usd_value: float
    escrows: List[EscrowBreakdown]


class NonCanonicalAssetBreakdown(ApiModel):
    asset_id: str
    chain_id: str
    usd_price: float
    amount: float
    usd_value: float


class ProjectAssetsBreakdown(ApiModel):
    canonical: List[CanonicalAssetBreakdown] = Field(default_factory=list)
    native: List[NonCanonicalAssetBreakdown] = Field(default_factory=list)
    external: List[NonCanonicalAssetBreakdown] = Field(default_factory=list)


class ProjectAssetsBreakdownApiResponse(ApiModel):
    data_timestamp: UnixTime
    breakdowns: Dict[str, ProjectAssetsBreakdown]
