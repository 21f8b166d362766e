"""
Serves detailed TVL charts, per-asset charts and per-project asset breakdowns.

Every operation first checks that aggregated data exists and was computed under the active
configuration, then fans the independent storage reads out concurrently and reconciles the
results. Domain errors are returned as typed results; storage errors propagate unchanged.
"""
import asyncio
import functools
from dataclasses import dataclass
from typing import Optional, Union

from prometheus_client import Counter, Histogram

from tvl_backend.core.config import Settings
from tvl_backend.core.database import Database
from tvl_backend.core.logging_config import get_logger
from tvl_backend.db.repositories import (
    AggregatedReportRepository,
    AggregatedReportStatusRepository,
    BalanceRepository,
    PriceRepository,
    ReportRepository,
)
from tvl_backend.schemas.api import (
    DetailedTvlApiResponse,
    ErrorCode,
    Failure,
    ProjectAssetsBreakdownApiResponse,
    Success,
    TvlApiChart,
    TvlApiCharts,
)
from tvl_backend.schemas.registry import Registry, load_registry
from tvl_backend.schemas.tvl import AGGREGATE_PROJECTS, ReportType
from tvl_backend.services.breakdown import (
    CategorizedBreakdowns,
    get_canonical_assets_breakdown,
    get_non_canonical_assets_breakdown,
    group_and_merge_breakdowns,
)
from tvl_backend.services.charts import generate_detailed_tvl_api_response, get_project_asset_chart_data
from tvl_backend.services.grouping import group_by_project_and_asset, group_by_project_and_timestamp
from tvl_backend.services.timerange import (
    ByResolution,
    Resolutions,
    fill_all_missing_aggregated_reports,
    fill_all_missing_asset_reports,
)
from tvl_backend.services.timings import SyncStatus, TimingsResolver

logger = get_logger("detailed_tvl")

DETAILED_TVL_REQUESTS = Counter('detailed_tvl_requests_total', 'Detailed TVL operations by outcome', ['operation', 'result'])
DETAILED_TVL_DURATION = Histogram('detailed_tvl_duration_seconds', 'Detailed TVL operation duration', ['operation'])

DetailedTvlResult = Union[Success[DetailedTvlApiResponse], Failure]
DetailedAssetTvlResult = Union[Success[TvlApiCharts], Failure]
ProjectAssetBreakdownResult = Union[Success[ProjectAssetsBreakdownApiResponse], Failure]


async def gather_or_cancel(*aws):
    """
    Awaits all reads jointly. The first failure cancels the reads still in flight
    and is re-raised as is.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


def instrumented(operation: str):
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                with DETAILED_TVL_DURATION.labels(operation=operation).time():
                    result = await fn(*args, **kwargs)
            except Exception:
                DETAILED_TVL_REQUESTS.labels(operation=operation, result="exception").inc()
                raise
            outcome = result.error.value if isinstance(result, Failure) else result.result
            DETAILED_TVL_REQUESTS.labels(operation=operation, result=outcome).inc()
            return result
        return wrapper
    return decorator


@dataclass(frozen=True)
class DetailedTvlControllerOptions:
    error_on_unsynced_detailed_tvl: bool = False
    daily_genesis: Optional[int] = None


class DetailedTvlController:
    def __init__(
        self,
        aggregated_report_repository: AggregatedReportRepository,
        report_repository: ReportRepository,
        aggregated_report_status_repository: AggregatedReportStatusRepository,
        balance_repository: BalanceRepository,
        price_repository: PriceRepository,
        registry: Registry,
        aggregated_config_hash: str,
        resolutions: Resolutions,
        options: DetailedTvlControllerOptions = DetailedTvlControllerOptions(),
    ):
        self.aggregated_report_repository = aggregated_report_repository
        self.report_repository = report_repository
        self.balance_repository = balance_repository
        self.price_repository = price_repository
        self.registry = registry
        self.aggregated_config_hash = aggregated_config_hash
        self.resolutions = resolutions
        self.options = options
        self.timings = TimingsResolver(aggregated_report_status_repository)

    def _gate(self, timings: SyncStatus) -> Optional[Failure]:
        if timings.latest_timestamp is None:
            return Failure(error=ErrorCode.NO_DATA)
        if not timings.is_synced and self.options.error_on_unsynced_detailed_tvl:
            logger.warning(
                "data_not_fully_synced",
                synced=timings.synced_reports_amount,
                unsynced=timings.unsynced_reports_amount,
            )
            return Failure(error=ErrorCode.DATA_NOT_FULLY_SYNCED)
        return None

    @instrumented("detailed_tvl")
    async def get_detailed_tvl_api_response(self) -> DetailedTvlResult:
        timings = await self.timings.resolve(self.aggregated_config_hash)
        failure = self._gate(timings)
        if failure:
            return failure
        latest_timestamp = timings.latest_timestamp

        hourly_reports, six_hourly_reports, daily_reports, latest_reports = await gather_or_cancel(
            self.aggregated_report_repository.get_hourly_with_any_type(
                self.resolutions.hourly.min_timestamp(latest_timestamp)
            ),
            self.aggregated_report_repository.get_six_hourly_with_any_type(
                self.resolutions.six_hourly.min_timestamp(latest_timestamp)
            ),
            self.aggregated_report_repository.get_daily_with_any_type(),
            self.report_repository.get_by_timestamp(latest_timestamp),
        )

        project_ids = [project.ref for project in self.registry.projects]

        filled = fill_all_missing_aggregated_reports(
            [*project_ids, *AGGREGATE_PROJECTS],
            ByResolution(hourly=hourly_reports, six_hourly=six_hourly_reports, daily=daily_reports),
            latest_timestamp,
            self.resolutions,
            self.options.daily_genesis,
        )

        # Project => Asset => [Report], one report per value type the asset is counted under.
        # Summed across value types in the chart generation.
        grouped_latest_reports = group_by_project_and_asset(latest_reports)

        response = generate_detailed_tvl_api_response(
            group_by_project_and_timestamp(filled.hourly),
            group_by_project_and_timestamp(filled.six_hourly),
            group_by_project_and_timestamp(filled.daily),
            grouped_latest_reports,
            project_ids,
            self.registry.tokens,
        )

        logger.info(
            "detailed_tvl_served",
            latest_timestamp=latest_timestamp,
            projects=len(project_ids),
            synced=timings.is_synced,
        )
        return Success(data=response)

    @instrumented("detailed_asset_tvl")
    async def get_detailed_asset_tvl_api_response(
        self,
        project_id: str,
        chain_id: str,
        asset_id: str,
        asset_type: ReportType,
    ) -> DetailedAssetTvlResult:
        asset = self.registry.find_token(asset_id)
        project = self.registry.find_project(project_id)

        if asset is None or project is None:
            logger.info("invalid_project_or_asset", project_id=project_id, asset_id=asset_id)
            return Failure(error=ErrorCode.INVALID_PROJECT_OR_ASSET)

        timings = await self.timings.resolve(self.aggregated_config_hash)
        failure = self._gate(timings)
        if failure:
            return failure
        latest_timestamp = timings.latest_timestamp

        hourly_reports, six_hourly_reports, daily_reports = await gather_or_cancel(
            self.report_repository.get_hourly_for_detailed(
                project.ref, chain_id, asset.id, asset_type,
                self.resolutions.hourly.min_timestamp(latest_timestamp),
            ),
            self.report_repository.get_six_hourly_for_detailed(
                project.ref, chain_id, asset.id, asset_type,
                self.resolutions.six_hourly.min_timestamp(latest_timestamp),
            ),
            self.report_repository.get_daily_for_detailed(project.ref, chain_id, asset.id, asset_type),
        )

        filled = fill_all_missing_asset_reports(
            asset,
            project.ref,
            chain_id,
            asset_type,
            ByResolution(hourly=hourly_reports, six_hourly=six_hourly_reports, daily=daily_reports),
            latest_timestamp,
            self.resolutions,
            self.options.daily_genesis,
        )

        types = ['timestamp', asset.symbol.lower(), 'usd']
        return Success(data=TvlApiCharts(
            hourly=TvlApiChart(types=types, data=get_project_asset_chart_data(filled.hourly, asset.decimals)),
            six_hourly=TvlApiChart(types=types, data=get_project_asset_chart_data(filled.six_hourly, asset.decimals)),
            daily=TvlApiChart(types=types, data=get_project_asset_chart_data(filled.daily, asset.decimals)),
        ))

    @instrumented("project_assets_breakdown")
    async def get_project_token_breakdown_api_response(self) -> ProjectAssetBreakdownResult:
        timings = await self.timings.resolve(self.aggregated_config_hash)
        failure = self._gate(timings)
        if failure:
            return failure
        latest_timestamp = timings.latest_timestamp

        latest_reports, balances, prices = await gather_or_cancel(
            self.report_repository.get_by_timestamp(latest_timestamp),
            self.balance_repository.get_by_timestamp(latest_timestamp),
            self.price_repository.get_by_timestamp(latest_timestamp),
        )

        tokens = self.registry.tokens
        breakdowns = group_and_merge_breakdowns(self.registry.projects, CategorizedBreakdowns(
            external=get_non_canonical_assets_breakdown(latest_reports, tokens, ReportType.EBV),
            native=get_non_canonical_assets_breakdown(latest_reports, tokens, ReportType.NMV),
            canonical=get_canonical_assets_breakdown(logger)(balances, prices, self.registry.projects, tokens),
        ))

        return Success(data=ProjectAssetsBreakdownApiResponse(
            data_timestamp=latest_timestamp,
            breakdowns=breakdowns,
        ))


def create_detailed_tvl_controller(settings: Settings, database: Database) -> DetailedTvlController:
    registry = load_registry(settings.REGISTRY_PATH)
    config_hash = settings.AGGREGATED_CONFIG_HASH or registry.config_hash()
    logger.info("controller_configured", projects=len(registry.projects), tokens=len(registry.tokens), config_hash=config_hash)
    return DetailedTvlController(
        aggregated_report_repository=AggregatedReportRepository(database),
        report_repository=ReportRepository(database),
        aggregated_report_status_repository=AggregatedReportStatusRepository(database),
        balance_repository=BalanceRepository(database),
        price_repository=PriceRepository(database),
        registry=registry,
        aggregated_config_hash=config_hash,
        resolutions=Resolutions.from_settings(settings),
        options=DetailedTvlControllerOptions(
            error_on_unsynced_detailed_tvl=settings.ERROR_ON_UNSYNCED_DETAILED_TVL,
            daily_genesis=settings.DAILY_GENESIS_TIMESTAMP,
        ),
    )
