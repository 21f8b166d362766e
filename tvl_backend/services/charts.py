"""
Turns filled, grouped reports into the chart payloads served by the detailed TVL endpoints.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Sequence

from tvl_backend.core.logging_config import get_logger
from tvl_backend.schemas.api import (
    ChartRow,
    DetailedTvlApiResponse,
    DetailedTvlProject,
    ProjectToken,
    TvlApiChart,
    TvlApiCharts,
)
from tvl_backend.schemas.registry import Token
from tvl_backend.schemas.tvl import (
    ALL,
    BRIDGES,
    LAYER2S,
    AggregatedReport,
    ProjectRef,
    RealProject,
    Report,
    ReportType,
    UnixTime,
)
from tvl_backend.services.grouping import reduce_reports, sum_usd_by_type

logger = get_logger("charts")

USD_DECIMALS = 2

AGGREGATED_CHART_TYPES = ['timestamp', 'valueUsd', 'cbv', 'ebv', 'nmv']

GroupedByTimestamp = Dict[ProjectRef, Dict[UnixTime, List[AggregatedReport]]]
GroupedByAsset = Dict[ProjectRef, Dict[str, List[Report]]]


def as_number(value: int, decimals: int) -> float:
    """Scales an integer in base units to a float with the given number of decimals."""
    return float(Decimal(value).scaleb(-decimals))


def get_aggregated_chart_data(reports_by_timestamp: Mapping[UnixTime, List[AggregatedReport]]) -> List[ChartRow]:
    rows: List[ChartRow] = []
    for timestamp in sorted(reports_by_timestamp):
        total, by_type = sum_usd_by_type(reports_by_timestamp[timestamp])
        rows.append([
            timestamp,
            as_number(total, USD_DECIMALS),
            as_number(by_type[ReportType.CBV], USD_DECIMALS),
            as_number(by_type[ReportType.EBV], USD_DECIMALS),
            as_number(by_type[ReportType.NMV], USD_DECIMALS),
        ])
    return rows


def get_project_charts(
    hourly: GroupedByTimestamp,
    six_hourly: GroupedByTimestamp,
    daily: GroupedByTimestamp,
    project: ProjectRef,
) -> TvlApiCharts:
    def chart(grouped: GroupedByTimestamp) -> TvlApiChart:
        return TvlApiChart(types=AGGREGATED_CHART_TYPES, data=get_aggregated_chart_data(grouped.get(project, {})))

    return TvlApiCharts(hourly=chart(hourly), six_hourly=chart(six_hourly), daily=chart(daily))


def get_project_tokens(
    reports_by_asset: Mapping[str, List[Report]],
    tokens: Mapping[str, Token],
) -> List[ProjectToken]:
    result: List[ProjectToken] = []
    for asset_id, reports in reports_by_asset.items():
        token = tokens.get(asset_id)
        if token is None:
            logger.warning("unknown_asset_in_reports", asset_id=asset_id)
            continue
        amount, usd_value = reduce_reports(reports)
        asset_types = {report.report_type for report in reports}
        result.append(ProjectToken(
            asset_id=asset_id,
            chain_id=reports[0].chain_id,
            asset_type=[t for t in ReportType if t in asset_types],
            amount=as_number(amount, token.decimals),
            usd_value=as_number(usd_value, USD_DECIMALS),
        ))
    result.sort(key=lambda t: (-t.usd_value, t.asset_id))
    return result


def generate_detailed_tvl_api_response(
    hourly: GroupedByTimestamp,
    six_hourly: GroupedByTimestamp,
    daily: GroupedByTimestamp,
    latest: GroupedByAsset,
    project_ids: Sequence[RealProject],
    tokens: Iterable[Token],
) -> DetailedTvlApiResponse:
    tokens_by_id = {token.id: token for token in tokens}

    projects: Dict[str, DetailedTvlProject] = {}
    for project in project_ids:
        projects[project.raw] = DetailedTvlProject(
            charts=get_project_charts(hourly, six_hourly, daily, project),
            tokens=get_project_tokens(latest.get(project, {}), tokens_by_id),
        )

    return DetailedTvlApiResponse(
        combined=get_project_charts(hourly, six_hourly, daily, ALL),
        bridges=get_project_charts(hourly, six_hourly, daily, BRIDGES),
        layers2s=get_project_charts(hourly, six_hourly, daily, LAYER2S),
        projects=projects,
    )


def get_project_asset_chart_data(reports: Iterable[Report], decimals: int) -> List[ChartRow]:
    by_timestamp: Dict[UnixTime, List[Report]] = {}
    for report in reports:
        by_timestamp.setdefault(report.timestamp, []).append(report)

    rows: List[ChartRow] = []
    for timestamp in sorted(by_timestamp):
        amount, usd_value = reduce_reports(by_timestamp[timestamp])
        rows.append([timestamp, as_number(amount, decimals), as_number(usd_value, USD_DECIMALS)])
    return rows
