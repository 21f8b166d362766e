"""
Reshapes flat report lists into per-project lookups and collapses rows that share a slot.

Several rows can exist for the same project, asset and timestamp when more than one
value type applies (e.g. USDC both canonically and externally bridged). They are
summed, never overwritten.
"""
from typing import Dict, Iterable, List, Tuple

from tvl_backend.schemas.tvl import AggregatedReport, ProjectRef, Report, ReportType, UnixTime


def group_by_project_and_timestamp(
    reports: Iterable[AggregatedReport],
) -> Dict[ProjectRef, Dict[UnixTime, List[AggregatedReport]]]:
    grouped: Dict[ProjectRef, Dict[UnixTime, List[AggregatedReport]]] = {}
    for report in reports:
        grouped.setdefault(report.project, {}).setdefault(report.timestamp, []).append(report)
    return grouped


def group_by_project_and_asset(
    reports: Iterable[Report],
) -> Dict[ProjectRef, Dict[str, List[Report]]]:
    grouped: Dict[ProjectRef, Dict[str, List[Report]]] = {}
    for report in reports:
        grouped.setdefault(report.project, {}).setdefault(report.asset_id, []).append(report)
    return grouped


def reduce_reports(reports: Iterable[Report]) -> Tuple[int, int]:
    """Sums (amount, usd_value) across value types."""
    amount = 0
    usd_value = 0
    for report in reports:
        amount += report.amount
        usd_value += report.usd_value
    return amount, usd_value


def sum_usd_by_type(reports: Iterable[AggregatedReport]) -> Tuple[int, Dict[ReportType, int]]:
    by_type = {t: 0 for t in ReportType}
    for report in reports:
        by_type[report.report_type] += report.usd_value
    return sum(by_type.values()), by_type
