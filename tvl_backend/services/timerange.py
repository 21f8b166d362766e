"""
Slot enumeration and gap filling for the hourly, six-hourly and daily series.

Every requested key gets exactly one row per slot between the resolution's minimum
timestamp and the latest timestamp. Missing slots get a zero-valued placeholder,
rows outside the range are dropped, and rows sharing a (key, slot) are summed.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, Protocol, Sequence, Tuple, TypeVar

from prometheus_client import Counter

from tvl_backend.core.config import DAY, HOUR, SIX_HOURS, Settings
from tvl_backend.schemas.registry import Token
from tvl_backend.schemas.tvl import AggregatedReport, ProjectRef, Report, ReportType, UnixTime

PLACEHOLDER_SLOTS = Counter('tvl_placeholder_slots_total', 'Slots filled with a zero placeholder', ['resolution'])


class Combinable(Protocol):
    timestamp: UnixTime

    def combine(self, other): ...


R = TypeVar('R', bound=Combinable)
K = TypeVar('K', bound=Hashable)
T = TypeVar('T')


def floor_to(timestamp: UnixTime, step: int) -> UnixTime:
    return timestamp // step * step


def ceil_to(timestamp: UnixTime, step: int) -> UnixTime:
    return -(-timestamp // step) * step


@dataclass(frozen=True)
class Resolution:
    name: str
    step: int
    window: Optional[int]  # None means unbounded, series starts at genesis

    def max_timestamp(self, latest: UnixTime) -> UnixTime:
        return floor_to(latest, self.step)

    def min_timestamp(self, latest: UnixTime, genesis: Optional[UnixTime] = None) -> UnixTime:
        upper = self.max_timestamp(latest)
        if self.window is None:
            if genesis is None:
                return upper
            return min(ceil_to(max(genesis, 0), self.step), upper)
        return min(ceil_to(max(latest - self.window, 0), self.step), upper)

    def timestamps(self, latest: UnixTime, genesis: Optional[UnixTime] = None) -> range:
        return range(self.min_timestamp(latest, genesis), self.max_timestamp(latest) + 1, self.step)


@dataclass(frozen=True)
class Resolutions:
    hourly: Resolution
    six_hourly: Resolution
    daily: Resolution

    @classmethod
    def from_settings(cls, settings: Settings) -> "Resolutions":
        return cls(
            hourly=Resolution("hourly", HOUR, settings.HOURLY_WINDOW_SECONDS),
            six_hourly=Resolution("six_hourly", SIX_HOURS, settings.SIX_HOURLY_WINDOW_SECONDS),
            daily=Resolution("daily", DAY, None),
        )


@dataclass(frozen=True)
class ByResolution(Generic[T]):
    hourly: T
    six_hourly: T
    daily: T


def fill_missing(
    resolution: Resolution,
    rows: Iterable[R],
    expected_keys: Sequence[K],
    latest_timestamp: UnixTime,
    key_of: Callable[[R], K],
    placeholder: Callable[[K, UnixTime], R],
    genesis: Optional[UnixTime] = None,
) -> Dict[K, List[R]]:
    """
    Returns one dense, ascending series per expected key.

    For an unbounded resolution without an explicit genesis, the earliest slot-aligned row
    of an expected key starts the series so that every key shares the same slots.
    """
    buckets: Dict[K, Dict[UnixTime, R]] = {key: {} for key in expected_keys}
    keyed = [(buckets[key_of(row)], row) for row in rows if key_of(row) in buckets]

    if resolution.window is None and genesis is None:
        aligned = [row.timestamp for _, row in keyed if row.timestamp % resolution.step == 0]
        if aligned:
            genesis = min(aligned)

    slots = resolution.timestamps(latest_timestamp, genesis)
    first, last = slots[0], slots[-1]

    for bucket, row in keyed:
        ts = row.timestamp
        if ts < first or ts > last or (ts - first) % resolution.step:
            continue
        existing = bucket.get(ts)
        bucket[ts] = row if existing is None else existing.combine(row)

    filled: Dict[K, List[R]] = {}
    missing = 0
    for key, bucket in buckets.items():
        series = []
        for ts in slots:
            row = bucket.get(ts)
            if row is None:
                row = placeholder(key, ts)
                missing += 1
            series.append(row)
        filled[key] = series

    PLACEHOLDER_SLOTS.labels(resolution=resolution.name).inc(missing)
    return filled


def _flatten(filled: Dict[K, List[R]]) -> List[R]:
    return [row for series in filled.values() for row in series]


def fill_all_missing_aggregated_reports(
    projects: Sequence[ProjectRef],
    reports: ByResolution[List[AggregatedReport]],
    latest_timestamp: UnixTime,
    resolutions: Resolutions,
    daily_genesis: Optional[UnixTime] = None,
) -> ByResolution[List[AggregatedReport]]:
    keys: List[Tuple[ProjectRef, ReportType]] = [(project, t) for project in projects for t in ReportType]

    def key_of(report: AggregatedReport):
        return report.project, report.report_type

    def placeholder(key, timestamp: UnixTime) -> AggregatedReport:
        project, report_type = key
        return AggregatedReport(project=project, report_type=report_type, timestamp=timestamp, usd_value=0)

    def fill(resolution: Resolution, rows: List[AggregatedReport], genesis=None):
        return _flatten(fill_missing(resolution, rows, keys, latest_timestamp, key_of, placeholder, genesis))

    return ByResolution(
        hourly=fill(resolutions.hourly, reports.hourly),
        six_hourly=fill(resolutions.six_hourly, reports.six_hourly),
        daily=fill(resolutions.daily, reports.daily, daily_genesis),
    )


def fill_all_missing_asset_reports(
    token: Token,
    project: ProjectRef,
    chain_id: str,
    report_type: ReportType,
    reports: ByResolution[List[Report]],
    latest_timestamp: UnixTime,
    resolutions: Resolutions,
    daily_genesis: Optional[UnixTime] = None,
) -> ByResolution[List[Report]]:
    key = (project, chain_id, token.id, report_type)

    def key_of(report: Report):
        return report.project, report.chain_id, report.asset_id, report.report_type

    def placeholder(_key, timestamp: UnixTime) -> Report:
        return Report(
            project=project,
            chain_id=chain_id,
            asset_id=token.id,
            report_type=report_type,
            timestamp=timestamp,
            amount=0,
            usd_value=0,
        )

    def fill(resolution: Resolution, rows: List[Report], genesis=None):
        return fill_missing(resolution, rows, [key], latest_timestamp, key_of, placeholder, genesis)[key]

    return ByResolution(
        hourly=fill(resolutions.hourly, reports.hourly),
        six_hourly=fill(resolutions.six_hourly, reports.six_hourly),
        daily=fill(resolutions.daily, reports.daily, daily_genesis),
    )
