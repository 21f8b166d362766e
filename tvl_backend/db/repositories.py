"""
Read access to the report tables.
Each call opens its own session so the controller can fan calls out concurrently.
Storage errors are not caught here; they propagate to the caller untouched.
"""
import time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select

from tvl_backend.core.config import DAY, HOUR, SIX_HOURS
from tvl_backend.core.database import Database
from tvl_backend.db.models import (
    AggregatedReportRecord,
    AggregatedReportStatusRecord,
    BalanceRecord,
    CachedDataRecord,
    PriceRecord,
    ReportRecord,
)
from tvl_backend.schemas.tvl import (
    AggregatedReport,
    Balance,
    Price,
    ProjectRef,
    Report,
    ReportType,
    UnixTime,
    project_ref,
)


def to_report(row: ReportRecord) -> Report:
    return Report(
        project=project_ref(row.project_id),
        chain_id=row.chain_id,
        asset_id=row.asset_id,
        report_type=ReportType(row.report_type),
        timestamp=row.timestamp,
        amount=int(row.amount),
        usd_value=row.usd_value,
    )


def to_aggregated_report(row: AggregatedReportRecord) -> AggregatedReport:
    return AggregatedReport(
        project=project_ref(row.project_id),
        report_type=ReportType(row.report_type),
        timestamp=row.timestamp,
        usd_value=row.usd_value,
    )


class BaseRepository:
    def __init__(self, database: Database):
        self._db = database

    async def _all(self, query) -> List[Any]:
        async with self._db.session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())


class AggregatedReportRepository(BaseRepository):
    async def get_hourly_with_any_type(self, min_timestamp: UnixTime) -> List[AggregatedReport]:
        return await self._get_with_any_type(HOUR, min_timestamp)

    async def get_six_hourly_with_any_type(self, min_timestamp: UnixTime) -> List[AggregatedReport]:
        return await self._get_with_any_type(SIX_HOURS, min_timestamp)

    async def get_daily_with_any_type(self) -> List[AggregatedReport]:
        return await self._get_with_any_type(DAY, None)

    async def _get_with_any_type(self, step: int, min_timestamp: Optional[UnixTime]) -> List[AggregatedReport]:
        query = select(AggregatedReportRecord).where(AggregatedReportRecord.timestamp % step == 0)
        if min_timestamp is not None:
            query = query.where(AggregatedReportRecord.timestamp >= min_timestamp)
        query = query.order_by(AggregatedReportRecord.timestamp, AggregatedReportRecord.id)
        rows = await self._all(query)
        return [to_aggregated_report(row) for row in rows]


class ReportRepository(BaseRepository):
    async def get_by_timestamp(self, timestamp: UnixTime) -> List[Report]:
        query = (
            select(ReportRecord)
            .where(ReportRecord.timestamp == timestamp)
            .order_by(ReportRecord.id)
        )
        rows = await self._all(query)
        return [to_report(row) for row in rows]

    async def get_hourly_for_detailed(
        self, project: ProjectRef, chain_id: str, asset_id: str, report_type: ReportType, min_timestamp: UnixTime
    ) -> List[Report]:
        return await self._get_for_detailed(project, chain_id, asset_id, report_type, HOUR, min_timestamp)

    async def get_six_hourly_for_detailed(
        self, project: ProjectRef, chain_id: str, asset_id: str, report_type: ReportType, min_timestamp: UnixTime
    ) -> List[Report]:
        return await self._get_for_detailed(project, chain_id, asset_id, report_type, SIX_HOURS, min_timestamp)

    async def get_daily_for_detailed(
        self, project: ProjectRef, chain_id: str, asset_id: str, report_type: ReportType
    ) -> List[Report]:
        return await self._get_for_detailed(project, chain_id, asset_id, report_type, DAY, None)

    async def _get_for_detailed(
        self,
        project: ProjectRef,
        chain_id: str,
        asset_id: str,
        report_type: ReportType,
        step: int,
        min_timestamp: Optional[UnixTime],
    ) -> List[Report]:
        query = select(ReportRecord).where(
            ReportRecord.project_id == project.raw,
            ReportRecord.chain_id == chain_id,
            ReportRecord.asset_id == asset_id,
            ReportRecord.report_type == report_type.value,
            ReportRecord.timestamp % step == 0,
        )
        if min_timestamp is not None:
            query = query.where(ReportRecord.timestamp >= min_timestamp)
        query = query.order_by(ReportRecord.timestamp, ReportRecord.id)
        rows = await self._all(query)
        return [to_report(row) for row in rows]


class AggregatedReportStatusRepository(BaseRepository):
    async def find_counts_for_hash(self, config_hash: str) -> Tuple[int, int]:
        """Returns (matching, different) status row counts for the given config hash."""
        matching = func.count().filter(AggregatedReportStatusRecord.config_hash == config_hash)
        different = func.count().filter(AggregatedReportStatusRecord.config_hash != config_hash)
        async with self._db.session_maker() as session:
            result = await session.execute(select(matching, different).select_from(AggregatedReportStatusRecord))
            row = result.one()
        return int(row[0] or 0), int(row[1] or 0)

    async def find_latest_timestamp(self) -> Optional[UnixTime]:
        async with self._db.session_maker() as session:
            result = await session.execute(select(func.max(AggregatedReportStatusRecord.timestamp)))
            return result.scalar()


class BalanceRepository(BaseRepository):
    async def get_by_timestamp(self, timestamp: UnixTime) -> List[Balance]:
        query = select(BalanceRecord).where(BalanceRecord.timestamp == timestamp).order_by(BalanceRecord.id)
        rows = await self._all(query)
        return [
            Balance(
                timestamp=row.timestamp,
                holder_address=row.holder_address.lower(),
                asset_id=row.asset_id,
                chain_id=row.chain_id,
                balance=int(row.balance),
            )
            for row in rows
        ]


class PriceRepository(BaseRepository):
    async def get_by_timestamp(self, timestamp: UnixTime) -> List[Price]:
        query = select(PriceRecord).where(PriceRecord.timestamp == timestamp).order_by(PriceRecord.id)
        rows = await self._all(query)
        return [Price(timestamp=row.timestamp, asset_id=row.asset_id, price_usd=row.price_usd) for row in rows]


class CachedDataRepository(BaseRepository):
    ROW_ID = 0  # only one row should exist

    async def get_data(self) -> Optional[Dict[str, Any]]:
        async with self._db.session_maker() as session:
            row = await session.get(CachedDataRecord, self.ROW_ID)
            return row.data if row else None

    async def save_data(self, data: Dict[str, Any]) -> int:
        async with self._db.session_maker() as session:
            await session.merge(CachedDataRecord(id=self.ROW_ID, unix_timestamp=int(time.time()), data=data))
            await session.commit()
        return self.ROW_ID

    async def delete_all(self) -> int:
        async with self._db.session_maker() as session:
            result = await session.execute(delete(CachedDataRecord))
            await session.commit()
            return result.rowcount
