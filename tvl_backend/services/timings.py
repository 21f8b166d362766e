from dataclasses import dataclass
from typing import Optional

from tvl_backend.core.logging_config import get_logger
from tvl_backend.db.repositories import AggregatedReportStatusRepository
from tvl_backend.schemas.tvl import UnixTime

logger = get_logger("data_timings")


@dataclass(frozen=True)
class SyncStatus:
    latest_timestamp: Optional[UnixTime]
    is_synced: bool
    synced_reports_amount: int = 0
    unsynced_reports_amount: int = 0


class TimingsResolver:
    """
    Reports the newest aggregated timestamp and whether every stored aggregate
    was computed under the given configuration hash.
    """

    def __init__(self, status_repository: AggregatedReportStatusRepository):
        self.status_repository = status_repository

    async def resolve(self, config_hash: str) -> SyncStatus:
        matching, different = await self.status_repository.find_counts_for_hash(config_hash)
        latest_timestamp = await self.status_repository.find_latest_timestamp()

        if latest_timestamp is None:
            return SyncStatus(latest_timestamp=None, is_synced=False)

        status = SyncStatus(
            latest_timestamp=latest_timestamp,
            is_synced=different == 0,
            synced_reports_amount=matching,
            unsynced_reports_amount=different,
        )
        logger.debug("data_timings", latest_timestamp=latest_timestamp, synced=matching, unsynced=different)
        return status
