import os
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REGISTRY_PATH", str(Path(__file__).parent.parent / "config" / "registry.json"))
os.environ.setdefault("LOG_JSON", "false")

import pytest
from tvl_backend.core.config import DAY, HOUR, SIX_HOURS
from tvl_backend.core.database import Database
# Explicit import to ensure metadata is populated
from tvl_backend.db.models import Base
from tvl_backend.schemas.registry import Escrow, Registry, ReportProject, Token
from tvl_backend.services.detailed_tvl import DetailedTvlController, DetailedTvlControllerOptions
from tvl_backend.services.timerange import Resolution, Resolutions

ESCROW = "0x00000000000000000000000000000000000000aa"

# 1. Temporary-file DB per test
@pytest.fixture(scope="function")
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()

# 2. Small windows: three hourly and three six-hourly slots
@pytest.fixture
def resolutions():
    return Resolutions(
        hourly=Resolution("hourly", HOUR, 2 * HOUR),
        six_hourly=Resolution("six_hourly", SIX_HOURS, 2 * SIX_HOURS),
        daily=Resolution("daily", DAY, None),
    )

@pytest.fixture
def registry():
    return Registry(
        projects=[
            ReportProject(
                project_id="arbitrum",
                type="layer2",
                escrows=[Escrow(address=ESCROW, since_timestamp=0, tokens=["usdc-ethereum", "eth-ethereum"])],
            ),
            ReportProject(project_id="optimism", type="layer2"),
        ],
        tokens=[
            Token(id="usdc-ethereum", symbol="USDC", decimals=6, chain_id="ethereum"),
            Token(id="eth-ethereum", symbol="ETH", decimals=18, chain_id="ethereum"),
        ],
    )

# 3. In-memory storage collaborators sharing one call log
class FakeStorage:
    def __init__(self, latest=None, matching=0, different=0, aggregated=(), reports=(), balances=(), prices=(), fail_on=None):
        self.latest = latest
        self.matching = matching
        self.different = different
        self.aggregated = list(aggregated)
        self.reports = list(reports)
        self.balances = list(balances)
        self.prices = list(prices)
        self.fail_on = fail_on
        self.calls = []

    async def record(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise ConnectionError(f"{name} failed")

class FakeStatusRepository:
    def __init__(self, storage):
        self.storage = storage

    async def find_counts_for_hash(self, config_hash):
        await self.storage.record("find_counts_for_hash")
        return self.storage.matching, self.storage.different

    async def find_latest_timestamp(self):
        await self.storage.record("find_latest_timestamp")
        return self.storage.latest

class FakeAggregatedReportRepository:
    def __init__(self, storage):
        self.storage = storage

    def _select(self, step, min_timestamp):
        return [r for r in self.storage.aggregated if r.timestamp % step == 0 and r.timestamp >= min_timestamp]

    async def get_hourly_with_any_type(self, min_timestamp):
        await self.storage.record("get_hourly_with_any_type")
        return self._select(HOUR, min_timestamp)

    async def get_six_hourly_with_any_type(self, min_timestamp):
        await self.storage.record("get_six_hourly_with_any_type")
        return self._select(SIX_HOURS, min_timestamp)

    async def get_daily_with_any_type(self):
        await self.storage.record("get_daily_with_any_type")
        return self._select(DAY, 0)

class FakeReportRepository:
    def __init__(self, storage):
        self.storage = storage

    async def get_by_timestamp(self, timestamp):
        await self.storage.record("reports.get_by_timestamp")
        return [r for r in self.storage.reports if r.timestamp == timestamp]

    def _select(self, project, chain_id, asset_id, report_type, step, min_timestamp):
        return [
            r for r in self.storage.reports
            if r.project == project and r.chain_id == chain_id and r.asset_id == asset_id
            and r.report_type == report_type and r.timestamp % step == 0 and r.timestamp >= min_timestamp
        ]

    async def get_hourly_for_detailed(self, project, chain_id, asset_id, report_type, min_timestamp):
        await self.storage.record("get_hourly_for_detailed")
        return self._select(project, chain_id, asset_id, report_type, HOUR, min_timestamp)

    async def get_six_hourly_for_detailed(self, project, chain_id, asset_id, report_type, min_timestamp):
        await self.storage.record("get_six_hourly_for_detailed")
        return self._select(project, chain_id, asset_id, report_type, SIX_HOURS, min_timestamp)

    async def get_daily_for_detailed(self, project, chain_id, asset_id, report_type):
        await self.storage.record("get_daily_for_detailed")
        return self._select(project, chain_id, asset_id, report_type, DAY, 0)

class FakeBalanceRepository:
    def __init__(self, storage):
        self.storage = storage

    async def get_by_timestamp(self, timestamp):
        await self.storage.record("balances.get_by_timestamp")
        return [b for b in self.storage.balances if b.timestamp == timestamp]

class FakePriceRepository:
    def __init__(self, storage):
        self.storage = storage

    async def get_by_timestamp(self, timestamp):
        await self.storage.record("prices.get_by_timestamp")
        return [p for p in self.storage.prices if p.timestamp == timestamp]

@pytest.fixture
def make_controller(registry, resolutions):
    def factory(storage: FakeStorage, error_on_unsynced=False, **options):
        return DetailedTvlController(
            aggregated_report_repository=FakeAggregatedReportRepository(storage),
            report_repository=FakeReportRepository(storage),
            aggregated_report_status_repository=FakeStatusRepository(storage),
            balance_repository=FakeBalanceRepository(storage),
            price_repository=FakePriceRepository(storage),
            registry=registry,
            aggregated_config_hash="hash",
            resolutions=resolutions,
            options=DetailedTvlControllerOptions(error_on_unsynced_detailed_tvl=error_on_unsynced, **options),
        )
    return factory

@pytest.fixture
def storage_factory():
    return FakeStorage
