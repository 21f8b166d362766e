from tvl_backend.core.database import Database, db_manager
from tvl_backend.db.models import Base

async def init_db(database: Database = db_manager):
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
