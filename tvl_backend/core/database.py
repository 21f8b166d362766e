from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from tvl_backend.core.config import get_settings

# Lazy initialization to prevent import-time loop binding issues
class Database:
    def __init__(self, url: str | None = None):
        self._url = url
        self._engine = None
        self._session_maker = None

    @property
    def engine(self):
        if self._engine is None:
            settings = get_settings()
            self._engine = create_async_engine(self._url or settings.DATABASE_URL, echo=settings.DB_ECHO)
        return self._engine

    @property
    def session_maker(self):
        if self._session_maker is None:
            self._session_maker = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_maker

    async def dispose(self):
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_maker = None

db_manager = Database()

async def get_db():
    async with db_manager.session_maker() as session:
        yield session
