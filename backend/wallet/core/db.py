from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from wallet.core.config import get_settings
from wallet.models.expense import Expense
from wallet.models.monthly_summary import MonthlySummary
from wallet.models.pending_expense import PendingExpense

settings = get_settings()

STORE_TABLES = [Expense.__table__, MonthlySummary.__table__]
OFFLINE_QUEUE_TABLES = [PendingExpense.__table__]

engine = create_async_engine(settings.database_url, echo=False, future=True)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# The offline queue lives in its own local database, apart from the store.
offline_engine = create_async_engine(settings.offline_queue_url, echo=False, future=True)
OfflineSessionLocal = async_sessionmaker(
    offline_engine, class_=AsyncSession, expire_on_commit=False
)


async def create_store_tables(target: AsyncEngine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=STORE_TABLES)


async def create_offline_queue_tables(target: AsyncEngine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=OFFLINE_QUEUE_TABLES)


async def init_db() -> None:
    await create_store_tables(engine)
    await create_offline_queue_tables(offline_engine)
