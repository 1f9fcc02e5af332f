from collections.abc import AsyncIterator
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wallet.api.deps import WalletServices, get_wallet_services
from wallet.core.db import create_offline_queue_tables, create_store_tables
from wallet.core.security import create_access_token
from wallet.main import app
from wallet.services.aggregation import AggregationEngine
from wallet.services.connectivity import ConnectivityMonitor
from wallet.services.offline_queue import OfflineQueue
from wallet.services.sync import SyncManager

USER_ID = "user-1"


class FrozenClock:
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 15, 12, 0, 0))


@pytest.fixture
async def store_sessions() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await create_store_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def file_store_sessions(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'wallet.db'}")
    await create_store_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def file_queue_sessions(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'wallet-offline.db'}")
    await create_offline_queue_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def queue_sessions() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await create_offline_queue_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def connectivity() -> ConnectivityMonitor:
    return ConnectivityMonitor(initial_online=True)


@pytest.fixture
def queue(queue_sessions, clock: FrozenClock) -> OfflineQueue:
    return OfflineQueue(queue_sessions, clock=clock)


@pytest.fixture
def engine(
    store_sessions,
    queue: OfflineQueue,
    connectivity: ConnectivityMonitor,
    clock: FrozenClock,
) -> AggregationEngine:
    return AggregationEngine(store_sessions, queue, connectivity, clock=clock)


@pytest.fixture
def sync_manager(engine: AggregationEngine) -> SyncManager:
    return SyncManager(engine)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(USER_ID)}"}


@pytest.fixture
async def client(
    engine: AggregationEngine,
    sync_manager: SyncManager,
) -> AsyncIterator[AsyncClient]:
    services = WalletServices(engine=engine, sync_manager=sync_manager)

    async def override_get_wallet_services() -> WalletServices:
        return services

    app.dependency_overrides[get_wallet_services] = override_get_wallet_services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()
