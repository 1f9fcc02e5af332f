from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wallet.core.config import get_settings
from wallet.core.db import OfflineSessionLocal, SessionLocal
from wallet.core.errors import (
    MediaProcessingTimeoutError,
    NotFoundError,
    OfflineError,
    SyncError,
    TransactionError,
    ValidationError,
    WalletError,
)
from wallet.core.security import user_id_from_token
from wallet.services.aggregation import AggregationEngine
from wallet.services.connectivity import ConnectivityMonitor
from wallet.services.llm.base import ExpenseParserProvider, ProviderNotConfiguredError
from wallet.services.llm.provider_factory import get_expense_parser_provider
from wallet.services.llm.types import ParseContext
from wallet.services.offline_queue import OfflineQueue
from wallet.services.sync import SyncManager

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

WALLET_ERROR_STATUS: list[tuple[type[WalletError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (OfflineError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (TransactionError, status.HTTP_409_CONFLICT),
    (SyncError, status.HTTP_502_BAD_GATEWAY),
    (MediaProcessingTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
]


def http_error_for(exc: WalletError) -> HTTPException:
    for error_type, status_code in WALLET_ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@dataclass
class WalletServices:
    engine: AggregationEngine
    sync_manager: SyncManager

    @property
    def connectivity(self) -> ConnectivityMonitor:
        return self.engine.connectivity

    @property
    def queue(self) -> OfflineQueue:
        return self.engine.queue


@lru_cache
def build_wallet_services() -> WalletServices:
    settings = get_settings()
    connectivity = ConnectivityMonitor(initial_online=True)
    engine = AggregationEngine(
        SessionLocal,
        OfflineQueue(OfflineSessionLocal),
        connectivity,
        category_cache_ttl=timedelta(seconds=settings.category_cache_ttl_seconds),
    )
    return WalletServices(engine=engine, sync_manager=SyncManager(engine))


async def get_wallet_services() -> WalletServices:
    return build_wallet_services()


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
    )
    try:
        return user_id_from_token(token)
    except ValueError:
        raise unauthorized


async def get_aggregation_engine(
    services: WalletServices = Depends(get_wallet_services),
) -> AggregationEngine:
    return services.engine


async def get_sync_manager(
    services: WalletServices = Depends(get_wallet_services),
) -> SyncManager:
    return services.sync_manager


async def get_store_session(
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> AsyncIterator[AsyncSession]:
    async with engine.session_factory() as session:
        yield session


async def get_expense_parser(
    user_id: str = Depends(get_current_user_id),
) -> ExpenseParserProvider:
    _ = user_id
    try:
        return get_expense_parser_provider()
    except ProviderNotConfiguredError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


async def get_llm_parse_context(
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> ParseContext:
    return ParseContext(
        reference_date=engine.clock.now().date(),
        known_categories=(await engine.get_categories(user_id))[:60],
    )
