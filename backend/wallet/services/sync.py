from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wallet.core.clock import Clock
from wallet.core.errors import SyncError, WalletError
from wallet.models.pending_expense import PendingExpense, PendingStatus
from wallet.services.aggregation import AggregationEngine
from wallet.services.offline_queue import to_normalized_expense

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    ran: bool = True


class SyncManager:
    """Replays queued expense creations through the aggregation engine.

    Only entries in ``pending`` are attempted; ``syncing`` and ``error``
    entries left by an earlier run wait for a manual retry. A failing replay
    never escapes ``sync``; the entry is marked ``error`` instead.
    """

    def __init__(self, engine: AggregationEngine, *, clock: Clock | None = None):
        self.engine = engine
        self.queue = engine.queue
        self.connectivity = engine.connectivity
        self.clock = clock or engine.clock
        self._active_users: set[str] = set()
        self._last_sync_attempt: dict[str, datetime] = {}
        self.connectivity.add_online_listener(self.sync_all_pending)

    def is_syncing(self, user_id: str) -> bool:
        return user_id in self._active_users

    def last_sync_attempt(self, user_id: str) -> datetime | None:
        return self._last_sync_attempt.get(user_id)

    async def _replay(self, entry: PendingExpense) -> None:
        try:
            await self.engine.create_online(entry.user_id, to_normalized_expense(entry))
        except WalletError as exc:
            raise SyncError(str(exc)) from exc
        except Exception as exc:
            logger.exception("unexpected error replaying queued expense: queue_id=%s", entry.id)
            raise SyncError(str(exc) or type(exc).__name__) from exc

    async def retry_failed(self, user_id: str) -> int:
        return await self.queue.retry_failed(
            user_id,
            include_syncing=not self.is_syncing(user_id),
        )

    async def sync(self, user_id: str) -> SyncReport:
        if not self.connectivity.is_online or self.is_syncing(user_id):
            return SyncReport(ran=False)

        self._active_users.add(user_id)
        self._last_sync_attempt[user_id] = self.clock.now()
        logger.info("sync started: user_id=%s", user_id)
        report = SyncReport()
        try:
            for entry in await self.queue.list_by_user(user_id):
                if entry.status != PendingStatus.PENDING:
                    report.skipped += 1
                    continue

                await self.queue.update_status(entry.id, PendingStatus.SYNCING)
                try:
                    await self._replay(entry)
                except SyncError as exc:
                    logger.warning("queued expense failed to sync: queue_id=%s error=%s", entry.id, exc)
                    await self.queue.update_status(entry.id, PendingStatus.ERROR, str(exc))
                    report.failed += 1
                    continue

                await self.queue.remove(entry.id)
                report.synced += 1
        finally:
            self._active_users.discard(user_id)

        logger.info(
            "sync finished: synced=%d failed=%d skipped=%d",
            report.synced,
            report.failed,
            report.skipped,
        )
        return report

    async def sync_all_pending(self) -> dict[str, SyncReport]:
        reports: dict[str, SyncReport] = {}
        for user_id in await self.queue.users_with_pending():
            reports[user_id] = await self.sync(user_id)
        return reports


class SyncScheduler:
    def __init__(self, manager: SyncManager, interval_seconds: int):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler()

    async def _run_job(self) -> None:
        reports = await self.manager.sync_all_pending()
        if reports:
            logger.info("scheduled sync ran for %d user(s)", len(reports))

    def start(self) -> None:
        self.scheduler.add_job(
            self._run_job,
            IntervalTrigger(seconds=self.interval_seconds),
            id="offline_queue_sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("Sync scheduler started with %ss interval", self.interval_seconds)

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")
