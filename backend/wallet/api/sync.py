from fastapi import APIRouter, Depends, HTTPException, status

from wallet.api.deps import get_current_user_id, get_sync_manager
from wallet.models.pending_expense import PendingExpense
from wallet.schemas.sync import (
    ConnectivityUpdateRequest,
    PendingMutationItem,
    PendingMutationListResponse,
    RetryFailedResponse,
    SyncReportResponse,
    SyncStatusResponse,
)
from wallet.services.sync import SyncManager, SyncReport

router = APIRouter(prefix="/sync", tags=["sync"])


def _to_pending_item(entry: PendingExpense) -> PendingMutationItem:
    return PendingMutationItem(
        queue_id=entry.id,
        category=entry.category,
        name=entry.name,
        quantity=entry.quantity,
        unit=entry.unit,
        amount=entry.amount,
        description=entry.description,
        date=entry.date.isoformat(),
        year_month=entry.year_month,
        day=entry.day,
        status=entry.status.value if hasattr(entry.status, "value") else str(entry.status),
        error=entry.error,
        created_at=entry.created_at.isoformat(),
    )


def _to_report_response(report: SyncReport) -> SyncReportResponse:
    return SyncReportResponse(
        synced=report.synced,
        failed=report.failed,
        skipped=report.skipped,
        ran=report.ran,
    )


async def _status_for(manager: SyncManager, user_id: str) -> SyncStatusResponse:
    last_attempt = manager.last_sync_attempt(user_id)
    return SyncStatusResponse(
        is_online=manager.connectivity.is_online,
        is_syncing=manager.is_syncing(user_id),
        pending_count=await manager.queue.pending_count(user_id),
        last_sync_attempt=last_attempt.isoformat() if last_attempt else None,
    )


@router.get("/pending", response_model=PendingMutationListResponse)
async def list_pending_mutations(
    user_id: str = Depends(get_current_user_id),
    manager: SyncManager = Depends(get_sync_manager),
) -> PendingMutationListResponse:
    entries = await manager.engine.list_pending_mutations(user_id)
    return PendingMutationListResponse(
        items=[_to_pending_item(entry) for entry in entries],
        pending_count=await manager.queue.pending_count(user_id),
    )


@router.post("", response_model=SyncReportResponse)
async def run_sync(
    user_id: str = Depends(get_current_user_id),
    manager: SyncManager = Depends(get_sync_manager),
) -> SyncReportResponse:
    return _to_report_response(await manager.sync(user_id))


@router.post("/retry-failed", response_model=RetryFailedResponse)
async def retry_failed_mutations(
    user_id: str = Depends(get_current_user_id),
    manager: SyncManager = Depends(get_sync_manager),
) -> RetryFailedResponse:
    return RetryFailedResponse(requeued=await manager.retry_failed(user_id))


@router.delete("/pending/{queue_id}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_pending_mutation(
    queue_id: int,
    user_id: str = Depends(get_current_user_id),
    manager: SyncManager = Depends(get_sync_manager),
) -> None:
    if not await manager.queue.clear(user_id, queue_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Queued expense not found.",
        )


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    user_id: str = Depends(get_current_user_id),
    manager: SyncManager = Depends(get_sync_manager),
) -> SyncStatusResponse:
    return await _status_for(manager, user_id)


@router.post("/connectivity", response_model=SyncStatusResponse)
async def update_connectivity(
    payload: ConnectivityUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    manager: SyncManager = Depends(get_sync_manager),
) -> SyncStatusResponse:
    await manager.connectivity.set_online(payload.online)
    return await _status_for(manager, user_id)
