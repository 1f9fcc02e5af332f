from typing import Literal

from pydantic import BaseModel


class PendingMutationItem(BaseModel):
    queue_id: int
    category: str
    name: str
    quantity: float
    unit: str
    amount: float
    description: str
    date: str
    year_month: str
    day: int
    status: Literal["pending", "syncing", "error"]
    error: str | None = None
    created_at: str


class PendingMutationListResponse(BaseModel):
    items: list[PendingMutationItem]
    pending_count: int


class SyncReportResponse(BaseModel):
    synced: int
    failed: int
    skipped: int
    ran: bool


class SyncStatusResponse(BaseModel):
    is_online: bool
    is_syncing: bool
    pending_count: int
    last_sync_attempt: str | None = None


class ConnectivityUpdateRequest(BaseModel):
    online: bool


class RetryFailedResponse(BaseModel):
    requeued: int
