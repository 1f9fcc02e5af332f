from datetime import date, datetime, time
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from wallet.api.deps import (
    get_aggregation_engine,
    get_current_user_id,
    get_expense_parser,
    get_llm_parse_context,
    get_store_session,
    http_error_for,
)
from wallet.core.config import get_settings
from wallet.core.errors import NotFoundError, WalletError
from wallet.models.expense import Expense
from wallet.schemas.expense import (
    AIExpenseRequest,
    AIExpenseResponse,
    ExpenseDeleteResponse,
    ExpenseInput,
    ExpenseItem,
    ExpenseListResponse,
    ExpenseUpdateRequest,
    ExpenseUpdateResponse,
    SubmitResult,
)
from wallet.services.ai_submit import submit_parsed_expenses
from wallet.services.aggregation import AggregationEngine
from wallet.services.expense_store import (
    get_expense,
    query_by_date_range,
    query_by_year_month,
    query_recent,
)
from wallet.services.llm.base import ExpenseParserProvider, ProviderNotConfiguredError
from wallet.services.llm.types import ParseContext, ParseResult
from wallet.services.normalization import parse_year_month

router = APIRouter(prefix="/expenses", tags=["expenses"])
settings = get_settings()

ALLOWED_MEDIA_CONTENT_TYPES = {
    "audio/webm",
    "audio/wav",
    "audio/x-wav",
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/ogg",
    "image/jpeg",
    "image/png",
    "image/webp",
}


def to_expense_item(expense: Expense) -> ExpenseItem:
    return ExpenseItem(
        id=str(expense.id),
        category=expense.category,
        name=expense.name,
        quantity=expense.quantity,
        unit=expense.unit,
        amount=expense.amount,
        description=expense.description,
        date=expense.date.isoformat(),
        year_month=expense.year_month,
        day=expense.day,
        created_at=expense.created_at.isoformat(),
        updated_at=expense.updated_at.isoformat(),
    )


def _parse_expense_id(expense_id: str) -> UUID:
    try:
        return UUID(expense_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid expense_id",
        ) from exc


def _normalize_content_type(value: str | None) -> str:
    if not value:
        return ""
    return value.split(";")[0].strip().lower()


async def _submit_parsed(
    engine: AggregationEngine,
    user_id: str,
    parsed: ParseResult,
) -> AIExpenseResponse:
    try:
        submission = await submit_parsed_expenses(engine, user_id, parsed.expenses)
    except WalletError as exc:
        raise http_error_for(exc) from exc

    results = submission.results
    return AIExpenseResponse(
        results=results,
        saved_count=sum(1 for result in results if result.outcome == "saved"),
        queued_count=sum(1 for result in results if result.outcome == "queued-offline"),
        rejected=submission.rejected,
        needs_clarification=parsed.needs_clarification,
        clarification_questions=parsed.clarification_questions,
    )


@router.post("", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
async def submit_expense(
    payload: ExpenseInput,
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> SubmitResult:
    try:
        return await engine.submit(user_id, payload)
    except WalletError as exc:
        raise http_error_for(exc) from exc


@router.post("/ai", response_model=AIExpenseResponse)
async def submit_expenses_from_text(
    payload: AIExpenseRequest,
    parser: ExpenseParserProvider = Depends(get_expense_parser),
    context: ParseContext = Depends(get_llm_parse_context),
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> AIExpenseResponse:
    if not payload.text.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Text is required.",
        )
    try:
        parsed = await parser.parse_expenses(payload.text, context)
    except ProviderNotConfiguredError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except httpx.HTTPError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Expense parser request failed.",
        ) from exc

    return await _submit_parsed(engine, user_id, parsed)


@router.post("/ai/media", response_model=AIExpenseResponse)
async def submit_expenses_from_media(
    media_file: UploadFile = File(...),
    parser: ExpenseParserProvider = Depends(get_expense_parser),
    context: ParseContext = Depends(get_llm_parse_context),
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> AIExpenseResponse:
    media_bytes = await media_file.read()
    if not media_bytes:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Media file is empty.",
        )

    max_upload_bytes = max(0, settings.media_max_upload_mb) * 1024 * 1024
    if len(media_bytes) > max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"Media file is too large. Limit is {settings.media_max_upload_mb} MB.",
        )

    content_type = _normalize_content_type(media_file.content_type)
    if content_type not in ALLOWED_MEDIA_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Unsupported media type. Upload an audio note or a jpeg, png or webp image.",
        )

    try:
        parsed = await parser.parse_media(media_bytes, content_type, context)
    except ProviderNotConfiguredError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except WalletError as exc:
        raise http_error_for(exc) from exc
    except httpx.HTTPError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Expense parser request failed.",
        ) from exc

    return await _submit_parsed(engine, user_id, parsed)


@router.get("/recent", response_model=ExpenseListResponse)
async def list_recent_expenses(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_store_session),
) -> ExpenseListResponse:
    expenses = await query_recent(session, user_id=user_id, limit=limit)
    return ExpenseListResponse(
        items=[to_expense_item(expense) for expense in expenses],
        total_count=len(expenses),
    )


@router.get("/month/{year_month}", response_model=ExpenseListResponse)
async def list_month_expenses(
    year_month: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_store_session),
) -> ExpenseListResponse:
    try:
        parse_year_month(year_month)
    except WalletError as exc:
        raise http_error_for(exc) from exc

    expenses = await query_by_year_month(session, user_id=user_id, year_month=year_month)
    return ExpenseListResponse(
        items=[to_expense_item(expense) for expense in expenses],
        total_count=len(expenses),
    )


@router.get("/range", response_model=ExpenseListResponse)
async def list_expenses_in_range(
    start: date = Query(...),
    end: date = Query(...),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_store_session),
) -> ExpenseListResponse:
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end must not be before start.",
        )

    expenses = await query_by_date_range(
        session,
        user_id=user_id,
        start=datetime.combine(start, time.min),
        end=datetime.combine(end, time.max),
    )
    return ExpenseListResponse(
        items=[to_expense_item(expense) for expense in expenses],
        total_count=len(expenses),
    )


@router.get("/{expense_id}", response_model=ExpenseItem)
async def read_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_store_session),
) -> ExpenseItem:
    expense_uuid = _parse_expense_id(expense_id)
    try:
        expense = await get_expense(session, user_id=user_id, expense_id=expense_uuid)
    except NotFoundError as exc:
        raise http_error_for(exc) from exc
    return to_expense_item(expense)


@router.patch("/{expense_id}", response_model=ExpenseUpdateResponse)
async def update_expense(
    expense_id: str,
    payload: ExpenseUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> ExpenseUpdateResponse:
    expense_uuid = _parse_expense_id(expense_id)
    try:
        expense = await engine.update(user_id, expense_uuid, payload)
    except WalletError as exc:
        raise http_error_for(exc) from exc

    return ExpenseUpdateResponse(
        item=to_expense_item(expense),
        message="Expense updated successfully.",
    )


@router.delete("/{expense_id}", response_model=ExpenseDeleteResponse)
async def delete_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> ExpenseDeleteResponse:
    expense_uuid = _parse_expense_id(expense_id)
    try:
        await engine.delete(user_id, expense_uuid)
    except WalletError as exc:
        raise http_error_for(exc) from exc

    return ExpenseDeleteResponse(
        expense_id=str(expense_uuid),
        message="Expense deleted successfully.",
    )
