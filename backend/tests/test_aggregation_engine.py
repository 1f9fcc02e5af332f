import asyncio
from datetime import datetime
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import select

from wallet.core.errors import NotFoundError, OfflineError, ValidationError
from wallet.models.expense import Expense
from wallet.models.pending_expense import PendingStatus
from wallet.schemas.expense import ExpenseInput, ExpenseSnapshot, ExpenseUpdateRequest
from wallet.services.aggregation import AggregationEngine
from wallet.services.expense_store import count_expenses, get_expense
from wallet.services.offline_queue import OfflineQueue
from wallet.services.summary_store import list_summaries

USER_ID = "user-1"


async def _submit(engine: AggregationEngine, **fields) -> UUID:
    result = await engine.submit(USER_ID, ExpenseInput(**fields))
    assert result.outcome == "saved"
    return UUID(result.id)


async def _assert_invariants(engine: AggregationEngine, user_id: str = USER_ID) -> None:
    async with engine.session_factory() as session:
        summaries = await list_summaries(session, user_id=user_id)
        for summary in summaries:
            assert summary.total_amount == pytest.approx(sum(summary.category_breakdown.values()))
            assert all(value > 0 for value in summary.category_breakdown.values())
            assert summary.expense_count >= 0
            assert summary.expense_count == await count_expenses(
                session, user_id=user_id, year_month=summary.year_month
            )


@pytest.mark.asyncio
async def test_online_submit_creates_expense_and_summary(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Lunch", amount=20000)

    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary is not None
    assert summary.total_amount == 20000
    assert summary.category_breakdown == {"food": 20000}
    assert summary.expense_count == 1
    assert summary.avg_per_day == 20000 / 31

    async with engine.session_factory() as session:
        record = await get_expense(session, user_id=USER_ID, expense_id=expense_id)
    assert record.year_month == "2024-03"
    assert record.day == 15
    assert record.quantity == 1.0
    assert record.unit == "unit"


@pytest.mark.asyncio
async def test_offline_submit_is_queued_without_touching_the_store(
    engine: AggregationEngine,
) -> None:
    await engine.connectivity.set_online(False)

    result = await engine.submit(USER_ID, ExpenseInput(category="food", name="Lunch", amount=20000))

    assert result.outcome == "queued-offline"
    assert result.id is None
    assert result.queue_id is not None
    pending = await engine.list_pending_mutations(USER_ID)
    assert [entry.status for entry in pending] == [PendingStatus.PENDING]
    assert pending[0].amount == 20000
    assert pending[0].year_month == "2024-03"
    assert await engine.get_monthly_summary(USER_ID, "2024-03") is None
    async with engine.session_factory() as session:
        assert await count_expenses(session, user_id=USER_ID) == 0


@pytest.mark.asyncio
async def test_submits_in_same_month_accumulate(engine: AggregationEngine) -> None:
    await _submit(engine, category="food", name="Groceries", amount=100)
    await _submit(engine, category="transport", name="Bus", amount=50)

    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary.total_amount == 150
    assert summary.category_breakdown == {"food": 100, "transport": 50}
    assert summary.expense_count == 2
    await _assert_invariants(engine)


@pytest.mark.asyncio
async def test_delete_removes_category_key_entirely(engine: AggregationEngine) -> None:
    food_id = await _submit(engine, category="food", name="Groceries", amount=100)
    await _submit(engine, category="transport", name="Bus", amount=50)

    await engine.delete(
        USER_ID,
        food_id,
        ExpenseSnapshot(category="food", amount=100, year_month="2024-03"),
    )

    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary.total_amount == 50
    assert summary.category_breakdown == {"transport": 50}
    assert summary.expense_count == 1
    await _assert_invariants(engine)


@pytest.mark.asyncio
async def test_category_change_in_same_month_moves_the_amount(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Juice", amount=100)

    updated = await engine.update(
        USER_ID,
        expense_id,
        ExpenseUpdateRequest(category="drinks"),
        old_year_month="2024-03",
    )

    assert updated.category == "drinks"
    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary.category_breakdown == {"drinks": 100}
    assert summary.total_amount == 100
    assert summary.expense_count == 1


@pytest.mark.asyncio
async def test_submit_then_delete_restores_summary_exactly(engine: AggregationEngine) -> None:
    await _submit(engine, category="food", name="Bread", amount=12.3)
    await _submit(engine, category="bills", name="Internet", amount=45.67)
    before = await engine.get_monthly_summary(USER_ID, "2024-03")
    snapshot = (before.total_amount, dict(before.category_breakdown), before.expense_count)

    expense_id = await _submit(engine, category="food", name="Cheese", amount=7.91)
    await engine.delete(USER_ID, expense_id)

    after = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert (after.total_amount, after.category_breakdown, after.expense_count) == snapshot


@pytest.mark.asyncio
async def test_cross_month_update_creates_missing_target_summary(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Dinner", amount=80)
    await _submit(engine, category="food", name="Lunch", amount=20)

    await engine.update(
        USER_ID,
        expense_id,
        ExpenseUpdateRequest(date=datetime(2024, 4, 2, 19, 0), amount=90),
        old_year_month="2024-03",
    )

    march = await engine.get_monthly_summary(USER_ID, "2024-03")
    april = await engine.get_monthly_summary(USER_ID, "2024-04")
    assert march.total_amount == 20
    assert march.category_breakdown == {"food": 20}
    assert march.expense_count == 1
    assert april.total_amount == 90
    assert april.category_breakdown == {"food": 90}
    assert april.expense_count == 1
    assert april.avg_per_day == 90 / 30

    async with engine.session_factory() as session:
        record = await get_expense(session, user_id=USER_ID, expense_id=expense_id)
    assert record.year_month == "2024-04"
    assert record.day == 2
    await _assert_invariants(engine)


@pytest.mark.asyncio
async def test_cross_month_update_into_existing_month(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Dinner", amount=80)
    await _submit(
        engine,
        category="transport",
        name="Train",
        amount=30,
        date=datetime(2024, 2, 10, 8, 0),
    )

    await engine.update(
        USER_ID,
        expense_id,
        ExpenseUpdateRequest(date=datetime(2024, 2, 11, 8, 0), category="dining"),
    )

    march = await engine.get_monthly_summary(USER_ID, "2024-03")
    february = await engine.get_monthly_summary(USER_ID, "2024-02")
    assert march.total_amount == 0
    assert march.category_breakdown == {}
    assert march.expense_count == 0
    assert february.total_amount == 110
    assert february.category_breakdown == {"transport": 30, "dining": 80}
    assert february.expense_count == 2
    await _assert_invariants(engine)


@pytest.mark.asyncio
async def test_update_keeps_untouched_fields(engine: AggregationEngine) -> None:
    expense_id = await _submit(
        engine,
        category="groceries",
        name="Rice",
        amount=60,
        quantity=5,
        unit="kg",
        description="monthly stock",
    )

    updated = await engine.update(USER_ID, expense_id, ExpenseUpdateRequest(amount=65))

    assert updated.name == "Rice"
    assert updated.quantity == 5
    assert updated.unit == "kg"
    assert updated.description == "monthly stock"
    assert updated.amount == 65
    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary.total_amount == 65
    assert summary.category_breakdown == {"groceries": 65}


@pytest.mark.asyncio
async def test_invalid_update_leaves_everything_unchanged(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Lunch", amount=40)

    with pytest.raises(ValidationError):
        await engine.update(USER_ID, expense_id, ExpenseUpdateRequest(amount=-5))

    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary.total_amount == 40
    assert summary.category_breakdown == {"food": 40}


@pytest.mark.asyncio
async def test_submit_rejects_missing_fields(engine: AggregationEngine) -> None:
    with pytest.raises(ValidationError):
        await engine.submit(USER_ID, ExpenseInput(category="food", amount=10))

    assert await engine.get_monthly_summary(USER_ID, "2024-03") is None
    assert await engine.list_pending_mutations(USER_ID) == []


@pytest.mark.asyncio
async def test_offline_submit_still_validates(engine: AggregationEngine) -> None:
    await engine.connectivity.set_online(False)

    with pytest.raises(ValidationError):
        await engine.submit(USER_ID, ExpenseInput(name="Lunch", amount=10))

    assert await engine.list_pending_mutations(USER_ID) == []


@pytest.mark.asyncio
async def test_update_and_delete_are_rejected_while_offline(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Lunch", amount=10)
    await engine.connectivity.set_online(False)

    with pytest.raises(OfflineError, match="Cannot delete expense while offline"):
        await engine.delete(USER_ID, expense_id)
    with pytest.raises(OfflineError, match="Cannot update expense while offline"):
        await engine.update(USER_ID, expense_id, ExpenseUpdateRequest(amount=20))

    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary.total_amount == 10
    assert await engine.list_pending_mutations(USER_ID) == []


@pytest.mark.asyncio
async def test_missing_expense_raises_not_found(engine: AggregationEngine) -> None:
    with pytest.raises(NotFoundError):
        await engine.delete(USER_ID, uuid4())
    with pytest.raises(NotFoundError):
        await engine.update(USER_ID, uuid4(), ExpenseUpdateRequest(amount=1))


@pytest.mark.asyncio
async def test_delete_with_missing_summary_raises_not_found(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Lunch", amount=10)

    with pytest.raises(NotFoundError):
        await engine.delete(
            USER_ID,
            expense_id,
            ExpenseSnapshot(category="food", amount=10, year_month="2023-01"),
        )

    async with engine.session_factory() as session:
        assert await count_expenses(session, user_id=USER_ID) == 1


@pytest.mark.asyncio
async def test_other_users_expenses_are_invisible(engine: AggregationEngine) -> None:
    expense_id = await _submit(engine, category="food", name="Lunch", amount=10)

    with pytest.raises(NotFoundError):
        await engine.delete("user-2", expense_id)

    assert await engine.get_monthly_summary("user-2", "2024-03") is None


@pytest.mark.asyncio
async def test_failed_online_save_falls_back_to_offline_queue(engine: AggregationEngine) -> None:
    broken = create_async_engine("sqlite+aiosqlite:////nonexistent-wallet-dir/wallet.db")
    failing = AggregationEngine(
        async_sessionmaker(broken, class_=AsyncSession, expire_on_commit=False),
        engine.queue,
        engine.connectivity,
        clock=engine.clock,
    )

    result = await failing.submit(USER_ID, ExpenseInput(category="food", name="Lunch", amount=25))

    assert result.outcome == "queued-offline"
    pending = await engine.list_pending_mutations(USER_ID)
    assert len(pending) == 1
    assert pending[0].status == PendingStatus.PENDING
    await broken.dispose()


@pytest.mark.asyncio
async def test_new_category_is_written_through_to_live_cache(engine: AggregationEngine) -> None:
    await _submit(engine, category="food", name="Lunch", amount=10)
    assert await engine.get_categories(USER_ID) == ["food"]

    await _submit(engine, category="Transport", name="Taxi", amount=5)

    assert await engine.get_categories(USER_ID) == ["food", "Transport"]


@pytest.mark.asyncio
async def test_many_mutations_keep_invariants(engine: AggregationEngine) -> None:
    ids = []
    for index, (category, amount) in enumerate(
        [("food", 10.5), ("food", 3.25), ("bills", 99.99), ("fun", 0.01), ("food", 7)]
    ):
        ids.append(
            await _submit(
                engine,
                category=category,
                name=f"item {index}",
                amount=amount,
                date=datetime(2024, 3 if index % 2 else 2, 5 + index),
            )
        )

    await engine.update(USER_ID, ids[0], ExpenseUpdateRequest(category="bills", amount=11))
    await engine.update(USER_ID, ids[1], ExpenseUpdateRequest(date=datetime(2024, 2, 1)))
    await engine.delete(USER_ID, ids[3])
    await engine.delete(USER_ID, ids[4])

    await _assert_invariants(engine)
    async with engine.session_factory() as session:
        result = await session.execute(select(Expense).where(Expense.user_id == USER_ID))
        remaining = result.scalars().all()
    assert sorted(expense.amount for expense in remaining) == [3.25, 11, 99.99]


@pytest.mark.asyncio
async def test_concurrent_submits_never_lose_summary_updates(
    file_store_sessions,
    file_queue_sessions,
    connectivity,
    clock,
) -> None:
    queue = OfflineQueue(file_queue_sessions, clock=clock)
    engine = AggregationEngine(file_store_sessions, queue, connectivity, clock=clock)
    await _submit(engine, category="food", name="Seed", amount=10)

    results = await asyncio.gather(
        *(
            engine.submit(USER_ID, ExpenseInput(category="food", name=f"Snack {index}", amount=1))
            for index in range(10)
        )
    )

    saved = sum(1 for result in results if result.outcome == "saved")
    queued = sum(1 for result in results if result.outcome == "queued-offline")
    assert saved + queued == 10
    assert len(await engine.list_pending_mutations(USER_ID)) == queued
    await _assert_invariants(engine)
    summary = await engine.get_monthly_summary(USER_ID, "2024-03")
    assert summary.expense_count == 1 + saved
    assert summary.total_amount == 10 + saved
