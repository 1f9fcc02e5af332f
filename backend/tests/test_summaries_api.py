import pytest
from httpx import AsyncClient

from wallet.services.aggregation import AggregationEngine
from wallet.services.summary_store import get_summary


async def seed(client: AsyncClient, headers: dict[str, str]) -> None:
    for category, name, amount, when in [
        ("food", "Lunch", 60, "2024-03-02T12:00:00"),
        ("transport", "Taxi", 40, "2024-03-03T08:00:00"),
        ("food", "Groceries", 50, "2024-02-10T10:00:00"),
    ]:
        response = await client.post(
            "/expenses",
            json={"category": category, "name": name, "amount": amount, "date": when},
            headers=headers,
        )
        assert response.status_code == 201


@pytest.mark.asyncio
async def test_missing_summary_returns_404(client: AsyncClient, auth_headers) -> None:
    missing = await client.get("/summaries/2024-03", headers=auth_headers)
    malformed = await client.get("/summaries/2024-15", headers=auth_headers)

    assert missing.status_code == 404
    assert malformed.status_code == 422


@pytest.mark.asyncio
async def test_dashboard_endpoint(client: AsyncClient, auth_headers) -> None:
    await seed(client, auth_headers)

    response = await client.get("/summaries/dashboard", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["year_month"] == "2024-03"
    assert body["current_month_total"] == 100
    assert body["previous_month_total"] == 50
    assert body["monthly_change"] == 100
    assert [point["category"] for point in body["category_totals"]] == ["food", "transport"]
    assert [point["day"] for point in body["daily_totals"]] == [2, 3]
    assert [item["name"] for item in body["recent_expenses"]] == ["Taxi", "Lunch", "Groceries"]
    assert body["monthly_summary"]["expense_count"] == 2

    february = await client.get(
        "/summaries/dashboard",
        params={"selected_date": "2024-02-01"},
        headers=auth_headers,
    )
    assert february.json()["current_month_total"] == 50
    assert february.json()["previous_month_total"] == 0
    assert february.json()["monthly_change"] == 0


@pytest.mark.asyncio
async def test_comparison_and_trends(client: AsyncClient, auth_headers) -> None:
    await seed(client, auth_headers)

    comparison = await client.get("/summaries/comparison?months=3", headers=auth_headers)
    trends = await client.get("/summaries/trends", headers=auth_headers)

    assert comparison.json() == [
        {"month": "Jan 2024", "total": 0.0},
        {"month": "Feb 2024", "total": 50.0},
        {"month": "Mar 2024", "total": 100.0},
    ]
    assert trends.json()["trends"] == {
        "food": [{"month": "Feb 2024", "amount": 50.0}, {"month": "Mar 2024", "amount": 60.0}],
        "transport": [{"month": "Mar 2024", "amount": 40.0}],
    }


@pytest.mark.asyncio
async def test_validation_and_rebuild(
    client: AsyncClient,
    auth_headers,
    engine: AggregationEngine,
) -> None:
    await seed(client, auth_headers)
    async with engine.session_factory() as session:
        summary = await get_summary(session, user_id="user-1", year_month="2024-03")
        summary.total_amount = 1
        session.add(summary)
        await session.commit()

    broken = await client.get("/summaries/validation", headers=auth_headers)
    assert broken.json()["is_valid"] is False
    assert [month["is_valid"] for month in broken.json()["months"]] == [True, False]

    rebuilt = await client.post("/summaries/rebuild", headers=auth_headers)
    assert rebuilt.status_code == 200
    assert rebuilt.json() == {"rebuilt_months": ["2024-02", "2024-03"], "expense_count": 3}

    fixed = await client.get("/summaries/validation", headers=auth_headers)
    assert fixed.json()["is_valid"] is True
    march = (await client.get("/summaries/2024-03", headers=auth_headers)).json()
    assert march["total_amount"] == 100


@pytest.mark.asyncio
async def test_categories_endpoint(client: AsyncClient, auth_headers) -> None:
    await seed(client, auth_headers)

    response = await client.get("/categories", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"categories": ["food", "transport"]}


@pytest.mark.asyncio
async def test_rebuild_drops_stale_categories_from_the_cache(
    client: AsyncClient,
    auth_headers,
    engine: AggregationEngine,
) -> None:
    await seed(client, auth_headers)
    async with engine.session_factory() as session:
        summary = await get_summary(session, user_id="user-1", year_month="2024-03")
        summary.category_breakdown = {**summary.category_breakdown, "ghost": 5.0}
        session.add(summary)
        await session.commit()
    engine.category_cache.invalidate()

    before = await client.get("/categories", headers=auth_headers)
    await client.post("/summaries/rebuild", headers=auth_headers)
    after = await client.get("/categories", headers=auth_headers)

    assert "ghost" in before.json()["categories"]
    assert after.json()["categories"] == ["food", "transport"]
