from fastapi import APIRouter, Depends

from wallet.api.deps import get_aggregation_engine, get_current_user_id
from wallet.schemas.summary import CategoriesResponse
from wallet.services.aggregation import AggregationEngine

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=CategoriesResponse)
async def list_categories(
    user_id: str = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> CategoriesResponse:
    return CategoriesResponse(categories=await engine.get_categories(user_id))
