from fastapi import APIRouter

from wallet.api.categories import router as categories_router
from wallet.api.expenses import router as expenses_router
from wallet.api.summaries import router as summaries_router
from wallet.api.sync import router as sync_router

api_router = APIRouter()
api_router.include_router(categories_router)
api_router.include_router(expenses_router)
api_router.include_router(summaries_router)
api_router.include_router(sync_router)
