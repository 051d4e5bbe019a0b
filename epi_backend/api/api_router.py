from fastapi import APIRouter

from .routers.catalog import router as catalog_router
from .routers.entregas import router as entregas_router
from .routers.notes import router as notes_router
from .routers.stock import config_router, router as stock_router

api_router = APIRouter()

api_router.include_router(notes_router)
api_router.include_router(stock_router)
api_router.include_router(config_router)
api_router.include_router(catalog_router)
api_router.include_router(entregas_router)
