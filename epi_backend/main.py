"""
main.py - API de gestión de inventario de EPI
"""
import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.api_router import api_router
from .api.middleware import setup_middlewares
from .app.application.dtos.schemas import HealthResponse
from .app.core.config import get_settings
from .app.core.exceptions import AppException
from .infrastructure.database.session import create_tables
from .infrastructure.logging.structured_logger import setup_logging

API_VERSION = "1.0.0"

logger = logging.getLogger("epi_backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configurar logging y verificar el esquema al iniciar"""
    settings = get_settings()
    setup_logging(
        log_level=settings.log_level,
        log_file=os.path.join(settings.log_dir, "app.log"),
        audit_log_file=os.path.join(settings.log_dir, "audit.log"),
    )
    await create_tables()
    logger.info("Tablas de base de datos verificadas/creadas")
    yield


# Crear la aplicación FastAPI
app = FastAPI(
    title="EPI API - Inventario de Equipos de Protección Individual",
    description="API para notas de movimentação, ajustes, entregas y devoluciones de EPI",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

setup_middlewares(app)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Traducir excepciones de la aplicación a respuestas HTTP"""
    if exc.status_code >= 500:
        logger.error(f"Error interno: {exc.message}", exc_info=exc)
    else:
        logger.info(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix="/api")


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Endpoint de salud"""
    return HealthResponse(status="healthy", service="epi-backend", version=API_VERSION)


if __name__ == "__main__":
    uvicorn.run("epi_backend.main:app", host="0.0.0.0", port=8000, reload=True)
