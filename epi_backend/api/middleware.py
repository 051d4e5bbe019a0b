"""
Middleware global para FastAPI.

Responsabilidades:
1. Correlación de requests (X-Request-ID) y logging de cada request
2. Rastro de auditoría de las escrituras sobre notas, estoque y entregas
3. CORS, compresión y headers de seguridad
"""
import logging
import time
import uuid

from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from ..infrastructure.logging.structured_logger import AuditLogger, request_id_var

logger = logging.getLogger(__name__)
audit_logger = AuditLogger()

ACTOR_HEADER = "X-User-Id"
REQUEST_ID_HEADER = "X-Request-ID"

# Prefijos cuyas escrituras quedan en el log de auditoría
AUDIT_PATHS = (
    "/api/notes",
    "/api/stock/adjustments",
    "/api/stock/inventory",
    "/api/entregas",
    "/api/config",
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


def _request_context(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
        "actor_user_id": request.headers.get(ACTOR_HEADER),
    }


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Asigna el request id y registra inicio y fin de cada request"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        context = _request_context(request)
        started = time.perf_counter()

        logger.info(
            f"{request.method} {request.url.path}",
            extra={"extra_data": {
                **context,
                "query": str(request.url.query) or None,
                "user_agent": request.headers.get("user-agent", "")[:100],
                "action": "request_start",
            }}
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Error no manejado en {request.method} {request.url.path}",
                extra={"extra_data": {
                    **context,
                    "error_type": type(e).__name__,
                    "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
                    "action": "request_error",
                }}
            )
            raise
        finally:
            request_id_var.reset(token)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.log(
            _level_for(response.status_code),
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={"extra_data": {
                **context,
                "request_id": request_id,
                "status_code": response.status_code,
                "elapsed_ms": elapsed_ms,
                "action": "request_complete",
            }}
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed_ms / 1000:.4f}"
        return response


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Rastro HTTP de las escrituras auditadas.
    Los detalles de negocio los registran los routers.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.method != "GET" and request.url.path.startswith(AUDIT_PATHS):
            audit_logger.log_system_event(
                "HTTP_WRITE",
                {**_request_context(request), "status_code": response.status_code}
            )
        return response


def setup_middlewares(app):
    """
    Configurar todos los middlewares de la aplicación.
    Starlette ejecuta primero el último agregado.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # En producción especificar dominios
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(AuditMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response
