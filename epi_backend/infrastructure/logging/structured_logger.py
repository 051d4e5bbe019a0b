"""
Logging estructurado para la aplicación.
Implementa logs en formato JSON para mejor procesamiento.

Características:
- Formato JSON estructurado, una línea por evento
- Identificador de request propagado por contextvars
- Logs separados por propósito (aplicación y auditoría)
- Rotación automática de archivos
"""
import contextvars
import functools
import inspect
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

# Fijado por el middleware HTTP; None fuera de una request
request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

# Dependencias que solo se registran desde WARNING
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StructuredFormatter(logging.Formatter):
    """
    Formatter para logs estructurados en JSON.
    Los datos de negocio llegan en record.extra_data.
    """

    def format(self, record):
        log_object = {
            "timestamp": _utc_now(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
            "pid": record.process or os.getpid(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_object["request_id"] = request_id

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_object.update(extra_data)

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, ensure_ascii=False, default=str)


def _rotating_handler(path: str, level: int, max_file_size: int, backup_count: int) -> RotatingFileHandler:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8")
    handler.setFormatter(StructuredFormatter())
    handler.setLevel(level)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: str = "logs/app.log",
    audit_log_file: str = "logs/audit.log",
    max_file_size: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configurar logging estructurado completo.

    Args:
        log_level: Nivel de log (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Archivo para logs generales
        audit_log_file: Archivo para logs de auditoría (notas, ajustes, entregas)
        max_file_size: Tamaño máximo de archivo antes de rotar
        backup_count: Número de archivos de backup a mantener

    Returns:
        logging.Logger: Logger raíz configurado
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating_handler(log_file, level, max_file_size, backup_count))

    # La auditoría va solo a su propio archivo
    audit = logging.getLogger(AuditLogger.LOGGER_NAME)
    audit.handlers.clear()
    audit.addHandler(_rotating_handler(audit_log_file, logging.INFO, max_file_size, backup_count))
    audit.setLevel(logging.INFO)
    audit.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class AuditLogger:
    """Rastro de auditoría de las operaciones que cambian estoque o entregas"""

    LOGGER_NAME = "audit"

    def __init__(self):
        self.logger = logging.getLogger(self.LOGGER_NAME)

    def _emit(self, message: str, event_type: str, actor_user_id: Optional[str] = None, **data: Any) -> None:
        payload = {"event_type": event_type, "recorded_at": _utc_now(), **data}
        if actor_user_id is not None:
            payload["actor_user_id"] = actor_user_id
        self.logger.info(message, extra={"extra_data": payload})

    def log_note_concluded(self, note_data: Dict[str, Any], entry_ids: list, actor_user_id: str):
        self._emit(
            f"Nota {note_data.get('number')} concluida",
            "NOTE_CONCLUDED",
            actor_user_id,
            note=note_data,
            ledger_entry_ids=entry_ids,
        )

    def log_note_cancelled(self, note_data: Dict[str, Any], reversal_ids: list,
                           actor_user_id: str, reason: Optional[str] = None):
        """Cancelación de nota; reversal_ids vacío para rascunhos"""
        self._emit(
            f"Nota {note_data.get('number')} cancelada",
            "NOTE_CANCELLED",
            actor_user_id,
            note=note_data,
            reversal_entry_ids=reversal_ids,
            reason=reason,
        )

    def log_adjustment(self, adjustment_data: Dict[str, Any], actor_user_id: str):
        self._emit("Ajuste directo de saldo", "STOCK_ADJUSTMENT", actor_user_id, adjustment=adjustment_data)

    def log_entrega(self, action: str, entrega_data: Dict[str, Any], actor_user_id: str):
        """action: issued, signed o cancelled"""
        self._emit(
            f"Entrega {entrega_data.get('id')} {action}",
            f"ENTREGA_{action.upper()}",
            actor_user_id,
            entrega=entrega_data,
        )

    def log_return(self, entrega_id: int, returned_items: list, actor_user_id: str,
                   cancelled: bool = False):
        action = "cancelada" if cancelled else "registrada"
        self._emit(
            f"Devolución {action} en la entrega {entrega_id}",
            "ENTREGA_RETURN_CANCELLED" if cancelled else "ENTREGA_RETURN",
            actor_user_id,
            entrega_id=entrega_id,
            items=returned_items,
        )

    def log_system_event(self, event_type: str, details: Dict[str, Any]):
        self._emit("Evento del sistema", event_type, details=details)


def _summarize_arguments(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Solo valores escalares; los casos de uso inyectados no se serializan"""
    return {
        key: value for key, value in kwargs.items()
        if isinstance(value, (str, int, float, bool)) or value is None
    }


def log_execution(logger_name: str = "app", level: str = "INFO"):
    """
    Decorador para logging de inicio, fin y duración de una función.
    Soporta funciones síncronas y corrutinas; conserva la firma original
    (FastAPI la inspecciona para resolver dependencias).

    Args:
        logger_name: Nombre del logger a usar
        level: Nivel de log para inicio y fin (los errores van en ERROR)
    """
    def decorator(func):
        logger = logging.getLogger(logger_name)
        log_method = getattr(logger, level.lower())

        def log_start(kwargs):
            log_method(
                f"Ejecutando {func.__name__}",
                extra={"extra_data": {
                    "function": func.__name__,
                    "arguments": _summarize_arguments(kwargs),
                    "action": "start",
                }}
            )

        def log_end(started: float, error: Optional[Exception] = None):
            data = {
                "function": func.__name__,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "success": error is None,
                "action": "complete" if error is None else "error",
            }
            if error is None:
                log_method(f"Completado {func.__name__}", extra={"extra_data": data})
                return
            data["error_type"] = type(error).__name__
            data["error"] = str(error)
            logger.error(f"Falló {func.__name__}", extra={"extra_data": data})

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                log_start(kwargs)
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    log_end(started, e)
                    raise
                log_end(started)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            log_start(kwargs)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log_end(started, e)
                raise
            log_end(started)
            return result
        return wrapper
    return decorator
