"""
Dependencias para inyección en FastAPI.
Centraliza la creación y gestión de dependencias para toda la aplicación.

Responsabilidades:
1. Proveer la fábrica de sesiones y el reloj
2. Identificar al usuario responsable (header X-User-Id)
3. Inyectar casos de uso concretos
"""
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..app.core.clock import Clock, SystemClock
from ..app.core.exceptions import ValidationException
from ..app.infrastructure.dependency_container import container
from ..infrastructure.database.session import SessionLocal
from ..infrastructure.logging.structured_logger import AuditLogger

# Servicios globales
audit_logger = AuditLogger()
system_clock = SystemClock()


def get_session_factory() -> async_sessionmaker:
    """Fábrica de sesiones asíncronas (sobrescribible en tests)"""
    return SessionLocal


def get_clock() -> Clock:
    return system_clock


def get_actor(x_user_id: str = Header(..., alias="X-User-Id", description="Usuario responsable")) -> str:
    """
    Usuario responsable de la operación.

    Raises:
        ValidationException: Si el header viene vacío
    """
    if not x_user_id.strip():
        raise ValidationException("El usuario responsable es requerido", field="X-User-Id")
    return x_user_id.strip()


def get_audit_logger() -> AuditLogger:
    return audit_logger


# ==================== CASOS DE USO ====================

def get_manage_draft_note(session_factory=Depends(get_session_factory), clock: Clock = Depends(get_clock)):
    return container.get_case_use_manage_draft_note(session_factory, clock)


def get_conclude_note(session_factory=Depends(get_session_factory), clock: Clock = Depends(get_clock)):
    return container.get_case_use_conclude_note(session_factory, clock)


def get_cancel_note(session_factory=Depends(get_session_factory), clock: Clock = Depends(get_clock)):
    return container.get_case_use_cancel_note(session_factory, clock)


def get_direct_adjustment(session_factory=Depends(get_session_factory), clock: Clock = Depends(get_clock)):
    return container.get_case_use_direct_adjustment(session_factory, clock)


def get_stock_queries(session_factory=Depends(get_session_factory)):
    return container.get_case_use_stock_queries(session_factory)


def get_catalog(session_factory=Depends(get_session_factory), clock: Clock = Depends(get_clock)):
    return container.get_case_use_catalog(session_factory, clock)


def get_issue_entrega(session_factory=Depends(get_session_factory), clock: Clock = Depends(get_clock)):
    return container.get_case_use_issue_entrega(session_factory, clock)


def get_process_return(session_factory=Depends(get_session_factory), clock: Clock = Depends(get_clock)):
    return container.get_case_use_process_return(session_factory, clock)


def get_unit_of_work(session_factory=Depends(get_session_factory)):
    return container.get_unit_of_work(session_factory)
