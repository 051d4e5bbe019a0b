"""
Configuración de sesión de base de datos SQLAlchemy (asíncrona).
Maneja la conexión a la base de datos y provee sesiones para transacciones.

Responsabilidades:
- Crear engine asíncrono de SQLAlchemy y fijar su aislamiento
- Configurar session factory
- Crear y eliminar el esquema
"""
from typing import Any, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ...app.core.config import get_settings


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """
    Toda transacción SQLite abre con BEGIN IMMEDIATE.

    SQLite ignora SELECT ... FOR UPDATE y el driver solo abre la transacción
    en la primera escritura, así que dos transacciones podrían leer el mismo
    saldo antes de escribir. Con BEGIN IMMEDIATE el lock de escritura se toma
    al comenzar: las transacciones quedan serializadas (equivalente a
    SERIALIZABLE) y la que espera lo hace hasta el timeout del driver.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: Optional[str] = None, echo: Optional[bool] = None,
                 **engine_options: Any) -> AsyncEngine:
    """
    Crear engine asíncrono.

    Aislamiento:
    - SQLite: transacciones serializadas con BEGIN IMMEDIATE
    - Otros motores: READ COMMITTED; los escritores de una misma clave de
      saldo se serializan con SELECT ... FOR UPDATE sobre la fila de saldo
      (StockRepository.lock_key) antes de leer el kardex

    Args:
        database_url: URL de conexión; por defecto DATABASE_URL del entorno
        echo: Mostrar queries SQL; por defecto DATABASE_ECHO
        engine_options: Opciones extra para create_async_engine (p. ej. poolclass)

    Returns:
        AsyncEngine: Engine configurado
    """
    settings = get_settings()
    url = database_url or settings.database_url
    options = {
        "echo": settings.database_echo if echo is None else echo,
        "pool_pre_ping": True,  # Verificar conexión antes de usarla
    }
    if url.startswith("sqlite"):
        options["connect_args"] = {"timeout": 30}  # Espera por el lock de escritura, en segundos
    else:
        options.update(
            isolation_level="READ COMMITTED",
            pool_size=20,
            max_overflow=30,
            pool_timeout=30,
            pool_recycle=3600,  # Reciclar conexiones cada hora
        )
    options.update(engine_options)

    new_engine = create_async_engine(url, **options)
    if url.startswith("sqlite"):
        _serialize_sqlite_writers(new_engine)
    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Factory de sesiones; los objetos siguen legibles después del commit"""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


# Engine y factory por defecto de la aplicación.
# create_async_engine no abre conexiones hasta el primer uso.
engine = build_engine()
SessionLocal = build_session_factory(engine)


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """
    Crear todas las tablas en la base de datos.
    Útil para desarrollo y testing.

    Nota: En producción usar migraciones (Alembic).
    """
    from .base import Base
    from . import models  # noqa: F401  Registrar todos los modelos

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind: Optional[AsyncEngine] = None) -> None:
    """
    Eliminar todas las tablas (SOLO PARA DESARROLLO/TESTING).

    ¡ADVERTENCIA! Esto elimina todos los datos.
    """
    from .base import Base
    from . import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
