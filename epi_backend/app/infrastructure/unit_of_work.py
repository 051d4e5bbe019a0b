"""
Unit of Work con SQLAlchemy asíncrono.
Una sesión por caso de uso; todos los repositorios la comparten.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ...app.core.exceptions import ConflictException
from ...app.application.ports.unit_of_work import UnitOfWork
from .configuration_service import SQLAlchemyConfigurationService
from .repositories.catalog_repository_impl import (
    SQLAlchemyFichaRepository,
    SQLAlchemyItemTypeRepository,
)
from .repositories.entrega_repository_impl import SQLAlchemyEntregaRepository
from .repositories.movement_repository_impl import SQLAlchemyMovementRepository
from .repositories.note_repository_impl import SQLAlchemyNoteRepository
from .repositories.stock_repository_impl import SQLAlchemyStockRepository

logger = logging.getLogger(__name__)


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Transacción de un caso de uso"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self.session = None

    async def __aenter__(self) -> 'SQLAlchemyUnitOfWork':
        self.session = self.session_factory()
        self.stock = SQLAlchemyStockRepository(self.session)
        self.movements = SQLAlchemyMovementRepository(self.session)
        self.notes = SQLAlchemyNoteRepository(self.session)
        self.entregas = SQLAlchemyEntregaRepository(self.session)
        self.item_types = SQLAlchemyItemTypeRepository(self.session)
        self.fichas = SQLAlchemyFichaRepository(self.session)
        self.config = SQLAlchemyConfigurationService(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            # Sin efecto si ya hubo commit
            await self.rollback()
            if exc_type is not None:
                logger.debug(
                    "Transacción revertida",
                    extra={"extra_data": {"error_type": exc_type.__name__, "error": str(exc)}}
                )
        finally:
            await self.session.close()
            self.session = None

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictException(
                "Conflicto de integridad al confirmar la transacción",
                details={"error": str(e.orig)}
            ) from e

    async def rollback(self) -> None:
        await self.session.rollback()
