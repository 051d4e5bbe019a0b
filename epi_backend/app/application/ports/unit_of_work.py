"""
Puerto Unit of Work.
Alcance transaccional de un caso de uso: todos los repositorios comparten
la misma transacción; commit() la confirma y salir del bloque sin commit
(o con excepción) la revierte por completo.

Uso:
    async with uow:
        ...
        await uow.commit()
"""
from abc import ABC, abstractmethod

from ....app.application.ports.catalog_repository import FichaRepository, ItemTypeRepository
from ....app.application.ports.configuration import ConfigurationService
from ....app.application.ports.entrega_repository import EntregaRepository
from ....app.application.ports.movement_repository import MovementRepository
from ....app.application.ports.note_repository import NoteRepository
from ....app.application.ports.stock_repository import StockRepository


class UnitOfWork(ABC):
    """Puerto de transacción"""

    stock: StockRepository
    movements: MovementRepository
    notes: NoteRepository
    entregas: EntregaRepository
    item_types: ItemTypeRepository
    fichas: FichaRepository
    config: ConfigurationService

    async def __aenter__(self) -> 'UnitOfWork':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """
        Confirmar la transacción.

        Raises:
            ConflictException: Si el motor rechaza la escritura por unicidad
        """
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Revertir lo no confirmado (sin efecto tras un commit)"""
        pass
