"""
Puerto para repositorio de movimientos (kardex).
Los movimientos son inmutables: el contrato no ofrece update ni delete.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from datetime import datetime

from ....app.domain.entities.movement_entry import MovementLedgerEntry
from ....app.domain.enums import StockStatus


class MovementRepository(ABC):
    """Puerto para operaciones de movimientos"""

    @abstractmethod
    async def add(self, entry: MovementLedgerEntry) -> MovementLedgerEntry:
        """
        Registrar un movimiento.

        Args:
            entry: Movimiento sin ID

        Returns:
            MovementLedgerEntry: Movimiento persistido con ID

        Raises:
            ConflictException: Si el movimiento original ya tiene estorno
        """
        pass

    @abstractmethod
    async def find_by_id(self, entry_id: int) -> Optional[MovementLedgerEntry]:
        """
        Buscar movimiento por ID.

        Args:
            entry_id: ID del movimiento

        Returns:
            Optional[MovementLedgerEntry]: Movimiento encontrado o None
        """
        pass

    @abstractmethod
    async def latest_balance(self, warehouse_id: str, item_type_id: int,
                             status: StockStatus = StockStatus.AVAILABLE) -> int:
        """
        Saldo posterior del último movimiento de la clave, o 0 si no hay.
        """
        pass

    @abstractmethod
    async def find_by_note(self, note_id: int, include_reversals: bool = False) -> List[MovementLedgerEntry]:
        """
        Movimientos originados por una nota, en orden de creación.

        Args:
            note_id: ID de la nota
            include_reversals: Incluir también los estornos
        """
        pass

    @abstractmethod
    async def find_by_entrega(self, entrega_id: int, include_reversals: bool = False) -> List[MovementLedgerEntry]:
        """Movimientos originados por una entrega, en orden de creación"""
        pass

    @abstractmethod
    async def is_reversed(self, entry_id: int) -> bool:
        """Verificar si algún estorno apunta al movimiento"""
        pass

    @abstractmethod
    async def kardex(
        self,
        warehouse_id: str,
        item_type_id: int,
        status: Optional[StockStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[MovementLedgerEntry]:
        """
        Historial cronológico de una clave.

        Args:
            warehouse_id: Almacén
            item_type_id: Tipo de EPI
            status: Filtrar por situación del saldo
            start_date: Fecha inicial
            end_date: Fecha final

        Returns:
            List[MovementLedgerEntry]: Movimientos del más antiguo al más reciente
        """
        pass
