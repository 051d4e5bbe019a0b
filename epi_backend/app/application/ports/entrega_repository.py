"""
Puerto para repositorio de entregas.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from ....app.domain.entities.entrega import Entrega


class EntregaRepository(ABC):
    """Puerto para operaciones de entregas"""

    @abstractmethod
    async def add(self, entrega: Entrega) -> Entrega:
        """
        Persistir una entrega nueva con sus ítems.

        Returns:
            Entrega: Entrega con IDs asignados (cabecera e ítems)
        """
        pass

    @abstractmethod
    async def save(self, entrega: Entrega) -> Entrega:
        """Persistir estado, firma y datos de devolución de los ítems"""
        pass

    @abstractmethod
    async def find_by_id(self, entrega_id: int, for_update: bool = False) -> Optional[Entrega]:
        """
        Buscar entrega por ID con sus ítems.

        Args:
            entrega_id: ID de la entrega
            for_update: Bloquear la fila de la entrega

        Returns:
            Optional[Entrega]: Entrega encontrada o None
        """
        pass

    @abstractmethod
    async def list_by_fichas(self, ficha_ids: List[int]) -> List[Entrega]:
        """Entregas de las fichas dadas, de la más antigua a la más reciente"""
        pass
