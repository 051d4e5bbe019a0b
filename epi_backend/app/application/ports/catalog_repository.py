"""
Puertos para el catálogo: tipos de EPI y fichas EPI.

SOLID - Interface Segregation:
- Un puerto por agregado, aunque compartan módulo
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from ....app.domain.entities.catalog import FichaEpi, ItemType


class ItemTypeRepository(ABC):
    """Puerto para tipos de EPI"""

    @abstractmethod
    async def add(self, item_type: ItemType) -> ItemType:
        """
        Persistir un tipo de EPI.

        Raises:
            ConflictException: Si el número de CA ya existe
        """
        pass

    @abstractmethod
    async def find_by_id(self, item_type_id: int) -> Optional[ItemType]:
        pass

    @abstractmethod
    async def find_many(self, item_type_ids: List[int]) -> List[ItemType]:
        pass

    @abstractmethod
    async def list(self, active_only: bool = False) -> List[ItemType]:
        pass


class FichaRepository(ABC):
    """Puerto para fichas EPI"""

    @abstractmethod
    async def add(self, ficha: FichaEpi) -> FichaEpi:
        """
        Persistir una ficha.

        Raises:
            ConflictException: Si el colaborador ya tiene ficha
        """
        pass

    @abstractmethod
    async def find_by_id(self, ficha_id: int) -> Optional[FichaEpi]:
        pass

    @abstractmethod
    async def find_by_employee(self, employee_id: str) -> List[FichaEpi]:
        pass
