"""
Puerto/Interfaz para el almacén de saldos de estoque.
Define el contrato que debe cumplir cualquier implementación.

PRINCIPIO: Dependency Inversion (SOLID - D)
- La aplicación depende de abstracciones, no de implementaciones
- Los saldos solo se modifican con add/remove/set/upsert
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from ....app.domain.enums import StockStatus
from ....app.domain.value_objects.stock import StockBalance


class StockRepository(ABC):
    """
    Puerto para operaciones de saldo.

    Las implementaciones deben garantizar que remove() sea atómico
    (sin ventana entre la verificación y la escritura).
    """

    @abstractmethod
    async def get(self, warehouse_id: str, item_type_id: int,
                  status: StockStatus = StockStatus.AVAILABLE) -> Optional[StockBalance]:
        """
        Buscar saldo por clave natural.

        Returns:
            Optional[StockBalance]: Saldo encontrado o None
        """
        pass

    @abstractmethod
    async def get_for_update(self, warehouse_id: str, item_type_id: int,
                             status: StockStatus = StockStatus.AVAILABLE) -> Optional[StockBalance]:
        """
        Buscar saldo con bloqueo de fila.
        Usa SELECT ... FOR UPDATE donde el motor lo soporta.
        """
        pass

    @abstractmethod
    async def lock_key(self, warehouse_id: str, item_type_id: int,
                       status: StockStatus = StockStatus.AVAILABLE) -> StockBalance:
        """
        Bloquear la fila de saldo de la clave hasta el fin de la transacción.
        Si la clave no existe la crea en cero, para que siempre haya una
        fila que bloquear. Serializa a los escritores de una misma clave.
        """
        pass

    @abstractmethod
    async def get_by_id(self, stock_item_id: int, for_update: bool = False) -> Optional[StockBalance]:
        """
        Buscar saldo por ID (referenciado por las entregas).

        Args:
            stock_item_id: ID del saldo
            for_update: Bloquear la fila

        Returns:
            Optional[StockBalance]: Saldo encontrado o None
        """
        pass

    @abstractmethod
    async def add(self, warehouse_id: str, item_type_id: int,
                  status: StockStatus, quantity: int) -> StockBalance:
        """
        Sumar al saldo, creándolo si no existe.

        Raises:
            ValidationException: Si la cantidad no es positiva
        """
        pass

    @abstractmethod
    async def remove(self, warehouse_id: str, item_type_id: int, status: StockStatus,
                     quantity: int, allow_negative: bool = False) -> StockBalance:
        """
        Restar del saldo.

        Args:
            allow_negative: Override de estoque negativo

        Returns:
            StockBalance: Saldo resultante

        Raises:
            ValidationException: Si la cantidad no es positiva
            InsufficientStockError: Si el saldo quedaría negativo sin override
        """
        pass

    @abstractmethod
    async def set(self, warehouse_id: str, item_type_id: int,
                  status: StockStatus, quantity: int) -> StockBalance:
        """
        Fijar el saldo de una clave existente.

        Raises:
            ValidationException: Si el valor es negativo
            NotFoundException: Si la clave no existe
        """
        pass

    @abstractmethod
    async def upsert(self, warehouse_id: str, item_type_id: int,
                     status: StockStatus, quantity: int, allow_negative: bool = False) -> StockBalance:
        """
        Fijar el saldo, creando la clave si no existe.
        Un valor negativo es ValidationException salvo allow_negative.
        """
        pass

    @abstractmethod
    async def list(
        self,
        warehouse_id: Optional[str] = None,
        item_type_id: Optional[int] = None,
        status: Optional[StockStatus] = None,
        include_zero: bool = True,
    ) -> List[StockBalance]:
        """
        Listar saldos con filtros.

        Returns:
            List[StockBalance]: Saldos ordenados por almacén y tipo
        """
        pass
