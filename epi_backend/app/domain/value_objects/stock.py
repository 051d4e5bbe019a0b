"""
Value Object para saldo de estoque - Inmutable y con validaciones.

Un StockBalance es la fotografía del saldo de un tipo de EPI en un almacén
y situación (disponible, cuarentena, aguardando descarte). Las operaciones
devuelven una nueva instancia; el repositorio es quien persiste el cambio
de forma atómica.

Características:
- Inmutable (frozen=True)
- Clave natural (warehouse_id, item_type_id, status)
- Saldo negativo solo con override explícito
"""
from dataclasses import dataclass, replace
from typing import Optional

from ....app.core.exceptions import ValidationException
from ....app.domain.enums import StockStatus
from ....app.domain.exceptions import InsufficientStockError


def require_positive_quantity(quantity: int, field: str = "quantity") -> None:
    """Validar que una cantidad de movimiento sea entera y positiva"""
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationException(
            "La cantidad debe ser un entero mayor a cero",
            field=field,
            details={"value": quantity}
        )


def require_non_negative_target(quantity: int, field: str = "quantity") -> None:
    """Validar que un saldo objetivo no sea negativo"""
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
        raise ValidationException(
            "El saldo objetivo no puede ser negativo",
            field=field,
            details={"value": quantity}
        )


@dataclass(frozen=True)
class StockBalance:
    """
    Saldo de un tipo de EPI en un almacén.

    Atributos:
    - warehouse_id: Almacén (identificador opaco)
    - item_type_id: Tipo de EPI
    - status: Situación del saldo
    - quantity: Cantidad actual
    - id: Identificador asignado por persistencia
    """
    warehouse_id: str
    item_type_id: int
    status: StockStatus = StockStatus.AVAILABLE
    quantity: int = 0
    id: Optional[int] = None

    @property
    def key(self) -> tuple:
        return (self.warehouse_id, self.item_type_id, self.status)

    def add(self, quantity: int) -> 'StockBalance':
        """
        Sumar unidades al saldo.

        Raises:
            ValidationException: Si la cantidad no es positiva
        """
        require_positive_quantity(quantity)
        return replace(self, quantity=self.quantity + quantity)

    def remove(self, quantity: int, allow_negative: bool = False) -> 'StockBalance':
        """
        Restar unidades del saldo.

        Args:
            quantity: Cantidad a retirar
            allow_negative: Override de configuración para estoque negativo

        Raises:
            ValidationException: Si la cantidad no es positiva
            InsufficientStockError: Si el resultado sería negativo sin override
        """
        require_positive_quantity(quantity)
        if not allow_negative and quantity > self.quantity:
            raise InsufficientStockError(
                warehouse_id=self.warehouse_id,
                item_type_id=self.item_type_id,
                available=self.quantity,
                required=quantity
            )
        return replace(self, quantity=self.quantity - quantity)

    def set(self, quantity: int) -> 'StockBalance':
        """Fijar el saldo a un valor absoluto (nunca negativo)"""
        require_non_negative_target(quantity)
        return replace(self, quantity=quantity)

    def covers(self, quantity: int) -> bool:
        return self.quantity >= quantity

    def to_dict(self) -> dict:
        """Convertir a diccionario"""
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "item_type_id": self.item_type_id,
            "status": self.status.value,
            "quantity": self.quantity,
        }

    @classmethod
    def zero(cls, warehouse_id: str, item_type_id: int,
             status: StockStatus = StockStatus.AVAILABLE) -> 'StockBalance':
        """Saldo vacío para una clave todavía inexistente"""
        return cls(warehouse_id=warehouse_id, item_type_id=item_type_id, status=status, quantity=0)

    def __str__(self) -> str:
        return f"{self.quantity} un. ({self.warehouse_id}/{self.item_type_id}/{self.status.value})"
