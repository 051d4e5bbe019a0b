"""
Entidad Movimiento de Estoque (kardex).
Representa un cambio en el saldo de un tipo de EPI para auditoría y trazabilidad.

Características:
- Entity con identidad
- Inmutable después de creado
- balance_after == balance_before + direction * quantity, siempre
- El estorno es otro movimiento (REVERSAL), nunca una edición
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Optional, Tuple

from ....app.core.exceptions import ValidationException
from ....app.domain.enums import MovementKind, StockStatus
from ....app.domain.exceptions import InvalidMovementTypeError


# Sentidos admitidos por tipo; el primero es el sentido por defecto.
# Todo MovementKind debe tener entrada en esta tabla.
ALLOWED_DIRECTIONS: Dict[MovementKind, Tuple[int, ...]] = {
    MovementKind.ENTRY: (1,),
    MovementKind.EXIT: (-1,),
    MovementKind.TRANSFER: (-1,),
    MovementKind.DISPOSAL: (-1,),
    MovementKind.ADJUSTMENT: (1, -1),
    MovementKind.REVERSAL: (1, -1),
}

_missing = set(MovementKind) - set(ALLOWED_DIRECTIONS)
if _missing:
    raise RuntimeError(f"Tipos de movimiento sin sentido definido: {sorted(k.value for k in _missing)}")


def default_direction(kind: MovementKind) -> int:
    """
    Sentido por defecto de un tipo de movimiento.

    Raises:
        InvalidMovementTypeError: Si el tipo no tiene tratamiento definido
    """
    try:
        return ALLOWED_DIRECTIONS[MovementKind(kind)][0]
    except (KeyError, ValueError):
        raise InvalidMovementTypeError(kind)


@dataclass(frozen=True)
class MovementLedgerEntry:
    """
    Movimiento inmutable del kardex.

    Atributos:
    - warehouse_id: Almacén afectado
    - item_type_id: Tipo de EPI afectado
    - kind: Tipo de movimiento
    - quantity: Cantidad movida (siempre positiva)
    - direction: +1 suma al saldo, -1 resta
    - balance_before / balance_after: Saldo corrido del kardex
    - stock_status: Situación del saldo al que pertenece
    - origin_note_id: Nota que originó el movimiento
    - entrega_id: Entrega que originó el movimiento
    - reversal_of_entry_id: Movimiento estornado (solo en REVERSAL)
    """
    warehouse_id: str
    item_type_id: int
    kind: MovementKind
    quantity: int
    direction: int
    balance_before: int
    balance_after: int
    actor_user_id: str
    stock_status: StockStatus = StockStatus.AVAILABLE
    origin_note_id: Optional[int] = None
    entrega_id: Optional[int] = None
    notes: Optional[str] = None
    reversal_of_entry_id: Optional[int] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        """Validaciones automáticas al crear la entidad"""
        self._validate()

    def _validate(self) -> None:
        """
        Validar invariantes del movimiento.

        Raises:
            ValidationException: Si se viola algún invariante
        """
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValidationException(
                "La cantidad del movimiento debe ser positiva",
                field="quantity",
                details={"value": self.quantity}
            )

        if not self.warehouse_id or not str(self.warehouse_id).strip():
            raise ValidationException("El almacén del movimiento es requerido", field="warehouse_id")

        if not self.item_type_id:
            raise ValidationException("El tipo de EPI del movimiento es requerido", field="item_type_id")

        if not self.actor_user_id or not str(self.actor_user_id).strip():
            raise ValidationException("El usuario responsable es requerido", field="actor_user_id")

        kind = MovementKind(self.kind)
        if self.direction not in ALLOWED_DIRECTIONS[kind]:
            raise ValidationException(
                f"Sentido {self.direction} no admitido para movimiento {kind.value}",
                field="direction",
                details={"kind": kind.value, "allowed": list(ALLOWED_DIRECTIONS[kind])}
            )

        if kind == MovementKind.REVERSAL and self.reversal_of_entry_id is None:
            raise ValidationException(
                "Un estorno debe referenciar el movimiento original",
                field="reversal_of_entry_id"
            )
        if kind != MovementKind.REVERSAL and self.reversal_of_entry_id is not None:
            raise ValidationException(
                "Solo los estornos referencian otro movimiento",
                field="reversal_of_entry_id"
            )

        expected = self.balance_before + self.direction * self.quantity
        if self.balance_after != expected:
            raise ValidationException(
                "Inconsistencia en cálculos de saldo",
                field="balance_after",
                details={
                    "balance_before": self.balance_before,
                    "quantity": self.quantity,
                    "direction": self.direction,
                    "expected_after": expected,
                    "actual_after": self.balance_after,
                    "kind": kind.value
                }
            )

    @classmethod
    def create(
        cls,
        kind: MovementKind,
        warehouse_id: str,
        item_type_id: int,
        quantity: int,
        balance_before: int,
        actor_user_id: str,
        created_at: datetime,
        direction: Optional[int] = None,
        stock_status: StockStatus = StockStatus.AVAILABLE,
        origin_note_id: Optional[int] = None,
        entrega_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> 'MovementLedgerEntry':
        """
        Factory method que calcula el saldo posterior.

        Args:
            kind: Tipo de movimiento (no REVERSAL; usar reversal())
            balance_before: Último saldo del kardex para la clave
            direction: Sentido explícito; por defecto el del tipo

        Returns:
            MovementLedgerEntry: Instancia validada (sin id)
        """
        if MovementKind(kind) == MovementKind.REVERSAL:
            raise ValidationException(
                "Los estornos se crean a partir del movimiento original",
                field="kind"
            )
        if direction is None:
            direction = default_direction(kind)
        return cls(
            warehouse_id=warehouse_id,
            item_type_id=item_type_id,
            kind=MovementKind(kind),
            quantity=quantity,
            direction=direction,
            balance_before=balance_before,
            balance_after=balance_before + direction * quantity,
            actor_user_id=actor_user_id,
            stock_status=stock_status,
            origin_note_id=origin_note_id,
            entrega_id=entrega_id,
            notes=notes,
            created_at=created_at,
        )

    def reversal(
        self,
        balance_before: int,
        actor_user_id: str,
        created_at: datetime,
        notes: Optional[str] = None,
    ) -> 'MovementLedgerEntry':
        """
        Construir el estorno de este movimiento.

        El estorno tiene la misma cantidad y el sentido invertido, de modo que
        el efecto neto de ambos sobre el saldo es cero.
        """
        if self.id is None:
            raise ValidationException("Solo se estornan movimientos persistidos", field="id")
        return MovementLedgerEntry(
            warehouse_id=self.warehouse_id,
            item_type_id=self.item_type_id,
            kind=MovementKind.REVERSAL,
            quantity=self.quantity,
            direction=-self.direction,
            balance_before=balance_before,
            balance_after=balance_before - self.direction * self.quantity,
            actor_user_id=actor_user_id,
            stock_status=self.stock_status,
            origin_note_id=self.origin_note_id,
            entrega_id=self.entrega_id,
            notes=notes or f"Estorno del movimiento {self.id}",
            reversal_of_entry_id=self.id,
            created_at=created_at,
        )

    def with_id(self, entry_id: int) -> 'MovementLedgerEntry':
        return replace(self, id=entry_id)

    @property
    def signed_quantity(self) -> int:
        """Efecto neto sobre el saldo"""
        return self.direction * self.quantity

    @property
    def is_reversal(self) -> bool:
        return self.kind == MovementKind.REVERSAL

    def get_movement_description(self) -> str:
        """Obtener descripción legible del movimiento"""
        action = "entrada" if self.direction > 0 else "salida"
        return f"{self.kind.value}: {action} de {self.quantity} unidades"

    def to_dict(self) -> dict:
        """Convertir a diccionario para serialización"""
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "item_type_id": self.item_type_id,
            "stock_status": self.stock_status.value,
            "kind": self.kind.value,
            "quantity": self.quantity,
            "direction": self.direction,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "origin_note_id": self.origin_note_id,
            "entrega_id": self.entrega_id,
            "actor_user_id": self.actor_user_id,
            "notes": self.notes,
            "reversal_of_entry_id": self.reversal_of_entry_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "description": self.get_movement_description(),
        }
