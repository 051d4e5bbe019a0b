"""
Entidad Nota de Movimentação - máquina de estados de un lote de movimientos.

Ciclo de vida:
    DRAFT --conclude()--> CONCLUDED
    DRAFT --cancel()----> CANCELLED
    CONCLUDED --mark_cancelled_after_reversal()--> CANCELLED

La cancelación de una nota concluida es una operación de recuperación
distinta (requiere estornos previos); cancel() nunca la cubre.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ....app.core.exceptions import ValidationException
from ....app.domain.enums import AdjustmentDirection, NoteKind, NoteStatus
from ....app.domain.exceptions import (
    DuplicateNoteItemError,
    EmptyNoteError,
    InvalidWarehouseCombinationError,
    NoteItemNotFoundError,
    NoteNotCancellableError,
    NoteNotEditableError,
)


NOTE_PREFIXES: Dict[NoteKind, str] = {
    NoteKind.ENTRY: "ENT",
    NoteKind.TRANSFER: "TRF",
    NoteKind.DISPOSAL: "DESC",
    NoteKind.ADJUSTMENT: "AJU",
}


def note_number_prefix(kind: NoteKind, year: int) -> str:
    """Prefijo común a todos los números de un tipo y año (ej: ENT-2025-)"""
    return f"{NOTE_PREFIXES[NoteKind(kind)]}-{year}-"


def format_note_number(kind: NoteKind, year: int, sequence: int) -> str:
    """Número legible: <PREFIJO>-<AÑO>-<secuencia de 6 dígitos>"""
    return f"{note_number_prefix(kind, year)}{sequence:06d}"


def parse_note_sequence(number: str) -> int:
    """Extraer la secuencia de un número de nota; 0 si no es parseable"""
    try:
        return int(number.rsplit("-", 1)[1])
    except (IndexError, ValueError):
        return 0


def _validate_quantity(quantity: int) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationException(
            "La cantidad del ítem debe ser mayor a cero",
            field="quantity",
            details={"value": quantity}
        )


@dataclass
class NoteItem:
    """Ítem planificado de una nota"""
    item_type_id: int
    quantity: int
    processed_quantity: int = 0
    notes: Optional[str] = None
    direction: AdjustmentDirection = AdjustmentDirection.INCREASE
    id: Optional[int] = None

    @property
    def sign(self) -> int:
        return -1 if self.direction == AdjustmentDirection.DECREASE else 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type_id": self.item_type_id,
            "quantity": self.quantity,
            "processed_quantity": self.processed_quantity,
            "notes": self.notes,
            "direction": self.direction.value,
        }


@dataclass
class MovementNote:
    """
    Nota de movimentação en rascunho, concluida o cancelada.

    Atributos:
    - number: Número legible por tipo y año
    - kind: Tipo de nota (determina almacenes requeridos)
    - origin_warehouse_id / destination_warehouse_id
    - actor_user_id: Usuario que creó la nota
    - status: Estado de la máquina de estados
    - items: Ítems planificados (un tipo de EPI por ítem)
    """
    kind: NoteKind
    actor_user_id: str
    number: str = ""
    origin_warehouse_id: Optional[str] = None
    destination_warehouse_id: Optional[str] = None
    notes: Optional[str] = None
    status: NoteStatus = NoteStatus.DRAFT
    items: List[NoteItem] = field(default_factory=list)
    created_at: Optional[datetime] = None
    concluded_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.kind = NoteKind(self.kind)
        self.status = NoteStatus(self.status)
        if not self.actor_user_id or not str(self.actor_user_id).strip():
            raise ValidationException("El usuario responsable es requerido", field="actor_user_id")
        self.validate_warehouses()

    # ==================== VALIDACIONES ====================

    def validate_warehouses(self) -> None:
        """
        Validar la combinación de almacenes según el tipo.

        Raises:
            InvalidWarehouseCombinationError: Si la combinación no corresponde al tipo
        """
        origin = self.origin_warehouse_id
        destination = self.destination_warehouse_id
        kind = self.kind.value

        def fail(reason: str):
            raise InvalidWarehouseCombinationError(kind, reason, origin, destination)

        if self.kind in (NoteKind.ENTRY, NoteKind.ADJUSTMENT):
            if not destination:
                fail("requiere almacén de destino")
            if origin:
                fail("no admite almacén de origen")
        elif self.kind == NoteKind.TRANSFER:
            if not origin or not destination:
                fail("requiere almacén de origen y de destino")
            if origin == destination:
                fail("origen y destino deben ser distintos")
        elif self.kind == NoteKind.DISPOSAL:
            if not origin:
                fail("requiere almacén de origen")
            if destination:
                fail("no admite almacén de destino")

    def _require_draft(self, operation: str) -> None:
        if self.status != NoteStatus.DRAFT:
            raise NoteNotEditableError(self.number, self.status.value, operation)

    # ==================== ÍTEMS ====================

    def find_item(self, item_type_id: int) -> Optional[NoteItem]:
        for item in self.items:
            if item.item_type_id == item_type_id:
                return item
        return None

    def add_item(
        self,
        item_type_id: int,
        quantity: int,
        notes: Optional[str] = None,
        direction: AdjustmentDirection = AdjustmentDirection.INCREASE,
    ) -> NoteItem:
        """
        Agregar un tipo de EPI a la nota.

        Raises:
            NoteNotEditableError: Si la nota no está en rascunho
            ValidationException: Si la cantidad no es positiva o el sentido no aplica
            DuplicateNoteItemError: Si el tipo ya está en la nota
        """
        self._require_draft("add_item")
        _validate_quantity(quantity)
        direction = AdjustmentDirection(direction)
        if direction == AdjustmentDirection.DECREASE and self.kind != NoteKind.ADJUSTMENT:
            raise ValidationException(
                "Solo las notas de ajuste admiten ítems de disminución",
                field="direction"
            )
        if self.find_item(item_type_id) is not None:
            raise DuplicateNoteItemError(self.number, item_type_id)

        item = NoteItem(item_type_id=item_type_id, quantity=quantity, notes=notes, direction=direction)
        self.items.append(item)
        return item

    def remove_item(self, item_type_id: int) -> NoteItem:
        self._require_draft("remove_item")
        item = self.find_item(item_type_id)
        if item is None:
            raise NoteItemNotFoundError(self.number, item_type_id)
        self.items.remove(item)
        return item

    def update_item_quantity(self, item_type_id: int, quantity: int) -> NoteItem:
        self._require_draft("update_item_quantity")
        _validate_quantity(quantity)
        item = self.find_item(item_type_id)
        if item is None:
            raise NoteItemNotFoundError(self.number, item_type_id)
        item.quantity = quantity
        return item

    def update_header(self, notes: Optional[str]) -> None:
        self._require_draft("update_header")
        self.notes = notes

    # ==================== TRANSICIONES ====================

    def conclude(self, when: datetime) -> None:
        """
        DRAFT -> CONCLUDED. Los movimientos los genera el procesador de conclusión.

        Raises:
            NoteNotEditableError: Si la nota no está en rascunho
            EmptyNoteError: Si la nota no tiene ítems
        """
        self._require_draft("conclude")
        if not self.items:
            raise EmptyNoteError(self.number)
        self.status = NoteStatus.CONCLUDED
        self.concluded_at = when

    def cancel(self, when: datetime) -> None:
        """DRAFT -> CANCELLED, sin impacto en estoque"""
        self._require_draft("cancel")
        self.status = NoteStatus.CANCELLED
        self.cancelled_at = when

    def mark_cancelled_after_reversal(self, when: datetime) -> None:
        """CONCLUDED -> CANCELLED, una vez generados todos los estornos"""
        if self.status != NoteStatus.CONCLUDED:
            raise NoteNotCancellableError(self.number, f"estado {self.status.value}")
        self.status = NoteStatus.CANCELLED
        self.cancelled_at = when

    @property
    def is_draft(self) -> bool:
        return self.status == NoteStatus.DRAFT

    @property
    def is_cancellable(self) -> bool:
        """Cancelable por transición simple (solo rascunho)"""
        return self.status == NoteStatus.DRAFT

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> dict:
        """Convertir a diccionario para serialización"""
        return {
            "id": self.id,
            "number": self.number,
            "kind": self.kind.value,
            "status": self.status.value,
            "origin_warehouse_id": self.origin_warehouse_id,
            "destination_warehouse_id": self.destination_warehouse_id,
            "actor_user_id": self.actor_user_id,
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
            "total_quantity": self.total_quantity,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "concluded_at": self.concluded_at.isoformat() if self.concluded_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
