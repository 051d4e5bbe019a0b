"""
Entidad Entrega - emisión de EPIs a un colaborador, unidad por unidad.

Cada EntregaItem representa exactamente una unidad física; la cantidad
es siempre 1. El estado de la entrega nunca se asigna directamente: se
deriva de los estados de sus ítems con derive_entrega_status().
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ....app.core.exceptions import ValidationException
from ....app.domain.enums import (
    EntregaItemStatus,
    EntregaStatus,
    ReturnCondition,
    ReturnDestination,
)
from ....app.domain.exceptions import (
    EntregaItemNotReturnedError,
    EntregaItemNotWithEmployeeError,
    EntregaNotModifiableError,
)


CLOSED_ITEM_STATUSES = (
    EntregaItemStatus.RETURNED,
    EntregaItemStatus.LOST,
    EntregaItemStatus.DAMAGED,
)

CONDITION_TO_ITEM_STATUS = {
    ReturnCondition.GOOD: EntregaItemStatus.RETURNED,
    ReturnCondition.DAMAGED: EntregaItemStatus.DAMAGED,
    ReturnCondition.LOST: EntregaItemStatus.LOST,
}


@dataclass
class EntregaItem:
    """Unidad entregada al colaborador"""
    origin_stock_item_id: int
    item_type_id: int
    return_deadline: Optional[datetime] = None
    status: EntregaItemStatus = EntregaItemStatus.WITH_EMPLOYEE
    quantity: int = 1
    returned_at: Optional[datetime] = None
    return_reason: Optional[str] = None
    return_destination: Optional[ReturnDestination] = None
    entrega_id: Optional[int] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.status = EntregaItemStatus(self.status)
        if self.quantity != 1:
            raise ValidationException(
                "Cada ítem de entrega representa exactamente una unidad",
                field="quantity",
                details={"value": self.quantity}
            )

    @property
    def is_with_employee(self) -> bool:
        return self.status == EntregaItemStatus.WITH_EMPLOYEE

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_ITEM_STATUSES

    def register_return(
        self,
        condition: ReturnCondition,
        when: datetime,
        reason: Optional[str] = None,
        destination: Optional[ReturnDestination] = None,
    ) -> EntregaItemStatus:
        """
        Cerrar la unidad según la condición informada.

        Raises:
            EntregaItemNotWithEmployeeError: Si la unidad ya no está con el colaborador
        """
        if not self.is_with_employee:
            raise EntregaItemNotWithEmployeeError(self.id or 0, self.status.value)
        self.status = CONDITION_TO_ITEM_STATUS[ReturnCondition(condition)]
        self.returned_at = when
        self.return_reason = reason
        self.return_destination = ReturnDestination(destination) if destination else None
        return self.status

    def undo_return(self) -> Optional[ReturnDestination]:
        """
        Devolver la unidad al colaborador, deshaciendo su cierre.

        Returns:
            Optional[ReturnDestination]: Destino que tenía la devolución (None si extraviada)

        Raises:
            EntregaItemNotReturnedError: Si la unidad sigue con el colaborador
        """
        if not self.is_closed:
            raise EntregaItemNotReturnedError(self.id or 0, self.status.value)
        destination = self.return_destination
        self.status = EntregaItemStatus.WITH_EMPLOYEE
        self.returned_at = None
        self.return_reason = None
        self.return_destination = None
        return destination

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entrega_id": self.entrega_id,
            "origin_stock_item_id": self.origin_stock_item_id,
            "item_type_id": self.item_type_id,
            "quantity": self.quantity,
            "status": self.status.value,
            "return_deadline": self.return_deadline.isoformat() if self.return_deadline else None,
            "returned_at": self.returned_at.isoformat() if self.returned_at else None,
            "return_reason": self.return_reason,
            "return_destination": self.return_destination.value if self.return_destination else None,
        }


def derive_entrega_status(
    items: List[EntregaItem],
    signed: bool,
    current: Optional[EntregaStatus] = None,
) -> EntregaStatus:
    """
    Estado agregado como función pura de los ítems.

    CANCELLED es terminal. Sin ítems cerrados la entrega está ACTIVE
    (o PENDING_SIGNATURE si aún no fue firmada); con todos cerrados,
    FULLY_RETURNED; en otro caso PARTIALLY_RETURNED.
    """
    if current == EntregaStatus.CANCELLED:
        return EntregaStatus.CANCELLED
    closed = sum(1 for item in items if item.is_closed)
    if closed == 0:
        return EntregaStatus.ACTIVE if signed else EntregaStatus.PENDING_SIGNATURE
    if closed == len(items):
        return EntregaStatus.FULLY_RETURNED
    return EntregaStatus.PARTIALLY_RETURNED


@dataclass
class Entrega:
    """
    Agregado de entrega.

    Atributos:
    - ficha_epi_id: Ficha del colaborador
    - warehouse_id: Almacén de donde salieron las unidades
    - responsible_user_id: Usuario que realizó la entrega
    - status: Derivado de los ítems
    - items: Una fila por unidad física
    """
    ficha_epi_id: int
    warehouse_id: str
    responsible_user_id: str
    issued_at: datetime
    items: List[EntregaItem] = field(default_factory=list)
    status: EntregaStatus = EntregaStatus.PENDING_SIGNATURE
    signed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.status = EntregaStatus(self.status)

    @property
    def is_signed(self) -> bool:
        return self.signed_at is not None

    @property
    def is_cancelled(self) -> bool:
        return self.status == EntregaStatus.CANCELLED

    def refresh_status(self) -> EntregaStatus:
        """Recalcular el estado a partir de los ítems (idempotente)"""
        self.status = derive_entrega_status(self.items, self.is_signed, self.status)
        return self.status

    def find_item(self, item_id: int) -> Optional[EntregaItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def sign(self, when: datetime) -> None:
        if self.is_cancelled:
            raise EntregaNotModifiableError(self.id or 0, self.status.value, "sign")
        if self.is_signed:
            raise EntregaNotModifiableError(self.id or 0, self.status.value, "sign")
        self.signed_at = when
        self.refresh_status()

    def cancel(self, when: datetime) -> None:
        """
        Cancelar una entrega cuyas unidades siguen todas con el colaborador.

        Raises:
            EntregaNotModifiableError: Si ya está cancelada o tiene devoluciones
        """
        if self.is_cancelled or any(item.is_closed for item in self.items):
            raise EntregaNotModifiableError(self.id or 0, self.status.value, "cancel")
        self.status = EntregaStatus.CANCELLED
        self.cancelled_at = when

    @property
    def units_with_employee(self) -> int:
        return sum(1 for item in self.items if item.is_with_employee)

    def to_dict(self) -> dict:
        """Convertir a diccionario para serialización"""
        return {
            "id": self.id,
            "ficha_epi_id": self.ficha_epi_id,
            "warehouse_id": self.warehouse_id,
            "responsible_user_id": self.responsible_user_id,
            "status": self.status.value,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "signed_at": self.signed_at.isoformat() if self.signed_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "notes": self.notes,
            "units_with_employee": self.units_with_employee,
            "items": [item.to_dict() for item in self.items],
        }
