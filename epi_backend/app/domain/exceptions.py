"""
Excepciones específicas del dominio.
Definen el lenguaje ubicuo para errores de negocio.

Diferencia con core/exceptions.py:
- core/exceptions.py: Excepciones base del sistema
- domain/exceptions.py: Excepciones específicas del dominio de EPI
"""
from typing import Any, Optional

from ...app.core.exceptions import BusinessRuleException


class InsufficientStockError(BusinessRuleException):
    """Stock insuficiente para realizar operación"""
    def __init__(self, warehouse_id: str, item_type_id: int, available: int, required: int):
        super().__init__(
            message=(
                f"Stock insuficiente para tipo EPI {item_type_id} en almacén {warehouse_id}. "
                f"Disponible: {available}, Requerido: {required}"
            ),
            rule_name="insufficient_stock",
            details={
                "warehouse_id": warehouse_id,
                "item_type_id": item_type_id,
                "available": available,
                "required": required,
                "deficit": required - available
            }
        )


class InvalidMovementTypeError(BusinessRuleException):
    """Tipo de movimiento sin tratamiento definido"""
    def __init__(self, movement_type: Any):
        super().__init__(
            message=f"Tipo de movimiento inválido: {movement_type}",
            rule_name="invalid_movement_type",
            details={"movement_type": str(movement_type)}
        )


class EntryNotReversibleError(BusinessRuleException):
    """El movimiento no admite estorno"""
    def __init__(self, entry_id: int, reason: str):
        super().__init__(
            message=f"No se puede estornar el movimiento {entry_id}: {reason}",
            rule_name="entry_not_reversible",
            details={"entry_id": entry_id, "reason": reason}
        )


class InvalidWarehouseCombinationError(BusinessRuleException):
    """Combinación de almacenes incompatible con el tipo de nota"""
    def __init__(self, kind: str, reason: str, origin: Optional[str], destination: Optional[str]):
        super().__init__(
            message=f"Nota de tipo {kind}: {reason}",
            rule_name="invalid_warehouse_combination",
            details={
                "kind": kind,
                "origin_warehouse_id": origin,
                "destination_warehouse_id": destination
            }
        )


class NoteNotEditableError(BusinessRuleException):
    """Operación que exige nota en rascunho"""
    def __init__(self, note_number: str, status: str, operation: str):
        super().__init__(
            message=f"La nota {note_number} está en estado {status}; no admite '{operation}'",
            rule_name="note_not_draft",
            details={"note": note_number, "status": status, "operation": operation}
        )


class DuplicateNoteItemError(BusinessRuleException):
    """Tipo de EPI ya presente en la nota"""
    def __init__(self, note_number: str, item_type_id: int):
        super().__init__(
            message=f"El tipo EPI {item_type_id} ya existe en la nota {note_number}",
            rule_name="duplicate_item",
            details={"note": note_number, "item_type_id": item_type_id}
        )


class NoteItemNotFoundError(BusinessRuleException):
    """Tipo de EPI ausente en la nota"""
    def __init__(self, note_number: str, item_type_id: int):
        super().__init__(
            message=f"El tipo EPI {item_type_id} no existe en la nota {note_number}",
            rule_name="item_not_in_note",
            details={"note": note_number, "item_type_id": item_type_id}
        )


class EmptyNoteError(BusinessRuleException):
    def __init__(self, note_number: str):
        super().__init__(
            message=f"La nota {note_number} no tiene ítems y no puede concluirse",
            rule_name="note_without_items",
            details={"note": note_number}
        )


class NoteNotCancellableError(BusinessRuleException):
    def __init__(self, note_number: str, reason: str):
        super().__init__(
            message=f"La nota {note_number} no puede ser cancelada: {reason}",
            rule_name="note_not_cancellable",
            details={"note": note_number, "reason": reason}
        )


class AdjustmentNotAllowedError(BusinessRuleException):
    """Ajustes forzados deshabilitados o sin actor"""
    def __init__(self, reason: str):
        super().__init__(
            message=f"Ajuste de inventario no permitido: {reason}",
            rule_name="forced_adjustment_disabled",
            details={"reason": reason}
        )


class NothingToAdjustError(BusinessRuleException):
    def __init__(self, warehouse_id: str, item_type_id: int, quantity: int):
        super().__init__(
            message=(
                f"El saldo de tipo EPI {item_type_id} en almacén {warehouse_id} "
                f"ya es {quantity}; no hay nada que ajustar"
            ),
            rule_name="nothing_to_adjust",
            details={"warehouse_id": warehouse_id, "item_type_id": item_type_id, "quantity": quantity}
        )


class FichaNotActiveError(BusinessRuleException):
    def __init__(self, ficha_id: int, status: str):
        super().__init__(
            message=f"La ficha EPI {ficha_id} no está activa (estado {status})",
            rule_name="ficha_not_active",
            details={"ficha_id": ficha_id, "status": status}
        )


class EntregaNotModifiableError(BusinessRuleException):
    """Entrega en un estado que no admite la operación"""
    def __init__(self, entrega_id: int, status: str, operation: str):
        super().__init__(
            message=f"La entrega {entrega_id} en estado {status} no admite '{operation}'",
            rule_name="entrega_not_modifiable",
            details={"entrega_id": entrega_id, "status": status, "operation": operation}
        )


class EntregaItemNotWithEmployeeError(BusinessRuleException):
    def __init__(self, item_id: int, status: str):
        super().__init__(
            message=f"El ítem {item_id} no puede devolverse. Estado actual: {status}",
            rule_name="item_not_with_employee",
            details={"entrega_item_id": item_id, "status": status}
        )


class EntregaItemNotReturnedError(BusinessRuleException):
    def __init__(self, item_id: int, status: str):
        super().__init__(
            message=f"El ítem {item_id} no tiene devolución que cancelar. Estado actual: {status}",
            rule_name="item_not_returned",
            details={"entrega_item_id": item_id, "status": status}
        )
