"""
Enumeraciones del dominio EPI.
Compartidas por entidades, modelos de persistencia y schemas.
"""
import enum


class MovementKind(str, enum.Enum):
    """Tipos de movimiento del kardex"""
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    TRANSFER = "TRANSFER"
    DISPOSAL = "DISPOSAL"
    ADJUSTMENT = "ADJUSTMENT"
    REVERSAL = "REVERSAL"


class StockStatus(str, enum.Enum):
    """Situación del saldo dentro del almacén"""
    AVAILABLE = "AVAILABLE"
    QUARANTINE = "QUARANTINE"
    AWAITING_DISPOSAL = "AWAITING_DISPOSAL"


class NoteKind(str, enum.Enum):
    """Tipos de nota de movimentação"""
    ENTRY = "ENTRY"
    TRANSFER = "TRANSFER"
    DISPOSAL = "DISPOSAL"
    ADJUSTMENT = "ADJUSTMENT"


class NoteStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    CONCLUDED = "CONCLUDED"
    CANCELLED = "CANCELLED"


class AdjustmentDirection(str, enum.Enum):
    """Sentido de un ítem de nota de ajuste"""
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"


class EntregaStatus(str, enum.Enum):
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    ACTIVE = "ACTIVE"
    PARTIALLY_RETURNED = "PARTIALLY_RETURNED"
    FULLY_RETURNED = "FULLY_RETURNED"
    CANCELLED = "CANCELLED"


class EntregaItemStatus(str, enum.Enum):
    WITH_EMPLOYEE = "WITH_EMPLOYEE"
    RETURNED = "RETURNED"
    LOST = "LOST"
    DAMAGED = "DAMAGED"


class ReturnCondition(str, enum.Enum):
    """Condición declarada del ítem devuelto"""
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    LOST = "LOST"


class ReturnDestination(str, enum.Enum):
    QUARANTINE = "QUARANTINE"
    DISPOSAL = "DISPOSAL"


class FichaStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class PossessionStatus(str, enum.Enum):
    """Clasificación de la posesión actual frente al plazo de devolución"""
    ACTIVE = "ACTIVE"
    NEAR_EXPIRY = "NEAR_EXPIRY"
    OVERDUE = "OVERDUE"
