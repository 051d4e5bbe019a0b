"""
Entidades de catálogo: tipo de EPI y ficha EPI del colaborador.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ....app.core.exceptions import BusinessRuleException, ValidationException
from ....app.domain.enums import FichaStatus
from ....app.domain.exceptions import FichaNotActiveError


@dataclass
class ItemType:
    """
    Tipo de EPI (capacete, luva, óculos...).

    lifespan_days define el plazo de devolución de cada unidad entregada.
    """
    name: str
    ca_number: str
    lifespan_days: int
    active: bool = True
    description: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValidationException("El nombre del tipo EPI es requerido", field="name")
        if not self.ca_number or not self.ca_number.strip():
            raise ValidationException("El número de CA es requerido", field="ca_number")
        if not isinstance(self.lifespan_days, int) or self.lifespan_days <= 0:
            raise ValidationException(
                "La vida útil debe ser un número positivo de días",
                field="lifespan_days",
                details={"value": self.lifespan_days}
            )

    def return_deadline(self, issued_at: datetime) -> datetime:
        return issued_at + timedelta(days=self.lifespan_days)

    def require_active(self) -> None:
        if not self.active:
            raise BusinessRuleException(
                f"El tipo EPI {self.id} está inactivo",
                "item_type_inactive",
                {"item_type_id": self.id}
            )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "ca_number": self.ca_number,
            "lifespan_days": self.lifespan_days,
            "active": self.active,
            "description": self.description,
        }


@dataclass
class FichaEpi:
    """Ficha EPI: registro por colaborador que ancla el historial de entregas"""
    employee_id: str
    status: FichaStatus = FichaStatus.ACTIVE
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.status = FichaStatus(self.status)
        if not self.employee_id or not str(self.employee_id).strip():
            raise ValidationException("El colaborador es requerido", field="employee_id")

    def require_active(self) -> None:
        if self.status != FichaStatus.ACTIVE:
            raise FichaNotActiveError(self.id or 0, self.status.value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
