"""
DTOs y Schemas para la capa de aplicación.
Define los formatos de entrada/salida para la API.

Responsabilidades:
- Validación de datos de entrada
- Serialización de datos de salida
- Documentación automática para OpenAPI
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone

from ....app.domain.enums import (
    AdjustmentDirection,
    NoteKind,
    ReturnCondition,
    ReturnDestination,
)


# ==================== NOTAS ====================
class NoteCreate(BaseModel):
    """Schema para crear nota en rascunho"""
    kind: NoteKind = Field(..., description="Tipo de nota", examples=["ENTRY"])
    origin_warehouse_id: Optional[str] = Field(
        None,
        max_length=50,
        description="Almacén de origen (transferencia y descarte)",
        examples=["ALM-CENTRAL"]
    )
    destination_warehouse_id: Optional[str] = Field(
        None,
        max_length=50,
        description="Almacén de destino (entrada, transferencia y ajuste)",
        examples=["ALM-OBRA-01"]
    )
    notes: Optional[str] = Field(None, max_length=500, description="Observaciones")


class NoteHeaderUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class NoteItemCreate(BaseModel):
    """Schema para agregar un tipo de EPI a la nota"""
    item_type_id: int = Field(..., gt=0, description="ID del tipo de EPI")
    quantity: int = Field(..., gt=0, description="Cantidad planificada", examples=[10])
    direction: AdjustmentDirection = Field(
        default=AdjustmentDirection.INCREASE,
        description="Sentido del ítem (solo notas de ajuste admiten DECREASE)"
    )
    notes: Optional[str] = Field(None, max_length=500)


class NoteItemUpdate(BaseModel):
    quantity: int = Field(..., gt=0, description="Nueva cantidad planificada")


class NoteConclude(BaseModel):
    validate_stock: bool = Field(default=True, description="Verificar saldo antes de procesar")


class NoteCancel(BaseModel):
    """Schema para cancelar nota"""
    reason: Optional[str] = Field(None, max_length=500, description="Motivo de la cancelación")
    generate_reversal: bool = Field(
        default=True,
        description="Estornar los movimientos de una nota concluida"
    )


# ==================== ESTOQUE ====================
class DirectAdjustmentCreate(BaseModel):
    """Schema para ajuste directo de saldo"""
    warehouse_id: str = Field(..., min_length=1, max_length=50, examples=["ALM-CENTRAL"])
    item_type_id: int = Field(..., gt=0)
    new_quantity: int = Field(..., ge=0, description="Saldo contado", examples=[42])
    reason: str = Field(..., description="Motivo del ajuste", examples=["Inventario mensual"])

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        """Validar que el motivo no esté vacío"""
        if not v or not v.strip():
            raise ValueError('El motivo del ajuste es requerido')
        return v.strip()


class InventoryCountItem(BaseModel):
    item_type_id: int = Field(..., gt=0)
    counted_quantity: int = Field(..., ge=0)
    reason: Optional[str] = Field(None, max_length=500)


class InventoryCountCreate(BaseModel):
    """Schema para inventario completo de un almacén"""
    warehouse_id: str = Field(..., min_length=1, max_length=50)
    items: List[InventoryCountItem] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class AdjustmentSimulation(BaseModel):
    warehouse_id: str = Field(..., min_length=1, max_length=50)
    item_type_id: int = Field(..., gt=0)
    new_quantity: int = Field(..., ge=0)


class ConfigurationUpdate(BaseModel):
    """Schema para actualizar una bandera de configuración"""
    key: str = Field(..., description="Clave", examples=["PERMITIR_ESTOQUE_NEGATIVO"])
    value: str = Field(..., description="Valor como texto", examples=["true"])


# ==================== CATÁLOGO ====================
class ItemTypeCreate(BaseModel):
    """Schema para crear tipo de EPI"""
    name: str = Field(..., min_length=2, max_length=255, examples=["Capacete de segurança"])
    ca_number: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Número del Certificado de Aprovação",
        examples=["CA-12345"]
    )
    lifespan_days: int = Field(..., gt=0, description="Vida útil en días", examples=[365])
    description: Optional[str] = Field(None, max_length=500)
    active: bool = True


class FichaCreate(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=50, examples=["COL-0001"])


# ==================== ENTREGAS ====================
class EntregaCreate(BaseModel):
    """Schema para emitir una entrega"""
    ficha_epi_id: int = Field(..., gt=0)
    origin_stock_item_ids: List[int] = Field(
        ...,
        min_length=1,
        description="Un ID de saldo por unidad entregada (se repite para varias unidades)",
        examples=[[1, 1, 2]]
    )
    require_signature: bool = True
    notes: Optional[str] = Field(None, max_length=500)


class EntregaCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReturnItem(BaseModel):
    """Unidad devuelta"""
    entrega_item_id: int = Field(..., gt=0)
    returned_quantity: int = Field(default=1, description="Siempre 1: cada ítem es una unidad")
    condition: ReturnCondition = ReturnCondition.GOOD
    destination: Optional[ReturnDestination] = None
    reason: Optional[str] = Field(None, max_length=500)


class ReturnCreate(BaseModel):
    items: List[ReturnItem] = Field(..., min_length=1)


# ==================== RESPUESTAS GENÉRICAS ====================
class SuccessResponse(BaseModel):
    """Respuesta genérica de éxito"""
    success: bool = True
    message: str
    data: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Respuesta genérica de error"""
    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
