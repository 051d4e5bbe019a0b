"""
Modelos SQLAlchemy para persistencia en base de datos.
ESTA ES LA CAPA DE PERSISTENCIA, NO CONFUNDIR CON ENTIDADES DE DOMINIO.

Principios:
- Cada modelo representa una tabla en la base de datos
- Relaciones definidas con SQLAlchemy ORM (carga selectin, segura en async)
- Validaciones a nivel de base de datos con CheckConstraint y UniqueConstraint
"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base, BaseModel
from ...app.domain.enums import (
    AdjustmentDirection,
    EntregaItemStatus,
    EntregaStatus,
    FichaStatus,
    MovementKind,
    NoteKind,
    NoteStatus,
    ReturnDestination,
    StockStatus,
)


# ==================== MODELO TIPO EPI ====================
class ItemTypeModel(BaseModel):
    """
    Tipo de EPI.

    Campos:
    - name: Nombre comercial
    - ca_number: Certificado de Aprovação (único)
    - lifespan_days: Vida útil en días (plazo de devolución)
    - active: Disponible para nuevas notas y entregas
    """
    __tablename__ = "item_types"

    name = Column(String(255), nullable=False)
    ca_number = Column(String(50), unique=True, index=True, nullable=False)
    lifespan_days = Column(Integer, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint('lifespan_days > 0', name='check_lifespan_positive'),
    )


# ==================== MODELO FICHA EPI ====================
class FichaEpiModel(BaseModel):
    """Ficha EPI del colaborador (una por colaborador)"""
    __tablename__ = "fichas_epi"

    employee_id = Column(String(50), unique=True, index=True, nullable=False)
    status = Column(Enum(FichaStatus, name="ficha_status"), default=FichaStatus.ACTIVE, nullable=False)


# ==================== MODELO SALDO ====================
class StockBalanceModel(BaseModel):
    """
    Saldo por (almacén, tipo de EPI, situación).

    Sin CheckConstraint de no-negatividad: el override de configuración
    permite saldos negativos explícitos.
    """
    __tablename__ = "stock_balances"

    warehouse_id = Column(String(50), nullable=False, index=True)
    item_type_id = Column(Integer, ForeignKey("item_types.id"), nullable=False)
    status = Column(Enum(StockStatus, name="stock_status"), default=StockStatus.AVAILABLE, nullable=False)
    quantity = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint('warehouse_id', 'item_type_id', 'status', name='uq_stock_balance_key'),
    )

    def __repr__(self) -> str:
        return (
            f"<StockBalance(id={self.id}, warehouse='{self.warehouse_id}', "
            f"item_type={self.item_type_id}, status={self.status}, qty={self.quantity})>"
        )


# ==================== MODELO NOTA DE MOVIMENTAÇÃO ====================
class MovementNoteModel(BaseModel):
    """Cabecera de nota de movimentação"""
    __tablename__ = "movement_notes"

    number = Column(String(30), unique=True, index=True, nullable=False)
    kind = Column(Enum(NoteKind, name="note_kind"), nullable=False)
    status = Column(Enum(NoteStatus, name="note_status"), default=NoteStatus.DRAFT, nullable=False)
    origin_warehouse_id = Column(String(50), nullable=True)
    destination_warehouse_id = Column(String(50), nullable=True)
    actor_user_id = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)
    concluded_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    items = relationship(
        "NoteItemModel",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="NoteItemModel.id",
        lazy="selectin",
    )


class NoteItemModel(Base):
    """Ítem de nota; un tipo de EPI por nota"""
    __tablename__ = "movement_note_items"

    id = Column(Integer, primary_key=True, index=True)
    note_id = Column(Integer, ForeignKey("movement_notes.id", ondelete="CASCADE"), nullable=False)
    item_type_id = Column(Integer, ForeignKey("item_types.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    processed_quantity = Column(Integer, default=0, nullable=False)
    direction = Column(
        Enum(AdjustmentDirection, name="adjustment_direction"),
        default=AdjustmentDirection.INCREASE,
        nullable=False,
    )
    notes = Column(Text, nullable=True)

    note = relationship("MovementNoteModel", back_populates="items")

    __table_args__ = (
        UniqueConstraint('note_id', 'item_type_id', name='uq_note_item_type'),
        CheckConstraint('quantity > 0', name='check_note_item_quantity_positive'),
    )


# ==================== MODELO MOVIMIENTO DE ESTOQUE ====================
class MovementEntryModel(Base):
    """
    Movimiento de kardex. Inmutable: solo INSERT.

    reversal_of_entry_id es único, de modo que un movimiento solo
    puede tener un estorno aunque dos transacciones compitan.
    """
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    warehouse_id = Column(String(50), nullable=False)
    item_type_id = Column(Integer, ForeignKey("item_types.id"), nullable=False)
    stock_status = Column(Enum(StockStatus, name="stock_status"), default=StockStatus.AVAILABLE, nullable=False)
    kind = Column(Enum(MovementKind, name="movement_kind"), nullable=False)
    direction = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    balance_before = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    origin_note_id = Column(Integer, ForeignKey("movement_notes.id"), nullable=True, index=True)
    entrega_id = Column(Integer, ForeignKey("entregas.id"), nullable=True, index=True)
    actor_user_id = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)
    reversal_of_entry_id = Column(Integer, ForeignKey("stock_movements.id"), nullable=True, unique=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_movement_quantity_positive'),
        CheckConstraint('direction IN (1, -1)', name='check_movement_direction'),
        CheckConstraint(
            'balance_after = balance_before + direction * quantity',
            name='check_movement_balance_arithmetic'
        ),
    )


# ==================== MODELO ENTREGA ====================
class EntregaModel(BaseModel):
    """Cabecera de entrega de EPIs"""
    __tablename__ = "entregas"

    ficha_epi_id = Column(Integer, ForeignKey("fichas_epi.id"), nullable=False, index=True)
    warehouse_id = Column(String(50), nullable=False)
    responsible_user_id = Column(String(50), nullable=False)
    status = Column(
        Enum(EntregaStatus, name="entrega_status"),
        default=EntregaStatus.PENDING_SIGNATURE,
        nullable=False,
    )
    issued_at = Column(DateTime, nullable=False)
    signed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    items = relationship(
        "EntregaItemModel",
        back_populates="entrega",
        cascade="all, delete-orphan",
        order_by="EntregaItemModel.id",
        lazy="selectin",
    )


class EntregaItemModel(Base):
    """Unidad entregada; quantity es siempre 1"""
    __tablename__ = "entrega_items"

    id = Column(Integer, primary_key=True, index=True)
    entrega_id = Column(Integer, ForeignKey("entregas.id", ondelete="CASCADE"), nullable=False)
    origin_stock_item_id = Column(Integer, ForeignKey("stock_balances.id"), nullable=False)
    item_type_id = Column(Integer, ForeignKey("item_types.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    status = Column(
        Enum(EntregaItemStatus, name="entrega_item_status"),
        default=EntregaItemStatus.WITH_EMPLOYEE,
        nullable=False,
    )
    return_deadline = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    return_reason = Column(Text, nullable=True)
    return_destination = Column(Enum(ReturnDestination, name="return_destination"), nullable=True)

    entrega = relationship("EntregaModel", back_populates="items")

    __table_args__ = (
        CheckConstraint('quantity = 1', name='check_entrega_item_single_unit'),
    )


# ==================== MODELO CONFIGURACIÓN ====================
class ConfigurationModel(BaseModel):
    """Banderas de negocio editables en caliente"""
    __tablename__ = "configurations"

    key = Column(String(100), unique=True, index=True, nullable=False)
    value = Column(String(255), nullable=False)
