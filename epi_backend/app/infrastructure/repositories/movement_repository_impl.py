"""
Implementación concreta del repositorio de movimientos con SQLAlchemy.
Adaptador para el kardex: solo INSERT y consultas.
"""
from typing import List, Optional
from datetime import datetime

from sqlalchemy import select

from ....app.domain.entities.movement_entry import MovementLedgerEntry
from ....app.domain.enums import MovementKind, StockStatus
from ....app.application.ports.movement_repository import MovementRepository
from ....infrastructure.database.models import MovementEntryModel as MovementModel
from .base_repository import SQLAlchemyRepository


class SQLAlchemyMovementRepository(SQLAlchemyRepository, MovementRepository):
    """Implementación concreta con SQLAlchemy para movimientos"""

    conflict_message = "El movimiento ya fue estornado por otra operación"

    async def add(self, entry: MovementLedgerEntry) -> MovementLedgerEntry:
        """Registrar un movimiento"""
        # Mapear entidad de dominio a modelo de persistencia
        db_movement = MovementModel(
            warehouse_id=entry.warehouse_id,
            item_type_id=entry.item_type_id,
            stock_status=entry.stock_status,
            kind=entry.kind,
            direction=entry.direction,
            quantity=entry.quantity,
            balance_before=entry.balance_before,
            balance_after=entry.balance_after,
            origin_note_id=entry.origin_note_id,
            entrega_id=entry.entrega_id,
            actor_user_id=entry.actor_user_id,
            notes=entry.notes,
            reversal_of_entry_id=entry.reversal_of_entry_id,
        )
        if entry.created_at is not None:
            db_movement.created_at = entry.created_at

        self.session.add(db_movement)
        await self._flush()
        return entry.with_id(db_movement.id)

    async def find_by_id(self, entry_id: int) -> Optional[MovementLedgerEntry]:
        """Buscar movimiento por ID"""
        result = await self.session.execute(
            select(MovementModel).where(MovementModel.id == entry_id)
        )
        db_movement = result.scalar_one_or_none()
        return self._to_domain(db_movement) if db_movement else None

    async def latest_balance(self, warehouse_id: str, item_type_id: int,
                             status: StockStatus = StockStatus.AVAILABLE) -> int:
        """Saldo posterior del último movimiento de la clave"""
        result = await self.session.execute(
            select(MovementModel.balance_after)
            .where(
                MovementModel.warehouse_id == warehouse_id,
                MovementModel.item_type_id == item_type_id,
                MovementModel.stock_status == StockStatus(status),
            )
            .order_by(MovementModel.id.desc())
            .limit(1)
        )
        balance = result.scalar_one_or_none()
        return balance if balance is not None else 0

    async def find_by_note(self, note_id: int, include_reversals: bool = False) -> List[MovementLedgerEntry]:
        """Movimientos de una nota"""
        stmt = select(MovementModel).where(MovementModel.origin_note_id == note_id)
        if not include_reversals:
            stmt = stmt.where(MovementModel.kind != MovementKind.REVERSAL)
        result = await self.session.execute(stmt.order_by(MovementModel.id))
        return [self._to_domain(m) for m in result.scalars().all()]

    async def find_by_entrega(self, entrega_id: int, include_reversals: bool = False) -> List[MovementLedgerEntry]:
        """Movimientos de una entrega"""
        stmt = select(MovementModel).where(MovementModel.entrega_id == entrega_id)
        if not include_reversals:
            stmt = stmt.where(MovementModel.kind != MovementKind.REVERSAL)
        result = await self.session.execute(stmt.order_by(MovementModel.id))
        return [self._to_domain(m) for m in result.scalars().all()]

    async def is_reversed(self, entry_id: int) -> bool:
        result = await self.session.execute(
            select(MovementModel.id)
            .where(MovementModel.reversal_of_entry_id == entry_id)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def kardex(
        self,
        warehouse_id: str,
        item_type_id: int,
        status: Optional[StockStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[MovementLedgerEntry]:
        """Historial cronológico de una clave"""
        stmt = select(MovementModel).where(
            MovementModel.warehouse_id == warehouse_id,
            MovementModel.item_type_id == item_type_id,
        )

        # Aplicar filtros adicionales
        if status:
            stmt = stmt.where(MovementModel.stock_status == StockStatus(status))
        if start_date:
            stmt = stmt.where(MovementModel.created_at >= start_date)
        if end_date:
            stmt = stmt.where(MovementModel.created_at <= end_date)

        result = await self.session.execute(stmt.order_by(MovementModel.id))
        return [self._to_domain(m) for m in result.scalars().all()]

    def _to_domain(self, db_movement: MovementModel) -> MovementLedgerEntry:
        """Convertir de modelo de persistencia a entidad de dominio"""
        return MovementLedgerEntry(
            id=db_movement.id,
            warehouse_id=db_movement.warehouse_id,
            item_type_id=db_movement.item_type_id,
            stock_status=StockStatus(db_movement.stock_status),
            kind=MovementKind(db_movement.kind),
            direction=db_movement.direction,
            quantity=db_movement.quantity,
            balance_before=db_movement.balance_before,
            balance_after=db_movement.balance_after,
            origin_note_id=db_movement.origin_note_id,
            entrega_id=db_movement.entrega_id,
            actor_user_id=db_movement.actor_user_id,
            notes=db_movement.notes,
            reversal_of_entry_id=db_movement.reversal_of_entry_id,
            created_at=db_movement.created_at,
        )
