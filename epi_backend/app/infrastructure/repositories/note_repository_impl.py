"""
Implementación concreta del repositorio de notas con SQLAlchemy.
"""
from typing import List, Optional

from sqlalchemy import select

from ....app.core.exceptions import NotFoundException
from ....app.domain.entities.movement_note import MovementNote, NoteItem
from ....app.domain.enums import AdjustmentDirection, NoteKind, NoteStatus
from ....app.application.ports.note_repository import NoteRepository
from ....infrastructure.database.models import MovementNoteModel, NoteItemModel
from .base_repository import SQLAlchemyRepository


class SQLAlchemyNoteRepository(SQLAlchemyRepository, NoteRepository):
    """Implementación concreta con SQLAlchemy para notas"""

    conflict_message = "Número de nota o ítem duplicado"

    async def add(self, note: MovementNote) -> MovementNote:
        db_note = MovementNoteModel(
            number=note.number,
            kind=note.kind,
            status=note.status,
            origin_warehouse_id=note.origin_warehouse_id,
            destination_warehouse_id=note.destination_warehouse_id,
            actor_user_id=note.actor_user_id,
            notes=note.notes,
            concluded_at=note.concluded_at,
            cancelled_at=note.cancelled_at,
            items=[self._item_to_model(item) for item in note.items],
        )
        if note.created_at is not None:
            db_note.created_at = note.created_at

        self.session.add(db_note)
        await self._flush()

        note.id = db_note.id
        for item, db_item in zip(note.items, db_note.items):
            item.id = db_item.id
        return note

    async def save(self, note: MovementNote) -> MovementNote:
        """Sincronizar cabecera e ítems"""
        db_note = await self._fetch(note.id)
        if db_note is None:
            raise NotFoundException("Nota de movimiento", note.id)

        db_note.status = note.status
        db_note.notes = note.notes
        db_note.concluded_at = note.concluded_at
        db_note.cancelled_at = note.cancelled_at

        # Sincronizar ítems por tipo de EPI
        wanted = {item.item_type_id: item for item in note.items}
        for db_item in list(db_note.items):
            if db_item.item_type_id not in wanted:
                db_note.items.remove(db_item)

        existing = {db_item.item_type_id: db_item for db_item in db_note.items}
        for item in note.items:
            db_item = existing.get(item.item_type_id)
            if db_item is None:
                db_note.items.append(self._item_to_model(item))
            else:
                db_item.quantity = item.quantity
                db_item.processed_quantity = item.processed_quantity
                db_item.notes = item.notes
                db_item.direction = item.direction

        await self._flush()

        ids = {db_item.item_type_id: db_item.id for db_item in db_note.items}
        for item in note.items:
            item.id = ids.get(item.item_type_id)
        return note

    async def find_by_id(self, note_id: int, for_update: bool = False) -> Optional[MovementNote]:
        db_note = await self._fetch(note_id, for_update=for_update)
        return self._to_domain(db_note) if db_note else None

    async def list(
        self,
        status: Optional[NoteStatus] = None,
        kind: Optional[NoteKind] = None,
        actor_user_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[MovementNote]:
        """Listar notas, más recientes primero"""
        stmt = select(MovementNoteModel)
        if status:
            stmt = stmt.where(MovementNoteModel.status == NoteStatus(status))
        if kind:
            stmt = stmt.where(MovementNoteModel.kind == NoteKind(kind))
        if actor_user_id:
            stmt = stmt.where(MovementNoteModel.actor_user_id == actor_user_id)

        stmt = stmt.order_by(MovementNoteModel.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def delete(self, note_id: int) -> None:
        db_note = await self._fetch(note_id)
        if db_note is None:
            raise NotFoundException("Nota de movimiento", note_id)
        await self.session.delete(db_note)
        await self._flush()

    async def max_sequence(self, number_prefix: str) -> int:
        """Mayor secuencia para el prefijo (números con secuencia de ancho fijo)"""
        result = await self.session.execute(
            select(MovementNoteModel.number)
            .where(MovementNoteModel.number.like(f"{number_prefix}%"))
            .order_by(MovementNoteModel.number.desc())
            .limit(1)
        )
        number = result.scalar_one_or_none()
        if not number:
            return 0
        try:
            return int(number[len(number_prefix):])
        except ValueError:
            return 0

    async def _fetch(self, note_id: int, for_update: bool = False) -> Optional[MovementNoteModel]:
        stmt = (
            select(MovementNoteModel)
            .where(MovementNoteModel.id == note_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _item_to_model(item: NoteItem) -> NoteItemModel:
        return NoteItemModel(
            item_type_id=item.item_type_id,
            quantity=item.quantity,
            processed_quantity=item.processed_quantity,
            notes=item.notes,
            direction=item.direction,
        )

    def _to_domain(self, db_note: MovementNoteModel) -> MovementNote:
        """Convertir de modelo de persistencia a entidad de dominio"""
        return MovementNote(
            id=db_note.id,
            number=db_note.number,
            kind=NoteKind(db_note.kind),
            status=NoteStatus(db_note.status),
            origin_warehouse_id=db_note.origin_warehouse_id,
            destination_warehouse_id=db_note.destination_warehouse_id,
            actor_user_id=db_note.actor_user_id,
            notes=db_note.notes,
            created_at=db_note.created_at,
            concluded_at=db_note.concluded_at,
            cancelled_at=db_note.cancelled_at,
            items=[
                NoteItem(
                    id=db_item.id,
                    item_type_id=db_item.item_type_id,
                    quantity=db_item.quantity,
                    processed_quantity=db_item.processed_quantity,
                    notes=db_item.notes,
                    direction=AdjustmentDirection(db_item.direction),
                )
                for db_item in db_note.items
            ],
        )
