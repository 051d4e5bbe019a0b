"""
Caso de uso: Gestionar notas de movimentação en rascunho.

Creación con numeración por tipo/año, edición de ítems y cabecera,
eliminación de rascunhos y consultas. Ninguna de estas operaciones
toca el estoque ni el kardex.
"""
from dataclasses import dataclass
from typing import List, Optional

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException, ValidationException
from ....app.domain.entities.movement_note import MovementNote, format_note_number, note_number_prefix
from ....app.domain.enums import AdjustmentDirection, NoteKind, NoteStatus
from ....app.domain.exceptions import NoteNotEditableError
from ....app.application.ports.unit_of_work import UnitOfWork


@dataclass
class CreateNoteRequest:
    """DTO para crear una nota en rascunho"""
    kind: NoteKind
    actor_user_id: str
    origin_warehouse_id: Optional[str] = None
    destination_warehouse_id: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class AddNoteItemRequest:
    note_id: int
    item_type_id: int
    quantity: int
    actor_user_id: str
    notes: Optional[str] = None
    direction: AdjustmentDirection = AdjustmentDirection.INCREASE


def require_actor(actor_user_id: Optional[str]) -> None:
    """Toda operación mutante exige el usuario responsable"""
    if not actor_user_id or not str(actor_user_id).strip():
        raise ValidationException("El usuario responsable es requerido", field="actor_user_id")


class ManageDraftNoteUseCase:
    """
    Operaciones sobre notas en rascunho.

    Cada método abre su propio Unit of Work.
    """

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def create_note(self, request: CreateNoteRequest) -> MovementNote:
        """
        Crear una nota en rascunho con el siguiente número del tipo/año.

        Raises:
            ValidationException: Si falta el usuario responsable
            InvalidWarehouseCombinationError: Si los almacenes no corresponden al tipo
            ConflictException: Si otro proceso tomó el mismo número
        """
        require_actor(request.actor_user_id)
        now = self.clock.now()

        async with self.uow:
            note = MovementNote(
                kind=request.kind,
                actor_user_id=request.actor_user_id,
                origin_warehouse_id=request.origin_warehouse_id,
                destination_warehouse_id=request.destination_warehouse_id,
                notes=request.notes,
                created_at=now,
            )
            prefix = note_number_prefix(note.kind, now.year)
            sequence = await self.uow.notes.max_sequence(prefix) + 1
            note.number = format_note_number(note.kind, now.year, sequence)

            note = await self.uow.notes.add(note)
            await self.uow.commit()
            return note

    async def add_item(self, request: AddNoteItemRequest) -> MovementNote:
        """
        Agregar un tipo de EPI a la nota.

        Raises:
            NotFoundException: Si la nota o el tipo de EPI no existen
            NoteNotEditableError: Si la nota no está en rascunho
            DuplicateNoteItemError: Si el tipo ya está en la nota
        """
        require_actor(request.actor_user_id)
        async with self.uow:
            note = await self._get_note(request.note_id, for_update=True)
            if await self.uow.item_types.find_by_id(request.item_type_id) is None:
                raise NotFoundException("Tipo EPI", request.item_type_id)

            note.add_item(
                item_type_id=request.item_type_id,
                quantity=request.quantity,
                notes=request.notes,
                direction=request.direction,
            )
            note = await self.uow.notes.save(note)
            await self.uow.commit()
            return note

    async def update_item_quantity(self, note_id: int, item_type_id: int,
                                   quantity: int, actor_user_id: str) -> MovementNote:
        require_actor(actor_user_id)
        async with self.uow:
            note = await self._get_note(note_id, for_update=True)
            note.update_item_quantity(item_type_id, quantity)
            note = await self.uow.notes.save(note)
            await self.uow.commit()
            return note

    async def remove_item(self, note_id: int, item_type_id: int, actor_user_id: str) -> MovementNote:
        require_actor(actor_user_id)
        async with self.uow:
            note = await self._get_note(note_id, for_update=True)
            note.remove_item(item_type_id)
            note = await self.uow.notes.save(note)
            await self.uow.commit()
            return note

    async def update_header(self, note_id: int, notes: Optional[str], actor_user_id: str) -> MovementNote:
        """Actualizar observaciones de la nota (solo rascunho)"""
        require_actor(actor_user_id)
        async with self.uow:
            note = await self._get_note(note_id, for_update=True)
            note.update_header(notes)
            note = await self.uow.notes.save(note)
            await self.uow.commit()
            return note

    async def delete_draft(self, note_id: int, actor_user_id: str) -> None:
        """
        Eliminar físicamente una nota en rascunho.

        Raises:
            NoteNotEditableError: Si la nota ya fue concluida o cancelada
        """
        require_actor(actor_user_id)
        async with self.uow:
            note = await self._get_note(note_id, for_update=True)
            if not note.is_draft:
                raise NoteNotEditableError(note.number, note.status.value, "delete")
            await self.uow.notes.delete(note_id)
            await self.uow.commit()

    async def get_note(self, note_id: int) -> MovementNote:
        async with self.uow:
            return await self._get_note(note_id)

    async def list_notes(
        self,
        status: Optional[NoteStatus] = None,
        kind: Optional[NoteKind] = None,
        actor_user_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[MovementNote]:
        async with self.uow:
            return await self.uow.notes.list(
                status=status, kind=kind, actor_user_id=actor_user_id, skip=skip, limit=limit
            )

    async def _get_note(self, note_id: int, for_update: bool = False) -> MovementNote:
        note = await self.uow.notes.find_by_id(note_id, for_update=for_update)
        if note is None:
            raise NotFoundException("Nota de movimiento", note_id)
        return note
