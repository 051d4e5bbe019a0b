"""
Caso de uso: Concluir nota de movimentação.
Convierte los ítems planificados de una nota en movimientos del kardex y
en cambios de saldo, todo dentro de una única transacción.

Responsabilidades:
1. Validar estado de la nota y permisos
2. Verificar estoque suficiente antes de escribir
3. Generar movimientos y actualizar saldos según el tipo de nota
4. Marcar la nota como concluida

Si cualquier paso falla, nada queda persistido: la nota sigue en
rascunho, sin movimientos y sin cambios de saldo.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException
from ....app.domain.entities.movement_entry import MovementLedgerEntry
from ....app.domain.entities.movement_note import MovementNote, NoteItem
from ....app.domain.enums import MovementKind, NoteKind, StockStatus
from ....app.domain.exceptions import (
    AdjustmentNotAllowedError,
    InsufficientStockError,
    InvalidMovementTypeError,
    NoteNotEditableError,
)
from ....app.application.ports.unit_of_work import UnitOfWork
from .manage_draft_note import require_actor
from .movement_ledger import MovementLedgerService

logger = logging.getLogger(__name__)


@dataclass
class ConcludeNoteRequest:
    """DTO de entrada para concluir una nota"""
    note_id: int
    actor_user_id: str
    validate_stock: bool = True


@dataclass
class ConcludeNoteResponse:
    """DTO de salida: nota concluida y movimientos generados"""
    note: MovementNote
    ledger_entries: List[MovementLedgerEntry] = field(default_factory=list)
    processed_items: int = 0

    @property
    def message(self) -> str:
        return (
            f"Nota {self.note.number} concluida: {self.processed_items} ítems, "
            f"{len(self.ledger_entries)} movimientos"
        )


class ConcludeNoteUseCase:
    """
    Procesador de conclusión de notas.

    Flujo:
    1. Bloquear y validar la nota (rascunho con ítems)
    2. Verificar permisos (ajustes) y estoque (tipos que consumen)
    3. Procesar cada ítem según el tipo de nota
    4. Concluir la nota y confirmar la transacción
    """

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def execute(self, request: ConcludeNoteRequest) -> ConcludeNoteResponse:
        """
        Ejecutar la conclusión.

        Raises:
            ValidationException: Si falta el usuario responsable
            NotFoundException: Si la nota no existe
            NoteNotEditableError: Si la nota no está en rascunho
            EmptyNoteError: Si la nota no tiene ítems
            InsufficientStockError: Si algún ítem no tiene saldo suficiente
            AdjustmentNotAllowedError: Si la nota es de ajuste y los ajustes están deshabilitados
        """
        require_actor(request.actor_user_id)

        async with self.uow:
            note = await self.uow.notes.find_by_id(request.note_id, for_update=True)
            if note is None:
                raise NotFoundException("Nota de movimiento", request.note_id)
            if not note.is_draft:
                raise NoteNotEditableError(note.number, note.status.value, "conclude")

            allow_negative = await self.uow.config.is_negative_stock_allowed()
            if note.kind == NoteKind.ADJUSTMENT and not await self.uow.config.is_forced_adjustment_allowed():
                raise AdjustmentNotAllowedError("los ajustes forzados están deshabilitados")

            if request.validate_stock and not allow_negative:
                await self._check_stock(note)

            ledger = MovementLedgerService(self.uow.movements, self.uow.stock, self.clock)
            entries: List[MovementLedgerEntry] = []
            for item in note.items:
                entries.extend(
                    await self._process_item(note, item, ledger, request.actor_user_id, allow_negative)
                )
                item.processed_quantity = item.quantity

            # Valida rascunho con ítems; una nota vacía aborta aquí sin escrituras
            note.conclude(self.clock.now())
            note = await self.uow.notes.save(note)
            await self.uow.commit()

        logger.info(
            "Nota concluida",
            extra={"extra_data": {
                "note_id": note.id,
                "note_number": note.number,
                "kind": note.kind.value,
                "entries": len(entries),
            }}
        )
        return ConcludeNoteResponse(note=note, ledger_entries=entries, processed_items=len(note.items))

    async def _check_stock(self, note: MovementNote) -> None:
        """Verificar todos los ítems antes de escribir el primer movimiento"""
        if note.kind in (NoteKind.TRANSFER, NoteKind.DISPOSAL):
            warehouse_id = note.origin_warehouse_id
        elif note.kind == NoteKind.ADJUSTMENT:
            warehouse_id = note.destination_warehouse_id
        else:
            return

        for item in note.items:
            if note.kind == NoteKind.ADJUSTMENT and item.sign > 0:
                continue
            balance = await self.uow.stock.get_for_update(warehouse_id, item.item_type_id)
            available = balance.quantity if balance else 0
            if available < item.quantity:
                raise InsufficientStockError(
                    warehouse_id=warehouse_id,
                    item_type_id=item.item_type_id,
                    available=available,
                    required=item.quantity
                )

    async def _process_item(
        self,
        note: MovementNote,
        item: NoteItem,
        ledger: MovementLedgerService,
        actor_user_id: str,
        allow_negative: bool,
    ) -> List[MovementLedgerEntry]:
        """Generar movimientos y actualizar saldos de un ítem"""
        status = StockStatus.AVAILABLE
        common = dict(
            item_type_id=item.item_type_id,
            quantity=item.quantity,
            actor_user_id=actor_user_id,
            origin_note_id=note.id,
            notes=item.notes or note.notes,
        )

        if note.kind == NoteKind.ENTRY:
            entry = await ledger.create_entry(
                MovementKind.ENTRY, warehouse_id=note.destination_warehouse_id, **common
            )
            await self.uow.stock.add(note.destination_warehouse_id, item.item_type_id, status, item.quantity)
            return [entry]

        if note.kind == NoteKind.TRANSFER:
            out_leg = await ledger.create_entry(
                MovementKind.TRANSFER, warehouse_id=note.origin_warehouse_id, **common
            )
            await self.uow.stock.remove(
                note.origin_warehouse_id, item.item_type_id, status, item.quantity, allow_negative
            )
            in_leg = await ledger.create_entry(
                MovementKind.ENTRY, warehouse_id=note.destination_warehouse_id, **common
            )
            await self.uow.stock.add(note.destination_warehouse_id, item.item_type_id, status, item.quantity)
            return [out_leg, in_leg]

        if note.kind == NoteKind.DISPOSAL:
            entry = await ledger.create_entry(
                MovementKind.DISPOSAL, warehouse_id=note.origin_warehouse_id, **common
            )
            await self.uow.stock.remove(
                note.origin_warehouse_id, item.item_type_id, status, item.quantity, allow_negative
            )
            return [entry]

        if note.kind == NoteKind.ADJUSTMENT:
            warehouse_id = note.destination_warehouse_id
            entry = await ledger.create_entry(
                MovementKind.ADJUSTMENT, warehouse_id=warehouse_id, direction=item.sign, **common
            )
            # El saldo queda fijado en el saldo posterior del kardex
            if entry.balance_after < 0 and not allow_negative:
                raise InsufficientStockError(
                    warehouse_id=warehouse_id,
                    item_type_id=item.item_type_id,
                    available=entry.balance_before,
                    required=item.quantity
                )
            await self.uow.stock.upsert(
                warehouse_id, item.item_type_id, status, entry.balance_after, allow_negative
            )
            return [entry]

        raise InvalidMovementTypeError(note.kind)

