"""
Caso de uso: Cancelar nota de movimentação.

- Rascunho: transición simple, sin impacto en estoque.
- Concluida: estorna cada movimiento de la nota y restaura los saldos
  en una única transacción; si algún movimiento no puede estornarse,
  la nota sigue concluida y nada se persiste.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException
from ....app.domain.entities.movement_entry import MovementLedgerEntry
from ....app.domain.entities.movement_note import MovementNote
from ....app.domain.enums import MovementKind, NoteStatus
from ....app.domain.exceptions import (
    EntryNotReversibleError,
    InsufficientStockError,
    NoteNotCancellableError,
)
from ....app.application.ports.unit_of_work import UnitOfWork
from .manage_draft_note import require_actor
from .movement_ledger import MovementLedgerService

logger = logging.getLogger(__name__)


class ReversalEffect(str, Enum):
    """Cómo el estorno de cada tipo de movimiento restaura el saldo"""
    DECREMENT = "DECREMENT"
    INCREMENT = "INCREMENT"
    RESTORE_ABSOLUTE = "RESTORE_ABSOLUTE"


# Tipo original -> efecto del estorno sobre el saldo. REVERSAL no se estorna.
REVERSAL_EFFECTS: Dict[MovementKind, Optional[ReversalEffect]] = {
    MovementKind.ENTRY: ReversalEffect.DECREMENT,
    MovementKind.EXIT: ReversalEffect.INCREMENT,
    MovementKind.TRANSFER: ReversalEffect.INCREMENT,
    MovementKind.DISPOSAL: ReversalEffect.INCREMENT,
    MovementKind.ADJUSTMENT: ReversalEffect.RESTORE_ABSOLUTE,
    MovementKind.REVERSAL: None,
}

_missing = set(MovementKind) - set(REVERSAL_EFFECTS)
if _missing:
    raise RuntimeError(f"Tipos de movimiento sin efecto de estorno: {sorted(k.value for k in _missing)}")


@dataclass
class CancelNoteRequest:
    """DTO de entrada para cancelar una nota"""
    note_id: int
    actor_user_id: str
    reason: Optional[str] = None
    generate_reversal: bool = True


@dataclass
class CancelNoteResponse:
    """DTO de salida: nota cancelada y estornos generados"""
    note: MovementNote
    reversals: List[MovementLedgerEntry] = field(default_factory=list)
    stock_adjusted: bool = False

    @property
    def message(self) -> str:
        if self.stock_adjusted:
            return f"Nota {self.note.number} cancelada con {len(self.reversals)} estornos"
        return f"Nota {self.note.number} cancelada"


async def apply_reversal_to_stock(
    uow: UnitOfWork,
    original: MovementLedgerEntry,
    reversal: MovementLedgerEntry,
    allow_negative: bool,
) -> None:
    """
    Restaurar el saldo afectado por un movimiento estornado.

    Raises:
        EntryNotReversibleError: Si el tipo original no admite estorno
        InsufficientStockError: Si el saldo no cubre el estorno de una entrada
    """
    effect = REVERSAL_EFFECTS[original.kind]
    key = (original.warehouse_id, original.item_type_id, original.stock_status)

    if effect == ReversalEffect.DECREMENT:
        await uow.stock.remove(*key, original.quantity, allow_negative)
    elif effect == ReversalEffect.INCREMENT:
        await uow.stock.add(*key, original.quantity)
    elif effect == ReversalEffect.RESTORE_ABSOLUTE:
        if reversal.balance_after < 0 and not allow_negative:
            raise InsufficientStockError(
                warehouse_id=original.warehouse_id,
                item_type_id=original.item_type_id,
                available=reversal.balance_before,
                required=original.quantity
            )
        await uow.stock.upsert(*key, reversal.balance_after, allow_negative)
    else:
        raise EntryNotReversibleError(original.id, f"tipo {original.kind.value} no admite estorno")


class CancelNoteUseCase:
    """
    Procesador de cancelación de notas.

    Flujo (nota concluida):
    1. Bloquear la nota y obtener sus movimientos
    2. Verificar que todos sean estornables
    3. Crear cada estorno y restaurar el saldo correspondiente
    4. Marcar la nota como cancelada y confirmar
    """

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def execute(self, request: CancelNoteRequest) -> CancelNoteResponse:
        """
        Ejecutar la cancelación.

        Raises:
            NotFoundException: Si la nota no existe
            NoteNotCancellableError: Si el estado no admite cancelación o no hay movimientos
            EntryNotReversibleError: Si algún movimiento ya fue estornado
            InsufficientStockError: Si estornar una entrada dejaría saldo negativo
        """
        require_actor(request.actor_user_id)

        async with self.uow:
            note = await self._get_note(request.note_id, for_update=True)
            now = self.clock.now()

            if note.status == NoteStatus.DRAFT:
                note.cancel(now)
                note = await self.uow.notes.save(note)
                await self.uow.commit()
                logger.info(
                    "Rascunho cancelado",
                    extra={"extra_data": {"note_id": note.id, "note_number": note.number}}
                )
                return CancelNoteResponse(note=note, reversals=[], stock_adjusted=False)

            if note.status != NoteStatus.CONCLUDED or not request.generate_reversal:
                raise NoteNotCancellableError(
                    note.number,
                    f"estado {note.status.value}" if note.status != NoteStatus.CONCLUDED
                    else "una nota concluida solo se cancela generando estornos"
                )

            entries = await self.uow.movements.find_by_note(note.id)
            if not entries:
                raise NoteNotCancellableError(note.number, "la nota no tiene movimientos")
            for entry in entries:
                if await self.uow.movements.is_reversed(entry.id):
                    raise EntryNotReversibleError(entry.id, "el movimiento ya fue estornado")

            allow_negative = await self.uow.config.is_negative_stock_allowed()
            ledger = MovementLedgerService(self.uow.movements, self.uow.stock, self.clock)
            notes = f"Cancelación de la nota {note.number}"
            if request.reason:
                notes = f"{notes}: {request.reason}"

            reversals: List[MovementLedgerEntry] = []
            for entry in entries:
                reversal = await ledger.create_reversal(entry.id, request.actor_user_id, notes)
                await apply_reversal_to_stock(self.uow, entry, reversal, allow_negative)
                reversals.append(reversal)

            note.mark_cancelled_after_reversal(now)
            note = await self.uow.notes.save(note)
            await self.uow.commit()

        logger.info(
            "Nota concluida cancelada con estornos",
            extra={"extra_data": {
                "note_id": note.id,
                "note_number": note.number,
                "reversals": len(reversals),
            }}
        )
        return CancelNoteResponse(note=note, reversals=reversals, stock_adjusted=True)

    async def validate_cancellation(self, note_id: int) -> Dict[str, Any]:
        """
        Verificar, sin escribir, si la nota puede cancelarse.

        Returns:
            Dict: {can_cancel, note_status, reasons, warnings}
        """
        async with self.uow:
            note = await self._get_note(note_id)
            reasons: List[str] = []
            warnings: List[str] = []

            if note.status == NoteStatus.CANCELLED:
                reasons.append("La nota ya está cancelada")
            elif note.status == NoteStatus.CONCLUDED:
                entries = await self.uow.movements.find_by_note(note.id)
                if not entries:
                    reasons.append("La nota no tiene movimientos para estornar")
                for entry in entries:
                    if await self.uow.movements.is_reversed(entry.id):
                        reasons.append(f"El movimiento {entry.id} ya fue estornado")

                allow_negative = await self.uow.config.is_negative_stock_allowed()
                for impact in await self._impact(entries):
                    if impact["balance_after_cancellation"] < 0:
                        message = (
                            f"El saldo de tipo EPI {impact['item_type_id']} en almacén "
                            f"{impact['warehouse_id']} quedaría en {impact['balance_after_cancellation']}"
                        )
                        if allow_negative:
                            warnings.append(message)
                        else:
                            reasons.append(message)
                if entries:
                    warnings.append(f"Se generarán {len(entries)} estornos")

            return {
                "can_cancel": not reasons,
                "note_status": note.status.value,
                "reasons": reasons,
                "warnings": warnings,
            }

    async def preview_cancellation_impact(self, note_id: int) -> List[Dict[str, Any]]:
        """
        Impacto de la cancelación en cada saldo afectado.

        Returns:
            List[Dict]: {warehouse_id, item_type_id, stock_status, current_balance,
                         balance_after_cancellation, difference}
        """
        async with self.uow:
            note = await self._get_note(note_id)
            if note.status != NoteStatus.CONCLUDED:
                return []
            entries = await self.uow.movements.find_by_note(note.id)
            return await self._impact(entries)

    async def _impact(self, entries: List[MovementLedgerEntry]) -> List[Dict[str, Any]]:
        totals: Dict[tuple, int] = {}
        for entry in entries:
            key = (entry.warehouse_id, entry.item_type_id, entry.stock_status)
            totals[key] = totals.get(key, 0) + entry.signed_quantity

        impact = []
        for (warehouse_id, item_type_id, status), net in totals.items():
            balance = await self.uow.stock.get(warehouse_id, item_type_id, status)
            current = balance.quantity if balance else 0
            impact.append({
                "warehouse_id": warehouse_id,
                "item_type_id": item_type_id,
                "stock_status": status.value,
                "current_balance": current,
                "balance_after_cancellation": current - net,
                "difference": -net,
            })
        return impact

    async def _get_note(self, note_id: int, for_update: bool = False) -> MovementNote:
        note = await self.uow.notes.find_by_id(note_id, for_update=for_update)
        if note is None:
            raise NotFoundException("Nota de movimiento", note_id)
        return note
