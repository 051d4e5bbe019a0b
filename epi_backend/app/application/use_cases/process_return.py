"""
Caso de uso: Procesar devolución de unidades entregadas.

Cada unidad devuelta se cierra según su condición. Las unidades no
extraviadas vuelven al estoque en una situación bloqueada (cuarentena
o aguardando descarte), nunca directamente al saldo disponible.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException, ValidationException
from ....app.domain.entities.entrega import Entrega
from ....app.domain.entities.movement_entry import MovementLedgerEntry
from ....app.domain.enums import (
    MovementKind,
    ReturnCondition,
    ReturnDestination,
    StockStatus,
)
from ....app.domain.exceptions import EntregaItemNotWithEmployeeError, EntregaNotModifiableError
from ....app.application.ports.unit_of_work import UnitOfWork
from .cancel_note import apply_reversal_to_stock
from .manage_draft_note import require_actor
from .movement_ledger import MovementLedgerService

logger = logging.getLogger(__name__)


DESTINATION_TO_STOCK_STATUS: Dict[ReturnDestination, StockStatus] = {
    ReturnDestination.QUARANTINE: StockStatus.QUARANTINE,
    ReturnDestination.DISPOSAL: StockStatus.AWAITING_DISPOSAL,
}

DEFAULT_DESTINATION: Dict[ReturnCondition, ReturnDestination] = {
    ReturnCondition.GOOD: ReturnDestination.QUARANTINE,
    ReturnCondition.DAMAGED: ReturnDestination.DISPOSAL,
}


@dataclass
class ReturnItemRequest:
    """Unidad a devolver"""
    entrega_item_id: int
    condition: ReturnCondition = ReturnCondition.GOOD
    returned_quantity: int = 1
    reason: Optional[str] = None
    destination: Optional[ReturnDestination] = None


@dataclass
class ProcessReturnRequest:
    entrega_id: int
    actor_user_id: str
    items: List[ReturnItemRequest] = field(default_factory=list)


@dataclass
class ProcessReturnResponse:
    entrega: Entrega
    ledger_entries: list = field(default_factory=list)
    returned_items: List[dict] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"{len(self.returned_items)} unidades devueltas de la entrega {self.entrega.id}"


class ProcessReturnUseCase:
    """
    Procesador de devoluciones.

    Flujo:
    1. Bloquear la entrega y validar cada unidad
    2. Cerrar cada unidad según la condición informada
    3. Registrar ENTRY en el saldo de devolución (excepto extraviadas)
    4. Recalcular el estado de la entrega y confirmar

    cancel_return() deshace la devolución de una unidad: estorna su
    ENTRY y la unidad vuelve a estar con el colaborador.
    """

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def execute(self, request: ProcessReturnRequest) -> ProcessReturnResponse:
        """
        Ejecutar la devolución.

        Raises:
            ValidationException: Sin unidades o cantidad distinta de 1
            NotFoundException: Entrega o ítem inexistente
            EntregaNotModifiableError: Entrega cancelada
            EntregaItemNotWithEmployeeError: Unidad ya cerrada
        """
        require_actor(request.actor_user_id)
        if not request.items:
            raise ValidationException("Debe informar al menos una unidad", field="items")
        for item_request in request.items:
            if item_request.returned_quantity != 1:
                raise ValidationException(
                    "Cada devolución corresponde a exactamente una unidad",
                    field="returned_quantity",
                    details={
                        "entrega_item_id": item_request.entrega_item_id,
                        "value": item_request.returned_quantity
                    }
                )

        async with self.uow:
            entrega = await self.uow.entregas.find_by_id(request.entrega_id, for_update=True)
            if entrega is None:
                raise NotFoundException("Entrega", request.entrega_id)
            if entrega.is_cancelled:
                raise EntregaNotModifiableError(entrega.id, entrega.status.value, "return")

            # Validar todas las unidades antes de escribir
            for item_request in request.items:
                item = entrega.find_item(item_request.entrega_item_id)
                if item is None:
                    raise NotFoundException("Ítem de entrega", item_request.entrega_item_id)
                if not item.is_with_employee:
                    raise EntregaItemNotWithEmployeeError(item.id, item.status.value)

            now = self.clock.now()
            ledger = MovementLedgerService(self.uow.movements, self.uow.stock, self.clock)
            entries = []
            returned = []
            for item_request in request.items:
                item = entrega.find_item(item_request.entrega_item_id)
                condition = ReturnCondition(item_request.condition)
                destination = None
                if condition != ReturnCondition.LOST:
                    destination = ReturnDestination(
                        item_request.destination or DEFAULT_DESTINATION[condition]
                    )
                item.register_return(condition, now, item_request.reason, destination)

                if destination is not None:
                    status = DESTINATION_TO_STOCK_STATUS[destination]
                    entries.append(await ledger.create_entry(
                        MovementKind.ENTRY,
                        warehouse_id=entrega.warehouse_id,
                        item_type_id=item.item_type_id,
                        quantity=1,
                        actor_user_id=request.actor_user_id,
                        stock_status=status,
                        entrega_id=entrega.id,
                        notes=item_request.reason or f"Devolución del ítem {item.id}",
                    ))
                    await self.uow.stock.add(entrega.warehouse_id, item.item_type_id, status, 1)

                returned.append({
                    "entrega_item_id": item.id,
                    "item_type_id": item.item_type_id,
                    "condition": condition.value,
                    "status": item.status.value,
                    "destination": destination.value if destination else None,
                })

            entrega.refresh_status()
            entrega = await self.uow.entregas.save(entrega)
            await self.uow.commit()

        logger.info(
            "Devolución procesada",
            extra={"extra_data": {
                "entrega_id": entrega.id,
                "units": len(returned),
                "entrega_status": entrega.status.value,
            }}
        )
        return ProcessReturnResponse(entrega=entrega, ledger_entries=entries, returned_items=returned)

    async def cancel_return(self, entrega_id: int, entrega_item_id: int,
                            actor_user_id: str, reason: Optional[str] = None) -> ProcessReturnResponse:
        """
        Cancelar la devolución de una unidad.

        La ENTRY de la devolución recibe un estorno que descuenta el saldo
        de cuarentena o descarte; una unidad extraviada solo se reabre.

        Raises:
            NotFoundException: Entrega, ítem o movimiento de devolución inexistente
            EntregaItemNotReturnedError: La unidad sigue con el colaborador
            InsufficientStockError: La unidad ya salió del saldo de devolución
        """
        require_actor(actor_user_id)

        async with self.uow:
            entrega = await self.uow.entregas.find_by_id(entrega_id, for_update=True)
            if entrega is None:
                raise NotFoundException("Entrega", entrega_id)
            item = entrega.find_item(entrega_item_id)
            if item is None:
                raise NotFoundException("Ítem de entrega", entrega_item_id)

            destination = item.undo_return()
            reversals = []
            if destination is not None:
                original = await self._return_entry(entrega, item.item_type_id,
                                                    DESTINATION_TO_STOCK_STATUS[destination])
                notes = f"Cancelación de la devolución del ítem {item.id}"
                if reason:
                    notes = f"{notes}: {reason}"
                ledger = MovementLedgerService(self.uow.movements, self.uow.stock, self.clock)
                reversal = await ledger.create_reversal(original.id, actor_user_id, notes)
                allow_negative = await self.uow.config.is_negative_stock_allowed()
                await apply_reversal_to_stock(self.uow, original, reversal, allow_negative)
                reversals.append(reversal)

            entrega.refresh_status()
            entrega = await self.uow.entregas.save(entrega)
            await self.uow.commit()

        logger.info(
            "Devolución cancelada",
            extra={"extra_data": {
                "entrega_id": entrega.id,
                "entrega_item_id": entrega_item_id,
                "reversals": len(reversals),
                "entrega_status": entrega.status.value,
            }}
        )
        restored = {
            "entrega_item_id": entrega_item_id,
            "item_type_id": item.item_type_id,
            "status": item.status.value,
            "destination": destination.value if destination else None,
        }
        return ProcessReturnResponse(entrega=entrega, ledger_entries=reversals, returned_items=[restored])

    async def _return_entry(self, entrega: Entrega, item_type_id: int,
                            status: StockStatus) -> MovementLedgerEntry:
        # Las unidades de un mismo tipo y destino son intercambiables: basta la última vigente
        entries = await self.uow.movements.find_by_entrega(entrega.id)
        for entry in reversed(entries):
            if (entry.kind == MovementKind.ENTRY
                    and entry.item_type_id == item_type_id
                    and entry.stock_status == status
                    and not await self.uow.movements.is_reversed(entry.id)):
                return entry
        raise NotFoundException("Movimiento de devolución", f"{entrega.id}/{item_type_id}/{status.value}")
