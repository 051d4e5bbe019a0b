"""
Casos de uso de entregas de EPI al colaborador.

- Emisión unidad por unidad (una fila de entrega y un movimiento EXIT por unidad)
- Firma, cancelación y recálculo de estado
- Posesión actual del colaborador
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException, ValidationException
from ....app.domain.entities.entrega import Entrega, EntregaItem
from ....app.domain.enums import MovementKind, PossessionStatus, StockStatus
from ....app.domain.exceptions import EntregaNotModifiableError, InsufficientStockError
from ....app.application.ports.unit_of_work import UnitOfWork
from .cancel_note import apply_reversal_to_stock
from .manage_draft_note import require_actor
from .movement_ledger import MovementLedgerService

logger = logging.getLogger(__name__)


@dataclass
class IssueEntregaRequest:
    """DTO de entrada para emitir una entrega"""
    ficha_epi_id: int
    origin_stock_item_ids: List[int]
    actor_user_id: str
    require_signature: bool = True
    notes: Optional[str] = None


@dataclass
class IssueEntregaResponse:
    entrega: Entrega
    ledger_entries: list = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Entrega {self.entrega.id} emitida con {len(self.entrega.items)} unidades"


class IssueEntregaUseCase:
    """
    Motor de emisión de entregas.

    Flujo de issue():
    1. Validar ficha activa y lista de unidades
    2. Validar cada saldo referenciado (disponible, mismo almacén, tipo activo)
    3. Verificar saldo suficiente por saldo referenciado
    4. Crear entrega con una fila por unidad y plazo de devolución
    5. Registrar un EXIT por unidad y descontar el saldo
    """

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def issue(self, request: IssueEntregaRequest) -> IssueEntregaResponse:
        """
        Emitir una entrega.

        Raises:
            ValidationException: Sin unidades, sin actor, saldo no disponible o almacenes mezclados
            NotFoundException: Ficha, saldo o tipo EPI inexistente
            FichaNotActiveError: Ficha no activa
            InsufficientStockError: Saldo insuficiente sin override
        """
        require_actor(request.actor_user_id)
        if not request.origin_stock_item_ids:
            raise ValidationException("La entrega debe tener al menos una unidad", field="items")

        async with self.uow:
            ficha = await self.uow.fichas.find_by_id(request.ficha_epi_id)
            if ficha is None:
                raise NotFoundException("Ficha EPI", request.ficha_epi_id)
            ficha.require_active()

            units_by_stock = Counter(request.origin_stock_item_ids)
            allow_negative = await self.uow.config.is_negative_stock_allowed()

            balances = {}
            item_types = {}
            warehouse_id = None
            for stock_item_id, units in units_by_stock.items():
                balance = await self.uow.stock.get_by_id(stock_item_id, for_update=True)
                if balance is None:
                    raise NotFoundException("Saldo de estoque", stock_item_id)
                if balance.status != StockStatus.AVAILABLE:
                    raise ValidationException(
                        f"El saldo {stock_item_id} no está disponible para entrega",
                        field="origin_stock_item_id",
                        details={"stock_item_id": stock_item_id, "status": balance.status.value}
                    )
                if warehouse_id is None:
                    warehouse_id = balance.warehouse_id
                elif balance.warehouse_id != warehouse_id:
                    raise ValidationException(
                        "Todas las unidades deben salir del mismo almacén",
                        field="origin_stock_item_id",
                        details={"expected": warehouse_id, "found": balance.warehouse_id}
                    )
                if not allow_negative and not balance.covers(units):
                    raise InsufficientStockError(
                        warehouse_id=balance.warehouse_id,
                        item_type_id=balance.item_type_id,
                        available=balance.quantity,
                        required=units
                    )

                item_type = await self.uow.item_types.find_by_id(balance.item_type_id)
                if item_type is None:
                    raise NotFoundException("Tipo EPI", balance.item_type_id)
                item_type.require_active()

                balances[stock_item_id] = balance
                item_types[balance.item_type_id] = item_type

            issued_at = self.clock.now()
            items = [
                EntregaItem(
                    origin_stock_item_id=stock_item_id,
                    item_type_id=balances[stock_item_id].item_type_id,
                    return_deadline=item_types[balances[stock_item_id].item_type_id].return_deadline(issued_at),
                )
                for stock_item_id in request.origin_stock_item_ids
            ]
            entrega = Entrega(
                ficha_epi_id=ficha.id,
                warehouse_id=warehouse_id,
                responsible_user_id=request.actor_user_id,
                issued_at=issued_at,
                items=items,
                signed_at=None if request.require_signature else issued_at,
                notes=request.notes,
            )
            entrega.refresh_status()
            entrega = await self.uow.entregas.add(entrega)

            ledger = MovementLedgerService(self.uow.movements, self.uow.stock, self.clock)
            entries = []
            for item in entrega.items:
                entries.append(await ledger.create_entry(
                    MovementKind.EXIT,
                    warehouse_id=warehouse_id,
                    item_type_id=item.item_type_id,
                    quantity=1,
                    actor_user_id=request.actor_user_id,
                    entrega_id=entrega.id,
                    notes=f"Entrega {entrega.id} a ficha {ficha.id}",
                ))

            for stock_item_id, units in units_by_stock.items():
                balance = balances[stock_item_id]
                await self.uow.stock.remove(
                    balance.warehouse_id, balance.item_type_id, balance.status, units, allow_negative
                )

            await self.uow.commit()

        logger.info(
            "Entrega emitida",
            extra={"extra_data": {
                "entrega_id": entrega.id,
                "ficha_epi_id": entrega.ficha_epi_id,
                "units": len(entrega.items),
            }}
        )
        return IssueEntregaResponse(entrega=entrega, ledger_entries=entries)

    async def sign_entrega(self, entrega_id: int, actor_user_id: str) -> Entrega:
        """Registrar la firma del colaborador"""
        require_actor(actor_user_id)
        async with self.uow:
            entrega = await self._get_entrega(entrega_id, for_update=True)
            entrega.sign(self.clock.now())
            entrega = await self.uow.entregas.save(entrega)
            await self.uow.commit()
            return entrega

    async def cancel_entrega(self, entrega_id: int, actor_user_id: str,
                             reason: Optional[str] = None) -> Entrega:
        """
        Cancelar una entrega sin devoluciones: estorna cada EXIT y
        devuelve las unidades al saldo de origen.

        Raises:
            EntregaNotModifiableError: Si ya está cancelada o alguna unidad fue devuelta
        """
        require_actor(actor_user_id)
        async with self.uow:
            entrega = await self._get_entrega(entrega_id, for_update=True)
            entrega.cancel(self.clock.now())

            allow_negative = await self.uow.config.is_negative_stock_allowed()
            ledger = MovementLedgerService(self.uow.movements, self.uow.stock, self.clock)
            notes = f"Cancelación de la entrega {entrega.id}"
            if reason:
                notes = f"{notes}: {reason}"
            for entry in await self.uow.movements.find_by_entrega(entrega.id):
                if entry.kind != MovementKind.EXIT:
                    continue
                reversal = await ledger.create_reversal(entry.id, actor_user_id, notes)
                await apply_reversal_to_stock(self.uow, entry, reversal, allow_negative)

            entrega = await self.uow.entregas.save(entrega)
            await self.uow.commit()
            return entrega

    async def refresh_entrega_status(self, entrega_id: int) -> Entrega:
        """Recalcular el estado a partir de los ítems (idempotente)"""
        async with self.uow:
            entrega = await self._get_entrega(entrega_id, for_update=True)
            entrega.refresh_status()
            entrega = await self.uow.entregas.save(entrega)
            await self.uow.commit()
            return entrega

    async def get_entrega(self, entrega_id: int) -> Entrega:
        async with self.uow:
            return await self._get_entrega(entrega_id)

    async def current_possession(self, employee_id: str) -> List[Dict[str, Any]]:
        """
        Unidades en poder del colaborador agrupadas por tipo de EPI.

        Returns:
            List[Dict]: item_type_id, count, last_issued_at, days_in_use,
                        return_deadline, status
        """
        now = self.clock.now()
        async with self.uow:
            fichas = await self.uow.fichas.find_by_employee(employee_id)
            if not fichas:
                raise NotFoundException("Ficha EPI del colaborador", employee_id)
            warning_days = await self.uow.config.expiry_warning_days()
            entregas = await self.uow.entregas.list_by_fichas([f.id for f in fichas])

        groups: Dict[int, Dict[str, Any]] = {}
        for entrega in entregas:
            if entrega.is_cancelled:
                continue
            for item in entrega.items:
                if not item.is_with_employee:
                    continue
                group = groups.setdefault(item.item_type_id, {
                    "item_type_id": item.item_type_id,
                    "count": 0,
                    "last_issued_at": entrega.issued_at,
                    "return_deadline": item.return_deadline,
                })
                group["count"] += 1
                if entrega.issued_at > group["last_issued_at"]:
                    group["last_issued_at"] = entrega.issued_at
                if item.return_deadline and (
                    group["return_deadline"] is None or item.return_deadline < group["return_deadline"]
                ):
                    group["return_deadline"] = item.return_deadline

        possession = []
        for item_type_id in sorted(groups):
            group = groups[item_type_id]
            group["days_in_use"] = (now - group["last_issued_at"]).days
            group["status"] = possession_status(group["return_deadline"], now, warning_days).value
            possession.append(group)
        return possession

    async def _get_entrega(self, entrega_id: int, for_update: bool = False) -> Entrega:
        entrega = await self.uow.entregas.find_by_id(entrega_id, for_update=for_update)
        if entrega is None:
            raise NotFoundException("Entrega", entrega_id)
        return entrega


def possession_status(return_deadline: Optional[datetime], now: datetime,
                      warning_days: int) -> PossessionStatus:
    """Clasificar una posesión según su plazo de devolución"""
    if return_deadline is None:
        return PossessionStatus.ACTIVE
    if return_deadline < now:
        return PossessionStatus.OVERDUE
    if (return_deadline - now).days <= warning_days:
        return PossessionStatus.NEAR_EXPIRY
    return PossessionStatus.ACTIVE
