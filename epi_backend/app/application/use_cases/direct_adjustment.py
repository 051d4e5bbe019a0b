"""
Caso de uso: Ajuste directo de inventario.

Corrige el saldo de un tipo de EPI a un valor contado, sin nota de
movimentação. Cada ajuste queda en el kardex como un movimiento
ADJUSTMENT con la diferencia (positiva o negativa) respecto al saldo actual.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException, ValidationException
from ....app.domain.entities.movement_entry import MovementLedgerEntry
from ....app.domain.enums import MovementKind, StockStatus
from ....app.domain.exceptions import AdjustmentNotAllowedError, NothingToAdjustError
from ....app.domain.value_objects.stock import require_non_negative_target
from ....app.application.ports.unit_of_work import UnitOfWork
from .movement_ledger import MovementLedgerService

logger = logging.getLogger(__name__)


@dataclass
class DirectAdjustmentRequest:
    """DTO de entrada para un ajuste directo"""
    warehouse_id: str
    item_type_id: int
    new_quantity: int
    actor_user_id: str
    reason: str
    skip_permission_check: bool = False


@dataclass
class AdjustmentResult:
    """Resultado de un ajuste aplicado"""
    warehouse_id: str
    item_type_id: int
    previous_quantity: int
    new_quantity: int
    difference: int
    entry: MovementLedgerEntry

    def to_dict(self) -> Dict[str, Any]:
        return {
            "warehouse_id": self.warehouse_id,
            "item_type_id": self.item_type_id,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "difference": self.difference,
            "entry": self.entry.to_dict(),
        }


@dataclass
class InventoryCount:
    """Cantidad contada de un tipo de EPI en un inventario"""
    item_type_id: int
    counted_quantity: int
    reason: Optional[str] = None


def _validate_request(request: DirectAdjustmentRequest) -> None:
    """
    Validaciones de formato del ajuste.

    Raises:
        ValidationException: Si algún campo es inválido
    """
    errors = []

    if not request.warehouse_id or not str(request.warehouse_id).strip():
        errors.append({"field": "warehouse_id", "message": "El almacén es requerido"})
    if not isinstance(request.new_quantity, int) or request.new_quantity < 0:
        errors.append({
            "field": "new_quantity",
            "message": "La nueva cantidad no puede ser negativa",
            "value": request.new_quantity
        })
    if not request.reason or not request.reason.strip():
        errors.append({"field": "reason", "message": "El motivo del ajuste es requerido"})

    if errors:
        raise ValidationException(
            message="Errores de validación en el ajuste",
            details={"errors": errors}
        )


class DirectAdjustmentUseCase:
    """
    Motor de ajustes directos.

    Los ajustes se habilitan con la bandera PERMITIR_AJUSTES_FORCADOS.
    """

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def validate_adjustment_permission(self, actor_user_id: Optional[str]) -> None:
        """
        Verificar que el actor puede ajustar el inventario.

        Raises:
            AdjustmentNotAllowedError: Sin actor o con ajustes deshabilitados
        """
        async with self.uow:
            await self._check_permission(actor_user_id)

    async def _check_permission(self, actor_user_id: Optional[str]) -> None:
        if not actor_user_id or not str(actor_user_id).strip():
            raise AdjustmentNotAllowedError("usuario responsable no informado")
        if not await self.uow.config.is_forced_adjustment_allowed():
            raise AdjustmentNotAllowedError("los ajustes forzados están deshabilitados")

    async def adjust_direct(self, request: DirectAdjustmentRequest) -> AdjustmentResult:
        """
        Fijar el saldo de un tipo de EPI en un almacén.

        Raises:
            ValidationException: Cantidad negativa o motivo vacío
            AdjustmentNotAllowedError: Ajustes deshabilitados
            NotFoundException: Tipo de EPI inexistente
            NothingToAdjustError: El saldo ya es el informado
        """
        _validate_request(request)
        async with self.uow:
            if not request.skip_permission_check:
                await self._check_permission(request.actor_user_id)
            result = await self._adjust(
                request.warehouse_id,
                request.item_type_id,
                request.new_quantity,
                request.actor_user_id,
                request.reason,
            )
            await self.uow.commit()

        logger.info(
            "Ajuste directo aplicado",
            extra={"extra_data": {
                "warehouse_id": result.warehouse_id,
                "item_type_id": result.item_type_id,
                "difference": result.difference,
                "entry_id": result.entry.id,
            }}
        )
        return result

    async def adjust_bulk(
        self,
        warehouse_id: str,
        items: List[InventoryCount],
        actor_user_id: str,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Aplicar un inventario completo en una sola transacción.
        Los ítems cuyo saldo ya coincide con lo contado se omiten.

        Returns:
            Dict: adjustments, total_items_processed, positive_adjustments,
                  negative_adjustments, total_adjusted_quantity
        """
        if not warehouse_id or not str(warehouse_id).strip():
            raise ValidationException("El almacén es requerido", field="warehouse_id")
        for count in items:
            require_non_negative_target(count.counted_quantity, field="counted_quantity")

        async with self.uow:
            await self._check_permission(actor_user_id)

            results: List[AdjustmentResult] = []
            for count in items:
                current = await self._current_quantity(warehouse_id, count.item_type_id)
                if count.counted_quantity == current:
                    continue
                results.append(await self._adjust(
                    warehouse_id,
                    count.item_type_id,
                    count.counted_quantity,
                    actor_user_id,
                    count.reason or reason or "Inventario",
                ))
            await self.uow.commit()

        return {
            "adjustments": results,
            "total_items_processed": len(items),
            "positive_adjustments": sum(1 for r in results if r.difference > 0),
            "negative_adjustments": sum(1 for r in results if r.difference < 0),
            "total_adjusted_quantity": sum(abs(r.difference) for r in results),
        }

    async def simulate_adjustment(self, warehouse_id: str, item_type_id: int,
                                  new_quantity: int) -> Dict[str, Any]:
        """Mostrar el efecto de un ajuste sin escribir nada"""
        require_non_negative_target(new_quantity, field="new_quantity")
        async with self.uow:
            current = await self._current_quantity(warehouse_id, item_type_id)
            allowed = await self.uow.config.is_forced_adjustment_allowed()

        difference = new_quantity - current
        return {
            "warehouse_id": warehouse_id,
            "item_type_id": item_type_id,
            "current_quantity": current,
            "new_quantity": new_quantity,
            "difference": difference,
            "movement_kind": MovementKind.ADJUSTMENT.value,
            "direction": 1 if difference > 0 else -1 if difference < 0 else 0,
            "would_adjust": difference != 0,
            "adjustments_allowed": allowed,
        }

    async def inventory_divergences(self, warehouse_id: str,
                                    counts: List[InventoryCount]) -> List[Dict[str, Any]]:
        """Comparar cantidades contadas con el saldo del sistema"""
        divergences = []
        async with self.uow:
            for count in counts:
                current = await self._current_quantity(warehouse_id, count.item_type_id)
                if current != count.counted_quantity:
                    divergences.append({
                        "item_type_id": count.item_type_id,
                        "system_quantity": current,
                        "counted_quantity": count.counted_quantity,
                        "difference": count.counted_quantity - current,
                    })
        return divergences

    async def _current_quantity(self, warehouse_id: str, item_type_id: int) -> int:
        balance = await self.uow.stock.get(warehouse_id, item_type_id, StockStatus.AVAILABLE)
        return balance.quantity if balance else 0

    async def _adjust(self, warehouse_id: str, item_type_id: int, new_quantity: int,
                      actor_user_id: str, reason: str) -> AdjustmentResult:
        if await self.uow.item_types.find_by_id(item_type_id) is None:
            raise NotFoundException("Tipo EPI", item_type_id)

        # El saldo leído queda bloqueado hasta el commit
        current = (await self.uow.stock.lock_key(warehouse_id, item_type_id, StockStatus.AVAILABLE)).quantity
        difference = new_quantity - current
        if difference == 0:
            raise NothingToAdjustError(warehouse_id, item_type_id, current)

        ledger = MovementLedgerService(self.uow.movements, self.uow.stock, self.clock)
        entry = await ledger.create_entry(
            MovementKind.ADJUSTMENT,
            warehouse_id=warehouse_id,
            item_type_id=item_type_id,
            quantity=abs(difference),
            actor_user_id=actor_user_id,
            notes=reason,
            direction=1 if difference > 0 else -1,
        )
        await self.uow.stock.upsert(warehouse_id, item_type_id, StockStatus.AVAILABLE, new_quantity)
        return AdjustmentResult(
            warehouse_id=warehouse_id,
            item_type_id=item_type_id,
            previous_quantity=current,
            new_quantity=new_quantity,
            difference=difference,
            entry=entry,
        )
