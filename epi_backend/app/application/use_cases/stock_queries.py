"""
Consultas de estoque: saldos y kardex.
Solo lectura; no confirman nada.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from ....app.domain.enums import StockStatus
from ....app.domain.value_objects.stock import StockBalance
from ....app.application.ports.unit_of_work import UnitOfWork


class StockQueriesUseCase:
    """Consultas de saldos y movimientos"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def list_balances(
        self,
        warehouse_id: Optional[str] = None,
        item_type_id: Optional[int] = None,
        status: Optional[StockStatus] = None,
        include_zero: bool = True,
    ) -> List[StockBalance]:
        async with self.uow:
            return await self.uow.stock.list(
                warehouse_id=warehouse_id,
                item_type_id=item_type_id,
                status=status,
                include_zero=include_zero,
            )

    async def kardex(
        self,
        warehouse_id: str,
        item_type_id: int,
        status: Optional[StockStatus] = StockStatus.AVAILABLE,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Historial de movimientos de una clave con resumen.

        Returns:
            Dict: entries (cronológico) y summary con initial_balance,
                  final_balance, total_in, total_out
        """
        async with self.uow:
            entries = await self.uow.movements.kardex(
                warehouse_id, item_type_id, status=status, start_date=start_date, end_date=end_date
            )

        total_in = sum(e.quantity for e in entries if e.direction > 0)
        total_out = sum(e.quantity for e in entries if e.direction < 0)
        return {
            "warehouse_id": warehouse_id,
            "item_type_id": item_type_id,
            "entries": entries,
            "summary": {
                "initial_balance": entries[0].balance_before if entries else 0,
                "final_balance": entries[-1].balance_after if entries else 0,
                "total_in": total_in,
                "total_out": total_out,
                "movements": len(entries),
            },
        }
