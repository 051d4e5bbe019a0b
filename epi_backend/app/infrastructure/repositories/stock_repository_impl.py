"""
Implementación concreta del almacén de saldos con SQLAlchemy.

remove() es un UPDATE condicional (quantity >= :q) evaluado por el motor,
de modo que dos salidas concurrentes nunca pueden dejar el saldo negativo
sin override: la que pierde la carrera ve rowcount == 0.
"""
from typing import List, Optional

from sqlalchemy import select, update

from ....app.core.exceptions import NotFoundException
from ....app.domain.enums import StockStatus
from ....app.domain.exceptions import InsufficientStockError
from ....app.domain.value_objects.stock import (
    StockBalance,
    require_non_negative_target,
    require_positive_quantity,
)
from ....app.application.ports.stock_repository import StockRepository
from ....infrastructure.database.models import StockBalanceModel
from .base_repository import SQLAlchemyRepository


class SQLAlchemyStockRepository(SQLAlchemyRepository, StockRepository):
    """Implementación concreta con SQLAlchemy para saldos"""

    conflict_message = "El saldo fue creado concurrentemente; reintente la operación"

    @staticmethod
    def _key(warehouse_id: str, item_type_id: int, status: StockStatus):
        return (
            StockBalanceModel.warehouse_id == warehouse_id,
            StockBalanceModel.item_type_id == item_type_id,
            StockBalanceModel.status == StockStatus(status),
        )

    async def _fetch(self, *criteria, for_update: bool = False) -> Optional[StockBalanceModel]:
        stmt = select(StockBalanceModel).where(*criteria).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _update_quantity(self, balance_id: int, value) -> None:
        await self.session.execute(
            update(StockBalanceModel)
            .where(StockBalanceModel.id == balance_id)
            .values(quantity=value)
            .execution_options(synchronize_session=False)
        )

    async def _insert(self, warehouse_id: str, item_type_id: int,
                      status: StockStatus, quantity: int) -> StockBalanceModel:
        model = StockBalanceModel(
            warehouse_id=warehouse_id,
            item_type_id=item_type_id,
            status=StockStatus(status),
            quantity=quantity,
        )
        self.session.add(model)
        await self._flush()
        return model

    async def get(self, warehouse_id: str, item_type_id: int,
                  status: StockStatus = StockStatus.AVAILABLE) -> Optional[StockBalance]:
        model = await self._fetch(*self._key(warehouse_id, item_type_id, status))
        return self._to_domain(model)

    async def get_for_update(self, warehouse_id: str, item_type_id: int,
                             status: StockStatus = StockStatus.AVAILABLE) -> Optional[StockBalance]:
        model = await self._fetch(*self._key(warehouse_id, item_type_id, status), for_update=True)
        return self._to_domain(model)

    async def lock_key(self, warehouse_id: str, item_type_id: int,
                       status: StockStatus = StockStatus.AVAILABLE) -> StockBalance:
        key = self._key(warehouse_id, item_type_id, status)
        model = await self._fetch(*key, for_update=True)
        if model is None:
            # Dos creadores simultáneos chocan en la clave única (ConflictException)
            model = await self._insert(warehouse_id, item_type_id, status, 0)
        return self._to_domain(model)

    async def get_by_id(self, stock_item_id: int, for_update: bool = False) -> Optional[StockBalance]:
        model = await self._fetch(StockBalanceModel.id == stock_item_id, for_update=for_update)
        return self._to_domain(model)

    async def add(self, warehouse_id: str, item_type_id: int,
                  status: StockStatus, quantity: int) -> StockBalance:
        """Sumar al saldo (upsert perezoso de la clave)"""
        require_positive_quantity(quantity)
        key = self._key(warehouse_id, item_type_id, status)
        model = await self._fetch(*key, for_update=True)
        if model is None:
            await self._insert(warehouse_id, item_type_id, status, quantity)
        else:
            await self._update_quantity(model.id, StockBalanceModel.quantity + quantity)
        return self._to_domain(await self._fetch(*key))

    async def remove(self, warehouse_id: str, item_type_id: int, status: StockStatus,
                     quantity: int, allow_negative: bool = False) -> StockBalance:
        """Restar del saldo con piso en cero, salvo override"""
        require_positive_quantity(quantity)
        key = self._key(warehouse_id, item_type_id, status)

        stmt = update(StockBalanceModel).where(*key)
        if not allow_negative:
            stmt = stmt.where(StockBalanceModel.quantity >= quantity)
        result = await self.session.execute(
            stmt.values(quantity=StockBalanceModel.quantity - quantity)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = await self._fetch(*key)
            if current is None and allow_negative:
                await self._insert(warehouse_id, item_type_id, status, -quantity)
            else:
                raise InsufficientStockError(
                    warehouse_id=warehouse_id,
                    item_type_id=item_type_id,
                    available=current.quantity if current else 0,
                    required=quantity
                )
        return self._to_domain(await self._fetch(*key))

    async def set(self, warehouse_id: str, item_type_id: int,
                  status: StockStatus, quantity: int) -> StockBalance:
        require_non_negative_target(quantity)
        key = self._key(warehouse_id, item_type_id, status)
        model = await self._fetch(*key, for_update=True)
        if model is None:
            raise NotFoundException(
                "Saldo",
                f"{warehouse_id}/{item_type_id}/{StockStatus(status).value}"
            )
        await self._update_quantity(model.id, quantity)
        return self._to_domain(await self._fetch(*key))

    async def upsert(self, warehouse_id: str, item_type_id: int,
                     status: StockStatus, quantity: int, allow_negative: bool = False) -> StockBalance:
        if not allow_negative:
            require_non_negative_target(quantity)
        key = self._key(warehouse_id, item_type_id, status)
        model = await self._fetch(*key, for_update=True)
        if model is None:
            await self._insert(warehouse_id, item_type_id, status, quantity)
        else:
            await self._update_quantity(model.id, quantity)
        return self._to_domain(await self._fetch(*key))

    async def list(
        self,
        warehouse_id: Optional[str] = None,
        item_type_id: Optional[int] = None,
        status: Optional[StockStatus] = None,
        include_zero: bool = True,
    ) -> List[StockBalance]:
        """Listar saldos con filtros"""
        stmt = select(StockBalanceModel).execution_options(populate_existing=True)

        # Aplicar filtros
        if warehouse_id:
            stmt = stmt.where(StockBalanceModel.warehouse_id == warehouse_id)
        if item_type_id:
            stmt = stmt.where(StockBalanceModel.item_type_id == item_type_id)
        if status:
            stmt = stmt.where(StockBalanceModel.status == StockStatus(status))
        if not include_zero:
            stmt = stmt.where(StockBalanceModel.quantity != 0)

        stmt = stmt.order_by(
            StockBalanceModel.warehouse_id,
            StockBalanceModel.item_type_id,
            StockBalanceModel.status,
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    def _to_domain(self, model: Optional[StockBalanceModel]) -> Optional[StockBalance]:
        """Convertir de modelo de persistencia a value object de dominio"""
        if not model:
            return None

        return StockBalance(
            id=model.id,
            warehouse_id=model.warehouse_id,
            item_type_id=model.item_type_id,
            status=StockStatus(model.status),
            quantity=model.quantity,
        )
