"""
Implementación concreta del repositorio de entregas con SQLAlchemy.
"""
from typing import List, Optional

from sqlalchemy import select

from ....app.core.exceptions import NotFoundException
from ....app.domain.entities.entrega import Entrega, EntregaItem
from ....app.domain.enums import EntregaItemStatus, EntregaStatus, ReturnDestination
from ....app.application.ports.entrega_repository import EntregaRepository
from ....infrastructure.database.models import EntregaItemModel, EntregaModel
from .base_repository import SQLAlchemyRepository


class SQLAlchemyEntregaRepository(SQLAlchemyRepository, EntregaRepository):
    """Implementación concreta con SQLAlchemy para entregas"""

    async def add(self, entrega: Entrega) -> Entrega:
        db_entrega = EntregaModel(
            ficha_epi_id=entrega.ficha_epi_id,
            warehouse_id=entrega.warehouse_id,
            responsible_user_id=entrega.responsible_user_id,
            status=entrega.status,
            issued_at=entrega.issued_at,
            signed_at=entrega.signed_at,
            cancelled_at=entrega.cancelled_at,
            notes=entrega.notes,
            items=[
                EntregaItemModel(
                    origin_stock_item_id=item.origin_stock_item_id,
                    item_type_id=item.item_type_id,
                    quantity=item.quantity,
                    status=item.status,
                    return_deadline=item.return_deadline,
                )
                for item in entrega.items
            ],
        )
        self.session.add(db_entrega)
        await self._flush()

        entrega.id = db_entrega.id
        for item, db_item in zip(entrega.items, db_entrega.items):
            item.id = db_item.id
            item.entrega_id = db_entrega.id
        return entrega

    async def save(self, entrega: Entrega) -> Entrega:
        """Persistir estado de cabecera e ítems"""
        db_entrega = await self._fetch(entrega.id)
        if db_entrega is None:
            raise NotFoundException("Entrega", entrega.id)

        db_entrega.status = entrega.status
        db_entrega.signed_at = entrega.signed_at
        db_entrega.cancelled_at = entrega.cancelled_at

        items = {item.id: item for item in entrega.items}
        for db_item in db_entrega.items:
            item = items.get(db_item.id)
            if item is None:
                continue
            db_item.status = item.status
            db_item.returned_at = item.returned_at
            db_item.return_reason = item.return_reason
            db_item.return_destination = item.return_destination

        await self._flush()
        return entrega

    async def find_by_id(self, entrega_id: int, for_update: bool = False) -> Optional[Entrega]:
        db_entrega = await self._fetch(entrega_id, for_update=for_update)
        return self._to_domain(db_entrega) if db_entrega else None

    async def list_by_fichas(self, ficha_ids: List[int]) -> List[Entrega]:
        if not ficha_ids:
            return []
        result = await self.session.execute(
            select(EntregaModel)
            .where(EntregaModel.ficha_epi_id.in_(ficha_ids))
            .order_by(EntregaModel.issued_at, EntregaModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def _fetch(self, entrega_id: int, for_update: bool = False) -> Optional[EntregaModel]:
        stmt = (
            select(EntregaModel)
            .where(EntregaModel.id == entrega_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _to_domain(self, db_entrega: EntregaModel) -> Entrega:
        """Convertir de modelo de persistencia a entidad de dominio"""
        return Entrega(
            id=db_entrega.id,
            ficha_epi_id=db_entrega.ficha_epi_id,
            warehouse_id=db_entrega.warehouse_id,
            responsible_user_id=db_entrega.responsible_user_id,
            status=EntregaStatus(db_entrega.status),
            issued_at=db_entrega.issued_at,
            signed_at=db_entrega.signed_at,
            cancelled_at=db_entrega.cancelled_at,
            notes=db_entrega.notes,
            items=[
                EntregaItem(
                    id=db_item.id,
                    entrega_id=db_item.entrega_id,
                    origin_stock_item_id=db_item.origin_stock_item_id,
                    item_type_id=db_item.item_type_id,
                    quantity=db_item.quantity,
                    status=EntregaItemStatus(db_item.status),
                    return_deadline=db_item.return_deadline,
                    returned_at=db_item.returned_at,
                    return_reason=db_item.return_reason,
                    return_destination=(
                        ReturnDestination(db_item.return_destination)
                        if db_item.return_destination else None
                    ),
                )
                for db_item in db_entrega.items
            ],
        )
