"""
Implementaciones concretas de los repositorios de catálogo con SQLAlchemy.
"""
from typing import List, Optional

from sqlalchemy import select

from ....app.domain.entities.catalog import FichaEpi, ItemType
from ....app.domain.enums import FichaStatus
from ....app.application.ports.catalog_repository import FichaRepository, ItemTypeRepository
from ....infrastructure.database.models import FichaEpiModel, ItemTypeModel
from .base_repository import SQLAlchemyRepository


class SQLAlchemyItemTypeRepository(SQLAlchemyRepository, ItemTypeRepository):
    """Tipos de EPI"""

    conflict_message = "Ya existe un tipo EPI con ese número de CA"

    async def add(self, item_type: ItemType) -> ItemType:
        db_item_type = ItemTypeModel(
            name=item_type.name,
            ca_number=item_type.ca_number,
            lifespan_days=item_type.lifespan_days,
            active=item_type.active,
            description=item_type.description,
        )
        self.session.add(db_item_type)
        await self._flush()
        item_type.id = db_item_type.id
        return item_type

    async def find_by_id(self, item_type_id: int) -> Optional[ItemType]:
        result = await self.session.execute(
            select(ItemTypeModel).where(ItemTypeModel.id == item_type_id)
        )
        db_item_type = result.scalar_one_or_none()
        return self._to_domain(db_item_type) if db_item_type else None

    async def find_many(self, item_type_ids: List[int]) -> List[ItemType]:
        if not item_type_ids:
            return []
        result = await self.session.execute(
            select(ItemTypeModel).where(ItemTypeModel.id.in_(item_type_ids))
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list(self, active_only: bool = False) -> List[ItemType]:
        stmt = select(ItemTypeModel)
        if active_only:
            stmt = stmt.where(ItemTypeModel.active.is_(True))
        result = await self.session.execute(stmt.order_by(ItemTypeModel.name))
        return [self._to_domain(m) for m in result.scalars().all()]

    def _to_domain(self, db_item_type: ItemTypeModel) -> ItemType:
        return ItemType(
            id=db_item_type.id,
            name=db_item_type.name,
            ca_number=db_item_type.ca_number,
            lifespan_days=db_item_type.lifespan_days,
            active=db_item_type.active,
            description=db_item_type.description,
        )


class SQLAlchemyFichaRepository(SQLAlchemyRepository, FichaRepository):
    """Fichas EPI"""

    conflict_message = "El colaborador ya tiene una ficha EPI"

    async def add(self, ficha: FichaEpi) -> FichaEpi:
        db_ficha = FichaEpiModel(employee_id=ficha.employee_id, status=ficha.status)
        if ficha.created_at is not None:
            db_ficha.created_at = ficha.created_at
        self.session.add(db_ficha)
        await self._flush()
        ficha.id = db_ficha.id
        return ficha

    async def find_by_id(self, ficha_id: int) -> Optional[FichaEpi]:
        result = await self.session.execute(
            select(FichaEpiModel).where(FichaEpiModel.id == ficha_id)
        )
        db_ficha = result.scalar_one_or_none()
        return self._to_domain(db_ficha) if db_ficha else None

    async def find_by_employee(self, employee_id: str) -> List[FichaEpi]:
        result = await self.session.execute(
            select(FichaEpiModel)
            .where(FichaEpiModel.employee_id == employee_id)
            .order_by(FichaEpiModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    def _to_domain(self, db_ficha: FichaEpiModel) -> FichaEpi:
        return FichaEpi(
            id=db_ficha.id,
            employee_id=db_ficha.employee_id,
            status=FichaStatus(db_ficha.status),
            created_at=db_ficha.created_at,
        )
