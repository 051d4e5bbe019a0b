"""
Casos de uso de catálogo: tipos de EPI y fichas de colaboradores.
"""
from typing import List, Optional

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException
from ....app.domain.entities.catalog import FichaEpi, ItemType
from ....app.application.ports.unit_of_work import UnitOfWork


class CatalogUseCase:
    """Alta y consulta de tipos de EPI y fichas"""

    def __init__(self, uow: UnitOfWork, clock: Clock):
        self.uow = uow
        self.clock = clock

    async def create_item_type(
        self,
        name: str,
        ca_number: str,
        lifespan_days: int,
        description: Optional[str] = None,
        active: bool = True,
    ) -> ItemType:
        """
        Registrar un tipo de EPI.

        Raises:
            ValidationException: Datos inválidos
            ConflictException: Número de CA duplicado
        """
        item_type = ItemType(
            name=name,
            ca_number=ca_number,
            lifespan_days=lifespan_days,
            description=description,
            active=active,
        )
        async with self.uow:
            item_type = await self.uow.item_types.add(item_type)
            await self.uow.commit()
            return item_type

    async def list_item_types(self, active_only: bool = False) -> List[ItemType]:
        async with self.uow:
            return await self.uow.item_types.list(active_only=active_only)

    async def get_item_type(self, item_type_id: int) -> ItemType:
        async with self.uow:
            item_type = await self.uow.item_types.find_by_id(item_type_id)
        if item_type is None:
            raise NotFoundException("Tipo EPI", item_type_id)
        return item_type

    async def create_ficha(self, employee_id: str) -> FichaEpi:
        """
        Abrir la ficha EPI de un colaborador.

        Raises:
            ConflictException: El colaborador ya tiene ficha
        """
        ficha = FichaEpi(employee_id=employee_id, created_at=self.clock.now())
        async with self.uow:
            ficha = await self.uow.fichas.add(ficha)
            await self.uow.commit()
            return ficha

    async def get_ficha(self, ficha_id: int) -> FichaEpi:
        async with self.uow:
            ficha = await self.uow.fichas.find_by_id(ficha_id)
        if ficha is None:
            raise NotFoundException("Ficha EPI", ficha_id)
        return ficha
