"""
Base común para los repositorios SQLAlchemy asíncronos.

Los repositorios solo hacen flush: el commit/rollback pertenece al
Unit of Work que comparte la sesión.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ....app.core.exceptions import ConflictException


class SQLAlchemyRepository:
    """Repositorio con sesión compartida"""

    conflict_message = "Conflicto de integridad en la base de datos"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _flush(self, message: str = None) -> None:
        """
        Enviar cambios pendientes a la base sin confirmar la transacción.

        Raises:
            ConflictException: Si el motor rechaza la escritura por unicidad
        """
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictException(
                message or self.conflict_message,
                details={"error": str(e.orig)}
            ) from e
