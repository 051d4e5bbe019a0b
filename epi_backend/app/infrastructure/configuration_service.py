"""
Servicio de configuración respaldado por la tabla `configurations`.

Cada bandera se busca primero en la base; si la clave no existe se usa
el valor del entorno (ALLOW_NEGATIVE_STOCK, ALLOW_FORCED_ADJUSTMENTS,
EXPIRY_WARNING_DAYS).
"""
import logging
from typing import Optional

from sqlalchemy import select

from ...app.core.config import get_settings
from ...app.core.exceptions import ValidationException
from ...app.application.ports.configuration import (
    EXPIRY_WARNING_DAYS_KEY,
    FORCED_ADJUSTMENTS_KEY,
    NEGATIVE_STOCK_KEY,
    ConfigurationService,
)
from ...infrastructure.database.models import ConfigurationModel
from .repositories.base_repository import SQLAlchemyRepository

logger = logging.getLogger(__name__)

KNOWN_KEYS = (NEGATIVE_STOCK_KEY, FORCED_ADJUSTMENTS_KEY, EXPIRY_WARNING_DAYS_KEY)


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on", "sim")


class SQLAlchemyConfigurationService(SQLAlchemyRepository, ConfigurationService):
    """Configuración con tabla + entorno"""

    async def _get_value(self, key: str) -> Optional[str]:
        result = await self.session.execute(
            select(ConfigurationModel.value).where(ConfigurationModel.key == key)
        )
        return result.scalar_one_or_none()

    async def is_negative_stock_allowed(self) -> bool:
        value = await self._get_value(NEGATIVE_STOCK_KEY)
        if value is None:
            return get_settings().allow_negative_stock
        return _as_bool(value)

    async def is_forced_adjustment_allowed(self) -> bool:
        value = await self._get_value(FORCED_ADJUSTMENTS_KEY)
        if value is None:
            return get_settings().allow_forced_adjustments
        return _as_bool(value)

    async def expiry_warning_days(self) -> int:
        value = await self._get_value(EXPIRY_WARNING_DAYS_KEY)
        if value is None:
            return get_settings().expiry_warning_days
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Valor de configuración inválido; usando entorno",
                extra={"extra_data": {"key": EXPIRY_WARNING_DAYS_KEY, "value": value}}
            )
            return get_settings().expiry_warning_days

    @staticmethod
    def _parse_days(value) -> int:
        try:
            days = int(str(value).strip())
        except ValueError:
            days = -1
        if days < 0:
            raise ValidationException(
                f"{EXPIRY_WARNING_DAYS_KEY} debe ser un entero no negativo",
                field="value",
                details={"key": EXPIRY_WARNING_DAYS_KEY, "value": value}
            )
        return days

    async def set_flag(self, key: str, value: str) -> None:
        if key not in KNOWN_KEYS:
            raise ValidationException(
                f"Clave de configuración desconocida: {key}",
                field="key",
                details={"valid_keys": list(KNOWN_KEYS)}
            )
        if key == EXPIRY_WARNING_DAYS_KEY:
            value = self._parse_days(value)
        result = await self.session.execute(
            select(ConfigurationModel).where(ConfigurationModel.key == key)
        )
        db_config = result.scalar_one_or_none()
        if db_config is None:
            self.session.add(ConfigurationModel(key=key, value=str(value)))
        else:
            db_config.value = str(value)
        await self._flush()
