"""
Puerto para el servicio de configuración.
Banderas de negocio leídas en cada operación.
"""
from abc import ABC, abstractmethod


NEGATIVE_STOCK_KEY = "PERMITIR_ESTOQUE_NEGATIVO"
FORCED_ADJUSTMENTS_KEY = "PERMITIR_AJUSTES_FORCADOS"
EXPIRY_WARNING_DAYS_KEY = "DIAS_AVISO_VENCIMENTO"


class ConfigurationService(ABC):
    """Puerto de configuración de negocio"""

    @abstractmethod
    async def is_negative_stock_allowed(self) -> bool:
        """Permite que las salidas dejen el saldo negativo"""
        pass

    @abstractmethod
    async def is_forced_adjustment_allowed(self) -> bool:
        """Permite ajustes directos y notas de ajuste"""
        pass

    @abstractmethod
    async def expiry_warning_days(self) -> int:
        """Días de antelación para clasificar una posesión como próxima al vencimiento"""
        pass

    @abstractmethod
    async def set_flag(self, key: str, value: str) -> None:
        """
        Persistir un valor de configuración.

        Args:
            key: Clave (ej: PERMITIR_ESTOQUE_NEGATIVO)
            value: Valor como texto
        """
        pass
