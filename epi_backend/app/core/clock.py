"""
Reloj inyectable.

Todas las comparaciones con "ahora" (vencimientos, año del número de nota,
fechas de devolución) pasan por un Clock para poder fijar el tiempo en tests.
Las fechas se manejan como UTC naive, igual que se guardan en la base.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Puerto de tiempo"""

    @abstractmethod
    def now(self) -> datetime:
        """Instante actual en UTC (naive)"""
        pass


class SystemClock(Clock):
    """Reloj del sistema"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Reloj fijo para tests; se puede adelantar manualmente"""

    def __init__(self, fixed: datetime):
        self._now = fixed

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
