"""
Configuración de la aplicación a partir de variables de entorno.

Las banderas de negocio (estoque negativo, ajustes forzados) también pueden
persistirse en la tabla `configurations`; estos valores son el respaldo
cuando la tabla no tiene la clave.
"""
import os
from dataclasses import dataclass


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Valores de configuración leídos del entorno"""
    database_url: str
    database_echo: bool
    log_level: str
    log_dir: str
    allow_negative_stock: bool
    allow_forced_adjustments: bool
    expiry_warning_days: int


def get_settings() -> Settings:
    """
    Leer la configuración actual del entorno.

    Se lee en cada llamada para que los tests puedan alterar el entorno
    con monkeypatch sin recargar módulos.
    """
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./epi.db"),
        database_echo=_env_bool("DATABASE_ECHO"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        allow_negative_stock=_env_bool("ALLOW_NEGATIVE_STOCK"),
        allow_forced_adjustments=_env_bool("ALLOW_FORCED_ADJUSTMENTS"),
        expiry_warning_days=int(os.getenv("EXPIRY_WARNING_DAYS", "30")),
    )
