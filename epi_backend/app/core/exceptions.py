"""
Excepciones base del sistema - NO dependen de frameworks.
Cada excepción conoce su código de error y su status HTTP; la capa web
solo las serializa con to_dict().
"""
from typing import Any, Dict, Optional


def _merge(details: Optional[Dict[str, Any]], **extra: Any) -> Dict[str, Any]:
    merged = dict(details or {})
    merged.update({k: v for k, v in extra.items() if v is not None})
    return merged


class AppException(Exception):
    """Excepción base de la aplicación"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class DomainException(AppException):
    """Violación de una regla de negocio (400)"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DOMAIN_ERROR", 400, details)


class BusinessRuleException(DomainException):
    """Violación de una regla con nombre estable, expuesto en details.rule"""
    def __init__(self, message: str, rule_name: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, _merge(details, rule=rule_name))
        self.rule_name = rule_name


class ValidationException(AppException):
    """Datos de entrada inválidos (422)"""
    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", 422, _merge(details, field=field))


class NotFoundException(AppException):
    """Recurso inexistente (404)"""
    def __init__(self, resource: str, resource_id: Any, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"{resource} {resource_id} no encontrado",
            "NOT_FOUND",
            404,
            _merge(details, resource=resource, resource_id=resource_id),
        )


class ConflictException(AppException):
    """Violación de unicidad o escritura concurrente conflictiva (409)"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFLICT", 409, details)
