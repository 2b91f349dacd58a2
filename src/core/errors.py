"""
Excepciones de dominio del servicio de requerimientos documentales.

Los servicios lanzan estas excepciones; `src/main.py` las traduce a respuestas
HTTP con el mismo formato para todos los endpoints.
"""

from typing import Any, Dict, Iterable, List, Optional


class DocumentServiceError(Exception):
    """Base de todos los errores de dominio"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Validación (entrada mal formada)
# ============================================

class ValidationError(DocumentServiceError):
    status_code = 422

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class InvalidRenewalSpec(ValidationError):
    """Periodo no positivo o unidad desconocida"""

    def __init__(self, period: Any, unit: Any):
        super().__init__(
            f"Especificación de renovación inválida: {period} {unit}",
            code="INVALID_RENEWAL_SPEC",
            details={"period": period, "unit": unit}
        )


class NullFieldError(ValidationError):
    """Campos que no admiten null enviados explícitamente como null"""

    def __init__(self, fields: List[str]):
        super().__init__(
            f"Los campos no pueden ser nulos: {', '.join(fields)}",
            code="NULL_NOT_ALLOWED",
            details={"fields": fields}
        )


def ensure_not_null(patch: Dict[str, Any], fields: Iterable[str]) -> None:
    """Un PATCH puede omitir estos campos, pero no vaciarlos"""
    nulls = [field for field in fields if field in patch and patch[field] is None]
    if nulls:
        raise NullFieldError(nulls)


class RenewalNotEligible(ValidationError):
    def __init__(self, requirement_id: str, reason: str):
        super().__init__(
            f"El requerimiento '{requirement_id}' no es elegible para notificación de renovación",
            code="RENEWAL_NOT_ELIGIBLE",
            details={"requirement_id": requirement_id, "reason": reason}
        )


# ============================================
# Recursos inexistentes (404)
# ============================================

class NotFoundError(DocumentServiceError):
    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} '{resource_id}' no encontrado",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class EmployeeNotFound(NotFoundError):
    def __init__(self, employee_id: str):
        super().__init__("Employee", employee_id)


class DocumentTypeNotFound(NotFoundError):
    def __init__(self, document_type_id: str):
        super().__init__("Document_Type", document_type_id)


class TemplateNotFound(NotFoundError):
    def __init__(self, template_id: str):
        super().__init__("Template", template_id)


class RequirementNotFound(NotFoundError):
    def __init__(self, requirement_id: str):
        super().__init__("Requirement", requirement_id)


class EmployeeDocumentNotFound(NotFoundError):
    def __init__(self, requirement_id: str):
        super().__init__("Employee_Document", requirement_id)


# ============================================
# Conflictos (duplicados y carreras)
# ============================================

class ConflictError(DocumentServiceError):
    status_code = 409

    def __init__(self, message: str, code: str = "CONFLICT", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class DuplicateRequirement(ConflictError):
    def __init__(self, employee_id: str, document_type_id: str):
        super().__init__(
            "El empleado ya tiene asignado este tipo de documento",
            code="ALREADY_ASSIGNED",
            details={"employee_id": employee_id, "document_type_id": document_type_id}
        )


class ConcurrentModification(ConflictError):
    def __init__(self, requirement_id: str):
        super().__init__(
            "El requerimiento fue modificado por otra operación; vuelva a cargarlo",
            code="CONCURRENT_MODIFICATION",
            details={"requirement_id": requirement_id}
        )


class InvalidTransitionError(DocumentServiceError):
    status_code = 409

    def __init__(self, requirement_id: str, action: str, current_status: str):
        super().__init__(
            f"No se puede ejecutar '{action}' sobre un requerimiento en estado '{current_status}'",
            code="INVALID_TRANSITION",
            details={"requirement_id": requirement_id, "action": action, "current_status": current_status}
        )


# ============================================
# Dependencias externas
# ============================================

class DependencyError(DocumentServiceError):
    status_code = 503

    def __init__(self, message: str, code: str = "DEPENDENCY_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class EmployeeEmailMissing(DependencyError):
    def __init__(self, employee_id: str):
        super().__init__(
            f"El empleado '{employee_id}' no tiene correo registrado",
            code="EMPLOYEE_EMAIL_MISSING",
            details={"employee_id": employee_id, "precondition": "employee_email"}
        )


# ============================================
# Autorización
# ============================================

class PermissionDenied(DocumentServiceError):
    status_code = 403

    def __init__(self, message: str = "No tienes permisos para esta operación"):
        super().__init__(message, code="PERMISSION_DENIED")
