from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from src.features.catalog.models import DocumentType
from src.features.renewal.models import (
    DocumentStatus, Priority, RenewalUnit, RequirementStatus, UrgencyTier,
)


class RequiredDocument(BaseModel):
    """Requerimiento persistido: un tipo de documento exigido a un empleado"""
    id: str
    employee_id: str
    document_type_id: str
    priority: Priority = Priority.NORMAL
    due_date: Optional[date] = None
    status: RequirementStatus = RequirementStatus.PENDIENTE
    # Bitácora de revisión, solo se agregan líneas
    notes: str = ""
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    template_id: Optional[str] = None
    has_custom_renewal: bool = False
    custom_renewal_period: Optional[int] = None
    custom_renewal_unit: Optional[RenewalUnit] = None
    current_version: int = 0
    current_document_id: Optional[str] = None


class EmployeeDocument(BaseModel):
    """Versión concreta de archivo entregada para un requerimiento"""
    id: str
    requirement_id: str
    employee_id: str
    document_type_id: str
    file_name: str
    file_path: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    version: int
    upload_date: datetime
    expiration_date: Optional[date] = None
    status: DocumentStatus = DocumentStatus.PENDIENTE
    approval_notes: Optional[str] = None
    uploaded_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


# --- Entradas ---

class FileSubmission(BaseModel):
    """Metadatos de un archivo ya almacenado (bucket/ruta)"""
    file_name: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1)
    file_size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = None


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = Field(..., description="Motivo del rechazo (obligatorio)")


class RequirementUpdate(BaseModel):
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    has_custom_renewal: Optional[bool] = None
    custom_renewal_period: Optional[int] = None
    custom_renewal_unit: Optional[RenewalUnit] = None


# --- Salidas ---

class UrgencyInfo(BaseModel):
    tier: UrgencyTier
    days_until: int
    days_expired: Optional[int] = None


class RequirementView(RequiredDocument):
    """Requerimiento con estado efectivo y reloj calculados al momento de leer"""
    effective_status: RequirementStatus
    relevant_date: Optional[date] = None
    urgency: Optional[UrgencyInfo] = None
    document_type: Optional[DocumentType] = None
    current_document: Optional[EmployeeDocument] = None
    file_url: Optional[str] = None


class StatusStatistics(BaseModel):
    total: int
    by_status: Dict[str, int]
