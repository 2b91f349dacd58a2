from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.features.renewal.models import Priority, RenewalUnit

# --- Tipos de documento ---

class DocumentTypeBase(BaseModel):
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    description: Optional[str] = ""
    is_mandatory: bool = False
    has_expiration: bool = False
    renewal_period: Optional[int] = None
    renewal_unit: Optional[RenewalUnit] = None
    # Días de plazo por defecto al asignar este tipo (si no se indica fecha)
    default_due_days: Optional[int] = Field(None, ge=1)


class DocumentTypeCreate(DocumentTypeBase):
    pass


class DocumentTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    is_mandatory: Optional[bool] = None
    has_expiration: Optional[bool] = None
    renewal_period: Optional[int] = None
    renewal_unit: Optional[RenewalUnit] = None
    default_due_days: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class DocumentType(DocumentTypeBase):
    id: str
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Plantillas ---

class TemplateItem(BaseModel):
    """Tipo de documento dentro de una plantilla, con prioridad y renovación propias"""
    document_type_id: str
    priority: Priority = Priority.NORMAL
    has_custom_renewal: bool = False
    custom_renewal_period: Optional[int] = None
    custom_renewal_unit: Optional[RenewalUnit] = None
    # Solo lectura: el tipo referenciado, resuelto al listar
    document_type: Optional[DocumentType] = None


class TemplateBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = ""
    category: Optional[str] = "Personalizada"
    icon: Optional[str] = "template"


class TemplateCreate(TemplateBase):
    items: List[TemplateItem] = []


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    icon: Optional[str] = None
    items: Optional[List[TemplateItem]] = None


class Template(TemplateBase):
    id: str
    is_active: bool = True
    items: List[TemplateItem] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
