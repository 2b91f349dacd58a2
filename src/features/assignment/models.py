from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from src.features.renewal.models import Priority

# Motivos por los que un item no se asigna
REASON_ALREADY_ASSIGNED = "already_assigned"
REASON_DUPLICATE_IN_REQUEST = "duplicate_in_request"
REASON_TYPE_NOT_FOUND = "document_type_not_found"
REASON_TYPE_INACTIVE = "document_type_inactive"


class AssignItem(BaseModel):
    document_type_id: str
    priority: Priority = Priority.NORMAL
    due_date: Optional[date] = None
    notes: Optional[str] = None


class AssignRequest(BaseModel):
    employee_id: str
    items: List[AssignItem] = Field(..., min_length=1)


class AssignTemplateRequest(BaseModel):
    employee_id: str
    template_id: str
    due_date: Optional[date] = Field(None, description="Fecha límite común para todos los items")


class AssignedItem(BaseModel):
    requirement_id: str
    document_type_id: str
    priority: Priority
    due_date: date


class SkippedItem(BaseModel):
    document_type_id: str
    reason: str


class AssignmentReport(BaseModel):
    employee_id: str
    template_id: Optional[str] = None
    assigned: List[AssignedItem] = []
    skipped: List[SkippedItem] = []
