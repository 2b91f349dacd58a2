from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from src.features.catalog.models import DocumentType
from src.features.employees.models import Employee
from src.features.renewal.models import Priority, RequirementStatus, UrgencyTier
from src.features.requirements.models import RequirementView, UrgencyInfo

# Motivos de omisión en envíos masivos
REASON_EMAIL_MISSING = "employee_email_missing"
REASON_NOT_ELIGIBLE = "not_eligible"


class UrgencyFeedItem(BaseModel):
    requirement_id: str
    employee_id: str
    employee_name: Optional[str] = None
    employee_email: Optional[str] = None
    document_type_id: str
    document_type_name: Optional[str] = None
    category: Optional[str] = None
    priority: Priority
    status: RequirementStatus
    relevant_date: date
    tier: UrgencyTier
    days_until: int
    days_expired: Optional[int] = None


class RenewalEligibility(BaseModel):
    employee: Employee
    requirement: RequirementView
    document_type: Optional[DocumentType] = None
    urgency: UrgencyInfo


class EmployeeRenewalSummary(BaseModel):
    employee_id: str
    expiring_in_7_days: int
    expiring_in_15_days: int
    expiring_in_30_days: int
    expired: int
    items: List[UrgencyFeedItem] = []


class NotificationResult(BaseModel):
    notification_id: str
    requirement_id: str
    employee_id: str
    urgency_level: UrgencyTier
    published: bool


class NotifySkip(BaseModel):
    requirement_id: str
    reason: str


class BulkNotifyReport(BaseModel):
    notified: List[NotificationResult] = []
    skipped: List[NotifySkip] = []
