import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Set

from src.core.config import settings
from src.core.errors import DuplicateRequirement, EmployeeNotFound, TemplateNotFound
from src.features.catalog.repository import CatalogRepository, catalog_repository
from src.features.employees.repository import EmployeeRepository, employee_repository
from src.features.renewal.calculator import resolve_renewal
from src.features.renewal.models import Priority, RequirementStatus
from src.features.requirements.repository import RequirementRepository, requirement_repository
from .models import (
    REASON_ALREADY_ASSIGNED, REASON_DUPLICATE_IN_REQUEST, REASON_TYPE_INACTIVE, REASON_TYPE_NOT_FOUND,
    AssignedItem, AssignItem, AssignmentReport, SkippedItem,
)

logger = logging.getLogger(__name__)


def default_due_date(document_type: Dict[str, Any], today: date) -> date:
    """Plazo propio del tipo de documento o, en su defecto, el plazo global"""
    days = document_type.get("default_due_days") or settings.DEFAULT_DUE_DAYS
    return today + timedelta(days=days)


class AssignmentService:
    """
    Asigna requerimientos a un empleado, uno a uno o expandiendo una plantilla.

    El chequeo previo de duplicados es solo informativo: el índice único
    (employee_id, document_type_id) decide cuando dos asignaciones compiten.
    """

    def __init__(
        self,
        requirements: Optional[RequirementRepository] = None,
        catalog: Optional[CatalogRepository] = None,
        employees: Optional[EmployeeRepository] = None,
    ):
        self.requirements = requirements or requirement_repository
        self.catalog = catalog or catalog_repository
        self.employees = employees or employee_repository

    def _ensure_employee(self, employee_id: str):
        if not self.employees.get_employee(employee_id):
            raise EmployeeNotFound(employee_id)

    def _check_type(self, document_type_id: str, types: Dict[str, Dict[str, Any]]) -> Optional[str]:
        document_type = types.get(document_type_id)
        if document_type is None:
            return REASON_TYPE_NOT_FOUND
        if not document_type.get("is_active", True):
            return REASON_TYPE_INACTIVE
        return None

    def _insert(
        self,
        report: AssignmentReport,
        employee_id: str,
        document_type_id: str,
        priority: Priority,
        due_date: date,
        assigned_by: Optional[str],
        now: datetime,
        extra: Dict[str, Any],
    ):
        doc = {
            "employee_id": employee_id,
            "document_type_id": document_type_id,
            "priority": priority.value,
            "due_date": due_date.isoformat(),
            "status": RequirementStatus.PENDIENTE.value,
            "notes": "",
            "assigned_by": assigned_by,
            "assigned_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "template_id": None,
            "has_custom_renewal": False,
            "custom_renewal_period": None,
            "custom_renewal_unit": None,
            "current_version": 0,
            "current_document_id": None,
            **extra,
        }
        try:
            created = self.requirements.insert_requirement(doc)
        except DuplicateRequirement:
            # Otra asignación concurrente ganó la carrera
            logger.info("↩️ Requerimiento duplicado omitido: %s / %s", employee_id, document_type_id)
            report.skipped.append(SkippedItem(document_type_id=document_type_id, reason=REASON_ALREADY_ASSIGNED))
            return

        report.assigned.append(AssignedItem(
            requirement_id=created["id"],
            document_type_id=document_type_id,
            priority=priority,
            due_date=due_date,
        ))

    @staticmethod
    def _precheck(
        report: AssignmentReport,
        document_type_id: str,
        seen: Set[str],
        existing: Set[str],
        type_error: Optional[str],
    ) -> bool:
        reason = None
        if document_type_id in seen:
            reason = REASON_DUPLICATE_IN_REQUEST
        elif type_error:
            reason = type_error
        elif document_type_id in existing:
            reason = REASON_ALREADY_ASSIGNED
        seen.add(document_type_id)

        if reason:
            report.skipped.append(SkippedItem(document_type_id=document_type_id, reason=reason))
            return False
        return True

    async def assign_individual(
        self,
        employee_id: str,
        items: Iterable[AssignItem],
        assigned_by: Optional[str],
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> AssignmentReport:
        now = now or datetime.now(timezone.utc)
        today = today or now.date()
        items = list(items)

        self._ensure_employee(employee_id)
        types = self.catalog.get_document_types([item.document_type_id for item in items])
        existing = self.requirements.assigned_type_ids(employee_id)

        report = AssignmentReport(employee_id=employee_id)
        seen: Set[str] = set()
        for item in items:
            type_error = self._check_type(item.document_type_id, types)
            if not self._precheck(report, item.document_type_id, seen, existing, type_error):
                continue

            extra = {"notes": item.notes} if item.notes else {}
            self._insert(
                report,
                employee_id,
                item.document_type_id,
                item.priority,
                item.due_date or default_due_date(types[item.document_type_id], today),
                assigned_by,
                now,
                extra,
            )

        logger.info(
            "📋 Asignación individual a %s: %s asignados, %s omitidos",
            employee_id, len(report.assigned), len(report.skipped),
        )
        return report

    async def assign_from_template(
        self,
        employee_id: str,
        template_id: str,
        assigned_by: Optional[str],
        today: Optional[date] = None,
        override_due_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> AssignmentReport:
        """
        Expande la plantilla sobre el empleado. Completa los huecos y nunca
        sobrescribe requerimientos existentes; la plantilla no se modifica.
        """
        now = now or datetime.now(timezone.utc)
        today = today or now.date()

        self._ensure_employee(employee_id)
        template = self.catalog.get_template(template_id)
        if not template or not template.get("is_active", True):
            raise TemplateNotFound(template_id)

        items = template.get("items") or []
        types = self.catalog.get_document_types([item["document_type_id"] for item in items])
        existing = self.requirements.assigned_type_ids(employee_id)

        report = AssignmentReport(employee_id=employee_id, template_id=template_id)
        seen: Set[str] = set()
        for item in items:
            document_type_id = item["document_type_id"]
            type_error = self._check_type(document_type_id, types)
            if not self._precheck(report, document_type_id, seen, existing, type_error):
                continue

            document_type = types[document_type_id]
            extra: Dict[str, Any] = {"template_id": template_id}
            # Solo se guarda la renovación del item cuando sobrescribe la del tipo
            if item.get("has_custom_renewal"):
                extra.update(resolve_renewal(item, document_type).to_fields())

            self._insert(
                report,
                employee_id,
                document_type_id,
                Priority(item.get("priority") or Priority.NORMAL.value),
                override_due_date or default_due_date(document_type, today),
                assigned_by,
                now,
                extra,
            )

        logger.info(
            "🧩 Plantilla %s aplicada a %s: %s asignados, %s omitidos",
            template_id, employee_id, len(report.assigned), len(report.skipped),
        )
        return report


assignment_service = AssignmentService()
