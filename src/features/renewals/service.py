import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from src.core.errors import EmployeeEmailMissing, EmployeeNotFound, RenewalNotEligible, RequirementNotFound
from src.features.employees.models import Employee
from src.features.employees.repository import EmployeeRepository, employee_repository
from src.features.renewal.calculator import HIGH_MAX_DAYS, MEDIUM_MAX_DAYS, URGENT_MAX_DAYS
from src.features.renewal.models import PRIORITY_RANK, TIER_RANK, UrgencyTier
from src.features.requirements.repository import RequirementRepository, requirement_repository
from src.features.requirements.service import to_view
from .models import EmployeeRenewalSummary, RenewalEligibility, UrgencyFeedItem

logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(timezone.utc).date()


class RenewalService:
    """
    Feed de urgencia y elegibilidad para avisos de renovación.
    Son lecturas: nunca bloquean a quien escribe requerimientos.
    """

    def __init__(
        self,
        requirements: Optional[RequirementRepository] = None,
        employees: Optional[EmployeeRepository] = None,
    ):
        self.requirements = requirements or requirement_repository
        self.employees = employees or employee_repository

    def _feed(self, today: date, employee_id: Optional[str] = None) -> List[UrgencyFeedItem]:
        views = [
            to_view(record, today)
            for record in self.requirements.list_joined(employee_id=employee_id, only_with_clock=True)
        ]
        views = [v for v in views if v.urgency is not None]
        people = self.employees.get_employees([v.employee_id for v in views])

        items = []
        for view in views:
            person = people.get(view.employee_id) or {}
            name = f"{person.get('first_name', '')} {person.get('last_name', '')}".strip()
            items.append(UrgencyFeedItem(
                requirement_id=view.id,
                employee_id=view.employee_id,
                employee_name=name or None,
                employee_email=person.get("email"),
                document_type_id=view.document_type_id,
                document_type_name=view.document_type.name if view.document_type else None,
                category=view.document_type.category if view.document_type else None,
                priority=view.priority,
                status=view.effective_status,
                relevant_date=view.relevant_date,
                tier=view.urgency.tier,
                days_until=view.urgency.days_until,
                days_expired=view.urgency.days_expired,
            ))
        return items

    @staticmethod
    def _sort(items: List[UrgencyFeedItem]) -> List[UrgencyFeedItem]:
        return sorted(items, key=lambda i: (TIER_RANK[i.tier], i.days_until, PRIORITY_RANK[i.priority]))

    async def list_by_urgency(
        self,
        today: Optional[date] = None,
        within_days: Optional[int] = None,
        tier: Optional[UrgencyTier] = None,
    ) -> List[UrgencyFeedItem]:
        """
        Requerimientos con reloj dentro de la ventana, lo más urgente primero.
        Sin `within_days` no hay límite; el nivel `ok` nunca aparece.
        """
        today = today or _today()
        items = [
            item for item in self._feed(today)
            if item.tier is not UrgencyTier.OK
            and (within_days is None or item.days_until <= within_days)
            and (tier is None or item.tier is tier)
        ]
        return self._sort(items)

    async def list_expired(self, today: Optional[date] = None) -> List[UrgencyFeedItem]:
        return await self.list_by_urgency(today, within_days=None, tier=UrgencyTier.EXPIRED)

    async def employee_summary(self, employee_id: str, today: Optional[date] = None) -> EmployeeRenewalSummary:
        today = today or _today()
        items = self._sort([i for i in self._feed(today, employee_id) if i.tier is not UrgencyTier.OK])

        def expiring_within(days: int) -> int:
            return sum(1 for i in items if 0 <= i.days_until <= days)

        return EmployeeRenewalSummary(
            employee_id=employee_id,
            expiring_in_7_days=expiring_within(URGENT_MAX_DAYS),
            expiring_in_15_days=expiring_within(HIGH_MAX_DAYS),
            expiring_in_30_days=expiring_within(MEDIUM_MAX_DAYS),
            expired=sum(1 for i in items if i.tier is UrgencyTier.EXPIRED),
            items=items,
        )

    async def eligible_for_renewal_email(self, requirement_id: str, today: Optional[date] = None) -> RenewalEligibility:
        """
        Verifica que el requerimiento merece un aviso de renovación:
        tiene reloj, no está en nivel `ok` y el empleado tiene correo.
        """
        today = today or _today()
        record = self.requirements.get_requirement(requirement_id)
        if not record:
            raise RequirementNotFound(requirement_id)
        view = to_view(record, today)

        person = self.employees.get_employee(view.employee_id)
        if not person:
            raise EmployeeNotFound(view.employee_id)

        if view.urgency is None:
            raise RenewalNotEligible(requirement_id, "no_clock")
        if view.urgency.tier is UrgencyTier.OK:
            raise RenewalNotEligible(requirement_id, "not_due")

        employee = Employee(**person)
        if not employee.email:
            logger.warning("📭 Empleado %s sin correo, aviso de %s bloqueado", employee.id, requirement_id)
            raise EmployeeEmailMissing(employee.id)

        return RenewalEligibility(
            employee=employee,
            requirement=view,
            document_type=view.document_type,
            urgency=view.urgency,
        )


renewal_service = RenewalService()
