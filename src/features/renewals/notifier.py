import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from src.core.config import settings
from src.core.errors import DependencyError, EmployeeEmailMissing, NotFoundError, RenewalNotEligible
from src.features.renewal.models import UrgencyTier
from .models import (
    REASON_EMAIL_MISSING, REASON_NOT_ELIGIBLE,
    BulkNotifyReport, NotificationResult, NotifySkip, RenewalEligibility,
)
from .repository import NotificationRepository, notification_repository
from .service import RenewalService, renewal_service

logger = logging.getLogger(__name__)


def build_notification(eligibility: RenewalEligibility, now: datetime) -> Dict[str, Any]:
    """Registro in-app del aviso (el correo lo envía un worker externo)"""
    requirement = eligibility.requirement
    urgency = eligibility.urgency
    type_name = eligibility.document_type.name if eligibility.document_type else requirement.document_type_id

    if urgency.tier is UrgencyTier.EXPIRED:
        title = "Documento Vencido"
        message = f'El documento "{type_name}" venció hace {urgency.days_expired} días'
    else:
        title = "Documento Próximo a Vencer"
        message = f'El documento "{type_name}" vence en {urgency.days_until} días'

    return {
        "user_id": eligibility.employee.id,
        "title": title,
        "message": message,
        "type": "renewal",
        "related_id": requirement.id,
        "metadata": {
            "document_type": type_name,
            "relevant_date": requirement.relevant_date.isoformat() if requirement.relevant_date else None,
            "urgency_level": urgency.tier.value,
        },
        "read": False,
        "created_at": now.isoformat(),
    }


class RenewalNotifier:
    """
    Avisos de renovación: notificación in-app + evento en Kafka
    (`documents.renewal.due`) para el servicio de correo.
    """

    def __init__(
        self,
        renewals: Optional[RenewalService] = None,
        notifications: Optional[NotificationRepository] = None,
        producer: Optional[Any] = None,
        topic: Optional[str] = None,
    ):
        self.renewals = renewals or renewal_service
        self.notifications = notifications or notification_repository
        self.producer = producer
        self.topic = topic or settings.KAFKA_RENEWAL_TOPIC

    async def start(self):
        if self.producer is not None:
            return
        producer = AIOKafkaProducer(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8"),
        )
        try:
            await producer.start()
        except KafkaError as e:
            logger.error("❌ No se pudo iniciar el productor Kafka: %s", e)
            await producer.stop()
            return
        self.producer = producer
        logger.info("📡 Productor Kafka listo (topic=%s)", self.topic)

    async def stop(self):
        if self.producer is not None:
            await self.producer.stop()
            self.producer = None

    def _require_producer(self):
        if self.producer is None:
            raise DependencyError("El bus de eventos no está disponible", code="EVENT_BUS_UNAVAILABLE")

    async def _publish(self, eligibility: RenewalEligibility, notification_id: str):
        self._require_producer()

        requirement = eligibility.requirement
        event = {
            "event": "document.renewal.due",
            "notification_id": notification_id,
            "requirement_id": requirement.id,
            "employee_id": eligibility.employee.id,
            "employee_email": eligibility.employee.email,
            "employee_name": eligibility.employee.full_name,
            "document_type": eligibility.document_type.name if eligibility.document_type else None,
            "relevant_date": requirement.relevant_date.isoformat() if requirement.relevant_date else None,
            "urgency": eligibility.urgency.model_dump(mode="json"),
        }
        try:
            await self.producer.send_and_wait(self.topic, event, key=requirement.id)
        except KafkaError as e:
            logger.error("❌ Error publicando aviso de %s: %s", requirement.id, e)
            raise DependencyError(
                "No se pudo publicar el aviso de renovación",
                code="EVENT_BUS_UNAVAILABLE",
                details={"requirement_id": requirement.id},
            )

    async def notify(
        self,
        requirement_id: str,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> NotificationResult:
        now = now or datetime.now(timezone.utc)
        eligibility = await self.renewals.eligible_for_renewal_email(requirement_id, today or now.date())

        self._require_producer()
        notification = self.notifications.insert(build_notification(eligibility, now))
        try:
            await self._publish(eligibility, notification["id"])
        except DependencyError:
            # Sin evento publicado no queda el aviso in-app
            self.notifications.delete(notification["id"])
            raise

        logger.info(
            "🔔 Aviso de renovación %s -> %s (%s)",
            requirement_id, eligibility.employee.email, eligibility.urgency.tier.value,
        )
        return NotificationResult(
            notification_id=notification["id"],
            requirement_id=requirement_id,
            employee_id=eligibility.employee.id,
            urgency_level=eligibility.urgency.tier,
            published=True,
        )

    async def notify_bulk(
        self,
        today: Optional[date] = None,
        within_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> BulkNotifyReport:
        """
        Avisa todo lo que está en el feed. Los bloqueos por requerimiento se
        reportan; una caída de Kafka corta el lote.
        """
        now = now or datetime.now(timezone.utc)
        today = today or now.date()
        window = settings.FEED_DEFAULT_WINDOW_DAYS if within_days is None else within_days

        report = BulkNotifyReport()
        for item in await self.renewals.list_by_urgency(today, within_days=window):
            try:
                report.notified.append(await self.notify(item.requirement_id, today, now))
            except EmployeeEmailMissing:
                report.skipped.append(NotifySkip(requirement_id=item.requirement_id, reason=REASON_EMAIL_MISSING))
            except RenewalNotEligible:
                report.skipped.append(NotifySkip(requirement_id=item.requirement_id, reason=REASON_NOT_ELIGIBLE))
            except NotFoundError as e:
                report.skipped.append(NotifySkip(requirement_id=item.requirement_id, reason=e.code.lower()))

        logger.info("📬 Avisos masivos: %s enviados, %s omitidos", len(report.notified), len(report.skipped))
        return report


renewal_notifier = RenewalNotifier()
