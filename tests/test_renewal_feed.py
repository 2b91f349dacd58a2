import asyncio
from datetime import date, datetime

import pytest
from aiokafka.errors import KafkaError

from src.core.errors import DependencyError, EmployeeEmailMissing, RenewalNotEligible
from src.features.assignment.models import AssignItem
from src.features.renewal.models import UrgencyTier
from src.features.renewals.notifier import RenewalNotifier
from src.features.requirements.models import FileSubmission

TODAY = date(2024, 3, 1)


class FakeNotifications:
    def __init__(self):
        self.rows = []

    def insert(self, doc):
        row = {**doc, "id": f"n_{len(self.rows) + 1}"}
        self.rows.append(row)
        return row

    def delete(self, notification_id):
        self.rows = [r for r in self.rows if r["id"] != notification_id]


class FakeProducer:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_and_wait(self, topic, value, key=None):
        if self.fail:
            raise KafkaError("broker caído")
        self.sent.append((topic, key, value))


def _assign(assignment, employee_id, type_id, due):
    report = asyncio.run(assignment.assign_individual(
        employee_id, [AssignItem(document_type_id=type_id, due_date=due)], assigned_by="admin-1", today=date(2024, 1, 1)
    ))
    return report.assigned[0].requirement_id


def _approve(requirement_service, rid, when):
    submission = FileSubmission(file_name="doc.pdf", file_path="documents/doc.pdf")
    asyncio.run(requirement_service.submit(rid, submission, "u1", now=when))
    asyncio.run(requirement_service.approve(rid, "reviewer-1", now=when))


@pytest.fixture
def feed_data(assignment, requirement_service):
    ids = {
        "expired": _assign(assignment, "MIN25001", "penales", date(2024, 2, 25)),
        "urgent": _assign(assignment, "MIN25001", "dpi", date(2024, 3, 5)),
        "medium": _assign(assignment, "MIN25001", "medico", date(2024, 3, 20)),
        "no_clock": _assign(assignment, "MIN25001", "titulo", date(2024, 3, 2)),
        "approved_far": _assign(assignment, "MIN25002", "medico", date(2024, 2, 1)),
        "ok": _assign(assignment, "MIN25002", "dpi", date(2024, 4, 15)),
        "no_email": _assign(assignment, "MIN25002", "penales", date(2024, 3, 3)),
    }
    _approve(requirement_service, ids["approved_far"], datetime(2024, 1, 20))
    return ids


def test_feed_lists_due_items_most_urgent_first(renewals, feed_data):
    items = asyncio.run(renewals.list_by_urgency(TODAY))

    assert [i.requirement_id for i in items] == [
        feed_data["expired"], feed_data["no_email"], feed_data["urgent"], feed_data["medium"],
    ]
    assert [i.tier for i in items] == [UrgencyTier.EXPIRED, UrgencyTier.URGENT, UrgencyTier.URGENT, UrgencyTier.MEDIUM]
    assert items[0].days_expired == 5
    assert items[0].status.value == "vencido"
    assert items[0].employee_name == "Ana López"
    assert items[0].document_type_name == "Antecedentes Penales"


def test_feed_never_lists_ok_or_clockless_items(renewals, feed_data):
    ids = {i.requirement_id for i in asyncio.run(renewals.list_by_urgency(TODAY, within_days=None))}
    assert feed_data["approved_far"] not in ids
    assert feed_data["ok"] not in ids
    assert feed_data["no_clock"] not in ids


def test_feed_window_and_tier_filter(renewals, feed_data):
    within_ten = asyncio.run(renewals.list_by_urgency(TODAY, within_days=10))
    assert feed_data["medium"] not in {i.requirement_id for i in within_ten}
    assert feed_data["expired"] in {i.requirement_id for i in within_ten}

    urgent = asyncio.run(renewals.list_by_urgency(TODAY, tier=UrgencyTier.URGENT))
    assert {i.requirement_id for i in urgent} == {feed_data["urgent"], feed_data["no_email"]}

    expired = asyncio.run(renewals.list_expired(TODAY))
    assert [i.requirement_id for i in expired] == [feed_data["expired"]]


def test_employee_summary_counts(renewals, feed_data):
    summary = asyncio.run(renewals.employee_summary("MIN25001", TODAY))

    assert summary.expiring_in_7_days == 1
    assert summary.expiring_in_15_days == 1
    assert summary.expiring_in_30_days == 2
    assert summary.expired == 1
    assert len(summary.items) == 3


def test_eligibility_requires_employee_email(renewals, feed_data):
    with pytest.raises(EmployeeEmailMissing) as exc:
        asyncio.run(renewals.eligible_for_renewal_email(feed_data["no_email"], TODAY))

    assert isinstance(exc.value, DependencyError)
    assert exc.value.status_code == 503
    assert exc.value.details == {"employee_id": "MIN25002", "precondition": "employee_email"}


def test_eligibility_rejects_ok_tier_and_missing_clock(renewals, feed_data):
    with pytest.raises(RenewalNotEligible) as exc:
        asyncio.run(renewals.eligible_for_renewal_email(feed_data["ok"], TODAY))
    assert exc.value.details["reason"] == "not_due"

    with pytest.raises(RenewalNotEligible) as exc:
        asyncio.run(renewals.eligible_for_renewal_email(feed_data["no_clock"], TODAY))
    assert exc.value.details["reason"] == "no_clock"


def test_eligibility_returns_context(renewals, feed_data):
    result = asyncio.run(renewals.eligible_for_renewal_email(feed_data["urgent"], TODAY))

    assert result.employee.email == "ana@empresa.com"
    assert result.document_type.name == "DPI"
    assert result.urgency.tier is UrgencyTier.URGENT
    assert result.urgency.days_until == 4


def test_notify_records_notification_and_publishes(renewals, feed_data):
    notifications = FakeNotifications()
    producer = FakeProducer()
    notifier = RenewalNotifier(renewals=renewals, notifications=notifications, producer=producer)

    result = asyncio.run(notifier.notify(feed_data["expired"], TODAY))

    row = notifications.rows[0]
    assert row["title"] == "Documento Vencido"
    assert row["message"] == 'El documento "Antecedentes Penales" venció hace 5 días'
    assert row["type"] == "renewal"
    assert row["read"] is False
    assert row["metadata"]["urgency_level"] == "expired"

    topic, key, event = producer.sent[0]
    assert topic == "documents.renewal.due"
    assert key == feed_data["expired"]
    assert event["employee_email"] == "ana@empresa.com"
    assert event["notification_id"] == result.notification_id == "n_1"


def test_notify_fails_when_event_bus_is_down(renewals, feed_data):
    notifications = FakeNotifications()
    notifier = RenewalNotifier(renewals=renewals, notifications=notifications, producer=FakeProducer(fail=True))
    with pytest.raises(DependencyError) as exc:
        asyncio.run(notifier.notify(feed_data["urgent"], TODAY))
    assert exc.value.code == "EVENT_BUS_UNAVAILABLE"
    # El aviso in-app no sobrevive a la publicación fallida
    assert notifications.rows == []

    no_producer = RenewalNotifier(renewals=renewals, notifications=notifications, producer=None)
    with pytest.raises(DependencyError):
        asyncio.run(no_producer.notify(feed_data["urgent"], TODAY))
    assert notifications.rows == []


def test_retry_after_bus_recovers_leaves_single_notification(renewals, feed_data):
    notifications = FakeNotifications()
    producer = FakeProducer(fail=True)
    notifier = RenewalNotifier(renewals=renewals, notifications=notifications, producer=producer)
    with pytest.raises(DependencyError):
        asyncio.run(notifier.notify(feed_data["urgent"], TODAY))

    producer.fail = False
    asyncio.run(notifier.notify(feed_data["urgent"], TODAY))

    assert [r["related_id"] for r in notifications.rows] == [feed_data["urgent"]]
    assert len(producer.sent) == 1


def test_notify_bulk_reports_skips(renewals, feed_data):
    producer = FakeProducer()
    notifier = RenewalNotifier(renewals=renewals, notifications=FakeNotifications(), producer=producer)

    report = asyncio.run(notifier.notify_bulk(TODAY, within_days=30))

    assert {n.requirement_id for n in report.notified} == {
        feed_data["expired"], feed_data["urgent"], feed_data["medium"],
    }
    assert [(s.requirement_id, s.reason) for s in report.skipped] == [
        (feed_data["no_email"], "employee_email_missing"),
    ]
    assert len(producer.sent) == 3
