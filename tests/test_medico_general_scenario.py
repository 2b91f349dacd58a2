import asyncio
from datetime import date, datetime

from src.features.renewal.models import UrgencyTier
from src.features.requirements.models import FileSubmission


def test_medico_general_template_six_month_renewal(assignment, requirement_service, renewals):
    """
    "Certificado Médico" renueva cada 12 meses, pero la plantilla
    "Médico General" lo exige cada 6: la aprobación del 2024-01-20 vence
    el 2024-07-20 y el 2024-07-10 aparece con urgencia alta.
    """
    report = asyncio.run(assignment.assign_from_template(
        "MIN25001", "tpl_medico", assigned_by="admin-1",
        today=date(2024, 1, 10), override_due_date=date(2024, 1, 31),
    ))
    rid = next(a.requirement_id for a in report.assigned if a.document_type_id == "medico")

    submission = FileSubmission(file_name="certificado.pdf", file_path="documents/certificado.pdf")
    asyncio.run(requirement_service.submit(rid, submission, "MIN25001", now=datetime(2024, 1, 20, 8, 30)))
    approved = asyncio.run(requirement_service.approve(rid, "reviewer-1", now=datetime(2024, 1, 20, 11, 0)))

    assert approved.current_document.expiration_date == date(2024, 7, 20)

    feed = asyncio.run(renewals.list_by_urgency(date(2024, 7, 10), within_days=30))
    item = next(i for i in feed if i.requirement_id == rid)
    assert item.tier is UrgencyTier.HIGH
    assert item.days_until == 10
    assert item.relevant_date == date(2024, 7, 20)

    # Un mes después ya está vencido y acepta la renovación
    expired = asyncio.run(renewals.list_expired(date(2024, 8, 1)))
    assert rid in {i.requirement_id for i in expired}
    renewed = asyncio.run(requirement_service.submit(rid, submission, "MIN25001", now=datetime(2024, 8, 1)))
    assert renewed.current_version == 2
