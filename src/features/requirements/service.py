import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from src.core.errors import (
    DocumentServiceError, EmployeeDocumentNotFound, RequirementNotFound, ValidationError, ensure_not_null,
)
from src.core.storage import StorageService, storage_instance
from src.features.catalog.models import DocumentType
from src.features.renewal.calculator import compute_next_date, resolve_renewal, validate_renewal
from src.features.renewal.models import DocumentStatus, PRIORITY_RANK, RequirementStatus
from .models import (
    EmployeeDocument, FileSubmission, RequiredDocument, RequirementUpdate,
    RequirementView, StatusStatistics, UrgencyInfo,
)
from .repository import RequirementRepository, requirement_repository
from .state_machine import (
    APPROVE, REJECT, SUBMIT, check_transition, effective_status, relevant_date, urgency_of,
)

logger = logging.getLogger(__name__)

# Campos del requerimiento que un PATCH no puede dejar en null
REQUIRED_FIELDS = ("priority", "has_custom_renewal", "notes")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def append_note(notes: Optional[str], line: str) -> str:
    """La bitácora solo crece: cada evento es una línea nueva"""
    return f"{notes}\n{line}" if notes else line


def to_view(record: Dict[str, Any], today: date, file_url: Optional[str] = None) -> RequirementView:
    """Arma la vista de lectura a partir del registro unido (requerimiento + tipo + versión)"""
    requirement = RequiredDocument(**record)
    document_type = DocumentType(**record["document_type"]) if record.get("document_type") else None
    current = EmployeeDocument(**record["current_document"]) if record.get("current_document") else None

    urgency = urgency_of(requirement, document_type, current, today)
    return RequirementView(
        **requirement.model_dump(),
        effective_status=effective_status(requirement, document_type, current, today),
        relevant_date=relevant_date(requirement, document_type, current),
        urgency=UrgencyInfo(**urgency.to_dict()) if urgency else None,
        document_type=document_type,
        current_document=current,
        file_url=file_url,
    )


class RequirementService:
    """
    Ciclo de vida del requerimiento: entrega, revisión, edición y baja.
    Cada transición es un compare-and-set; los efectos externos (MinIO)
    ocurren después del commit.
    """

    def __init__(
        self,
        repository: Optional[RequirementRepository] = None,
        storage: Optional[StorageService] = None,
    ):
        self.repository = repository or requirement_repository
        self.storage = storage or storage_instance

    def _load(self, requirement_id: str) -> Dict[str, Any]:
        record = self.repository.get_requirement(requirement_id)
        if not record:
            raise RequirementNotFound(requirement_id)
        return record

    def _signed_url(self, view: RequirementView) -> Optional[str]:
        if view.current_document is None:
            return None
        return self.storage.get_presigned_url(view.current_document.file_path)

    # ========== TRANSICIONES ==========

    async def submit(
        self,
        requirement_id: str,
        submission: FileSubmission,
        uploaded_by: Optional[str],
        now: Optional[datetime] = None,
    ) -> RequirementView:
        now = now or _utcnow()
        view = to_view(self._load(requirement_id), now.date())
        check_transition(requirement_id, SUBMIT, view.status, view.effective_status)

        version = view.current_version + 1
        document = {
            "requirement_id": requirement_id,
            "employee_id": view.employee_id,
            "document_type_id": view.document_type_id,
            **submission.model_dump(mode="json"),
            "version": version,
            "upload_date": now.isoformat(),
            "expiration_date": None,
            "status": DocumentStatus.PENDIENTE.value,
            "approval_notes": None,
            "uploaded_by": uploaded_by,
            "approved_by": None,
            "approved_at": None,
        }
        patch = {
            "status": RequirementStatus.SUBIDO.value,
            "current_version": version,
            "updated_at": now.isoformat(),
        }

        self.repository.submit_version(requirement_id, view.status.value, view.current_version, document, patch)
        logger.info("📤 Requerimiento %s: versión %s entregada por %s", requirement_id, version, uploaded_by)
        return to_view(self._load(requirement_id), now.date())

    async def upload(
        self,
        requirement_id: str,
        file_data: bytes,
        file_name: str,
        content_type: Optional[str],
        uploaded_by: Optional[str],
        now: Optional[datetime] = None,
    ) -> RequirementView:
        """Sube el archivo a MinIO y lo entrega como nueva versión"""
        now = now or _utcnow()
        view = to_view(self._load(requirement_id), now.date())
        # Se valida antes de subir para no dejar archivos huérfanos
        check_transition(requirement_id, SUBMIT, view.status, view.effective_status)

        object_name = f"employees/{view.employee_id}/{requirement_id}/{uuid.uuid4().hex}_{file_name}"
        file_path = self.storage.upload_file(file_data, object_name, content_type or "application/octet-stream")

        submission = FileSubmission(
            file_name=file_name,
            file_path=file_path,
            file_size=len(file_data),
            mime_type=content_type,
        )
        try:
            return await self.submit(requirement_id, submission, uploaded_by, now=now)
        except DocumentServiceError:
            self.storage.remove_files([file_path])
            raise

    async def approve(
        self,
        requirement_id: str,
        approved_by: Optional[str],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RequirementView:
        now = now or _utcnow()
        view = to_view(self._load(requirement_id), now.date())
        check_transition(requirement_id, APPROVE, view.status, view.effective_status)

        current = view.current_document
        if current is None:
            raise EmployeeDocumentNotFound(requirement_id)

        renewal = resolve_renewal(view, view.document_type)
        expiration = None
        if renewal is not None:
            expiration = compute_next_date(current.upload_date.date(), renewal.period, renewal.unit)

        patch = {"status": RequirementStatus.APROBADO.value, "updated_at": now.isoformat()}
        if expiration is not None:
            # La siguiente renovación queda programada
            patch["due_date"] = expiration.isoformat()
        if notes:
            patch["notes"] = append_note(view.notes, f"[{now.date().isoformat()}] Aprobado: {notes}")

        document_patch = {
            "status": DocumentStatus.APROBADO.value,
            "approved_by": approved_by,
            "approved_at": now.isoformat(),
            "expiration_date": expiration.isoformat() if expiration else None,
            "approval_notes": notes,
        }

        self.repository.review_current(
            requirement_id, view.status.value, view.current_version, current.id, patch, document_patch
        )
        logger.info("✅ Requerimiento %s aprobado por %s (vence: %s)", requirement_id, approved_by, expiration)
        return to_view(self._load(requirement_id), now.date())

    async def reject(
        self,
        requirement_id: str,
        rejected_by: Optional[str],
        reason: str,
        now: Optional[datetime] = None,
    ) -> RequirementView:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("El motivo del rechazo es obligatorio", code="REJECTION_REASON_REQUIRED")

        now = now or _utcnow()
        view = to_view(self._load(requirement_id), now.date())
        check_transition(requirement_id, REJECT, view.status, view.effective_status)

        current = view.current_document
        if current is None:
            raise EmployeeDocumentNotFound(requirement_id)

        patch = {
            "status": RequirementStatus.RECHAZADO.value,
            "notes": append_note(view.notes, f"[{now.date().isoformat()}] Rechazado: {reason}"),
            "updated_at": now.isoformat(),
        }
        document_patch = {
            "status": DocumentStatus.RECHAZADO.value,
            "approved_by": rejected_by,
            "approved_at": now.isoformat(),
            "approval_notes": reason,
        }

        self.repository.review_current(
            requirement_id, view.status.value, view.current_version, current.id, patch, document_patch
        )
        logger.info("❌ Requerimiento %s rechazado por %s", requirement_id, rejected_by)
        return to_view(self._load(requirement_id), now.date())

    async def remove(self, requirement_id: str) -> Dict[str, Any]:
        paths = self.repository.delete_with_history(requirement_id)
        if paths is None:
            raise RequirementNotFound(requirement_id)

        # Limpieza de archivos fuera de la transacción; un fallo no revierte la baja
        failed: List[str] = []
        if paths:
            try:
                failed = self.storage.remove_files(paths)
            except Exception as e:
                logger.warning("⚠️ No se pudieron limpiar archivos de %s: %s", requirement_id, e)
                failed = paths

        logger.info("🗑️ Requerimiento %s eliminado (%s versiones)", requirement_id, len(paths))
        return {"id": requirement_id, "removed_files": len(paths) - len(failed), "orphaned_files": failed}

    # ========== EDICIÓN ADMINISTRATIVA ==========

    async def update_requirement(
        self,
        requirement_id: str,
        payload: RequirementUpdate,
        today: Optional[date] = None,
    ) -> RequirementView:
        today = today or _utcnow().date()
        current = self._load(requirement_id)

        patch = payload.model_dump(mode="json", exclude_unset=True)
        ensure_not_null(patch, REQUIRED_FIELDS)
        if "has_custom_renewal" in patch:
            if patch["has_custom_renewal"]:
                renewal = validate_renewal(payload.custom_renewal_period, payload.custom_renewal_unit)
                patch.update(renewal.to_fields())
            else:
                patch["custom_renewal_period"] = None
                patch["custom_renewal_unit"] = None
        else:
            # Periodo o unidad sin el flag no tienen efecto
            patch.pop("custom_renewal_period", None)
            patch.pop("custom_renewal_unit", None)

        if "notes" in patch:
            if patch["notes"]:
                patch["notes"] = append_note(current.get("notes"), patch["notes"])
            else:
                patch.pop("notes")

        patch["updated_at"] = _utcnow().isoformat()
        if not self.repository.update_fields(requirement_id, patch):
            raise RequirementNotFound(requirement_id)
        return to_view(self._load(requirement_id), today)

    # ========== CONSULTAS ==========

    async def list_for_employee(
        self,
        employee_id: str,
        status: Optional[RequirementStatus] = None,
        priority: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[RequirementView]:
        today = today or _utcnow().date()
        views = [to_view(record, today) for record in self.repository.list_joined(employee_id, priority)]

        if status is not None:
            views = [v for v in views if v.effective_status == status]

        views.sort(key=lambda v: (PRIORITY_RANK[v.priority], v.due_date or date.max))
        for view in views:
            view.file_url = self._signed_url(view)
        return views

    async def get_requirement(self, requirement_id: str, today: Optional[date] = None) -> RequirementView:
        view = to_view(self._load(requirement_id), today or _utcnow().date())
        view.file_url = self._signed_url(view)
        return view

    async def status_statistics(self, today: Optional[date] = None, employee_id: Optional[str] = None) -> StatusStatistics:
        today = today or _utcnow().date()
        counts = {status.value: 0 for status in RequirementStatus}
        records = self.repository.list_joined(employee_id)
        for record in records:
            counts[to_view(record, today).effective_status.value] += 1
        return StatusStatistics(total=len(records), by_status=counts)


requirement_service = RequirementService()
