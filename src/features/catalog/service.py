import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as SchemaError

from src.core.errors import DocumentTypeNotFound, TemplateNotFound, ValidationError, ensure_not_null
from src.features.renewal.calculator import validate_renewal
from .models import (
    DocumentType, DocumentTypeCreate, DocumentTypeUpdate,
    Template, TemplateCreate, TemplateItem, TemplateUpdate,
)
from .repository import CatalogRepository, catalog_repository

logger = logging.getLogger(__name__)

# Campos que una actualización puede omitir pero no dejar en null
DOCUMENT_TYPE_REQUIRED = ("name", "category", "is_mandatory", "has_expiration", "is_active")
TEMPLATE_REQUIRED = ("name",)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dedupe_items(items: List[TemplateItem]) -> List[TemplateItem]:
    """Un tipo de documento aparece una sola vez por plantilla (gana el primero)"""
    seen = set()
    unique = []
    for item in items:
        if item.document_type_id in seen:
            continue
        seen.add(item.document_type_id)
        unique.append(item)
    return unique


class CatalogService:
    """
    Catálogo de tipos de documento y plantillas.
    Valida la renovación antes de persistir y nunca borra físicamente un tipo.
    """

    def __init__(self, repository: Optional[CatalogRepository] = None):
        self.repository = repository or catalog_repository

    # ========== TIPOS DE DOCUMENTO ==========

    async def list_document_types(
        self,
        category: Optional[str] = None,
        is_active: Optional[bool] = True,
        search: Optional[str] = None,
    ) -> List[DocumentType]:
        docs = self.repository.list_document_types(category, is_active, search)
        return [DocumentType(**doc) for doc in docs]

    async def get_document_type(self, document_type_id: str) -> DocumentType:
        doc = self.repository.get_document_type(document_type_id)
        if not doc:
            raise DocumentTypeNotFound(document_type_id)
        return DocumentType(**doc)

    @staticmethod
    def _check_expiration(fields: Dict[str, Any]) -> Dict[str, Any]:
        if fields.get("has_expiration"):
            renewal = validate_renewal(fields.get("renewal_period"), fields.get("renewal_unit"))
            fields["renewal_period"] = renewal.period
            fields["renewal_unit"] = renewal.unit.value
        else:
            fields["renewal_period"] = None
            fields["renewal_unit"] = None
        return fields

    async def create_document_type(self, payload: DocumentTypeCreate) -> DocumentType:
        fields = self._check_expiration(payload.model_dump(mode="json"))
        now = _now_iso()
        fields.update({"is_active": True, "created_at": now, "updated_at": now})

        doc = self.repository.insert_document_type(fields)
        logger.info("📄 Tipo de documento creado: %s (%s)", doc["id"], doc["name"])
        return DocumentType(**doc)

    async def update_document_type(self, document_type_id: str, payload: DocumentTypeUpdate) -> DocumentType:
        current = self.repository.get_document_type(document_type_id)
        if not current:
            raise DocumentTypeNotFound(document_type_id)

        patch = payload.model_dump(mode="json", exclude_unset=True)
        ensure_not_null(patch, DOCUMENT_TYPE_REQUIRED)
        # La invariante se valida sobre el estado resultante, no solo sobre el parche
        merged = {**current, **patch}
        checked = self._check_expiration(merged)
        try:
            DocumentType(**checked)
        except SchemaError as e:
            fields = [str(err["loc"][-1]) for err in e.errors() if err.get("loc")]
            raise ValidationError("El tipo de documento resultante no es válido", details={"fields": fields})
        for key in ("renewal_period", "renewal_unit"):
            if checked[key] != current.get(key):
                patch[key] = checked[key]
        patch["updated_at"] = _now_iso()

        doc = self.repository.update_document_type(document_type_id, patch)
        if not doc:
            raise DocumentTypeNotFound(document_type_id)
        return DocumentType(**doc)

    async def deactivate_document_type(self, document_type_id: str) -> DocumentType:
        doc = self.repository.update_document_type(
            document_type_id, {"is_active": False, "updated_at": _now_iso()}
        )
        if not doc:
            raise DocumentTypeNotFound(document_type_id)
        logger.info("🗃️ Tipo de documento desactivado: %s", document_type_id)
        return DocumentType(**doc)

    # ========== PLANTILLAS ==========

    def _prepare_items(self, items: List[TemplateItem]) -> List[Dict[str, Any]]:
        items = _dedupe_items(items)

        known = self.repository.get_document_types([item.document_type_id for item in items])
        prepared = []
        for item in items:
            if item.document_type_id not in known:
                raise DocumentTypeNotFound(item.document_type_id)

            fields = item.model_dump(mode="json", exclude={"document_type"})
            if item.has_custom_renewal:
                renewal = validate_renewal(item.custom_renewal_period, item.custom_renewal_unit)
                fields.update(renewal.to_fields())
            else:
                fields["custom_renewal_period"] = None
                fields["custom_renewal_unit"] = None
            prepared.append(fields)
        return prepared

    async def list_templates(self, include_inactive: bool = False) -> List[Template]:
        return [Template(**doc) for doc in self.repository.list_templates(include_inactive)]

    async def get_template(self, template_id: str) -> Template:
        doc = self.repository.get_template(template_id)
        if not doc:
            raise TemplateNotFound(template_id)
        return Template(**doc)

    async def create_template(self, payload: TemplateCreate, created_by: Optional[str] = None) -> Template:
        if not payload.items:
            raise ValidationError("La plantilla debe incluir al menos un tipo de documento", code="TEMPLATE_EMPTY")

        fields = payload.model_dump(mode="json", exclude={"items"})
        now = _now_iso()
        fields.update({
            "items": self._prepare_items(payload.items),
            "is_active": True,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        })

        doc = self.repository.insert_template(fields)
        logger.info("🧩 Plantilla creada: %s con %s items", doc["id"], len(fields["items"]))
        return await self.get_template(doc["id"])

    async def update_template(self, template_id: str, payload: TemplateUpdate) -> Template:
        patch = payload.model_dump(mode="json", exclude_unset=True, exclude={"items"})
        ensure_not_null(patch, TEMPLATE_REQUIRED)
        if payload.items is not None:
            if not payload.items:
                raise ValidationError("La plantilla debe incluir al menos un tipo de documento", code="TEMPLATE_EMPTY")
            patch["items"] = self._prepare_items(payload.items)
        patch["updated_at"] = _now_iso()

        if not self.repository.update_template(template_id, patch):
            raise TemplateNotFound(template_id)
        return await self.get_template(template_id)

    async def delete_template(self, template_id: str) -> None:
        if not self.repository.update_template(template_id, {"is_active": False, "updated_at": _now_iso()}):
            raise TemplateNotFound(template_id)
        logger.info("🗑️ Plantilla desactivada: %s", template_id)


catalog_service = CatalogService()
