from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from src.core.responses import StandardResponse, wrap_response
from src.core.security.auth import ROLE_ADMIN, AuthContext, get_auth_context
from src.core.security.permissions import RequireRole
from .models import (
    DocumentType, DocumentTypeCreate, DocumentTypeUpdate,
    Template, TemplateCreate, TemplateUpdate,
)
from .service import catalog_service

router = APIRouter(prefix="/employee-documents", tags=["Catalog"])

# ========== TIPOS DE DOCUMENTO ==========

@router.get("/document-types", response_model=StandardResponse[List[DocumentType]])
async def list_document_types(
    category: Optional[str] = Query(None, description="Filtrar por categoría (Identidad, Salud, ...)"),
    active: Optional[bool] = Query(True, description="Solo activos por defecto; vacío para todos"),
    search: Optional[str] = Query(None, description="Búsqueda por nombre (ignora mayúsculas y acentos)"),
    ctx: AuthContext = Depends(get_auth_context),
):
    data = await catalog_service.list_document_types(category, active, search)
    return wrap_response(data, message="Tipos de documento obtenidos exitosamente")


@router.post("/document-types", response_model=StandardResponse[DocumentType], status_code=201)
async def create_document_type(
    payload: DocumentTypeCreate,
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await catalog_service.create_document_type(payload)
    return wrap_response(data, message="Tipo de documento creado")


@router.put("/document-types/{document_type_id}", response_model=StandardResponse[DocumentType])
async def update_document_type(
    payload: DocumentTypeUpdate,
    document_type_id: str = Path(..., description="ID del tipo de documento"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await catalog_service.update_document_type(document_type_id, payload)
    return wrap_response(data, message="Tipo de documento actualizado")


@router.delete("/document-types/{document_type_id}", response_model=StandardResponse[DocumentType])
async def deactivate_document_type(
    document_type_id: str = Path(..., description="ID del tipo de documento"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    """
    Los tipos nunca se eliminan físicamente: los requerimientos existentes
    siguen apuntando a ellos. Se marcan como inactivos.
    """
    data = await catalog_service.deactivate_document_type(document_type_id)
    return wrap_response(data, message="Tipo de documento desactivado")

# ========== PLANTILLAS ==========

@router.get("/templates", response_model=StandardResponse[List[Template]])
async def list_templates(
    include_inactive: bool = Query(False, description="Incluir plantillas eliminadas"),
    ctx: AuthContext = Depends(get_auth_context),
):
    data = await catalog_service.list_templates(include_inactive)
    return wrap_response(data, message="Plantillas obtenidas exitosamente")


@router.post("/templates", response_model=StandardResponse[Template], status_code=201)
async def create_template(
    payload: TemplateCreate,
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await catalog_service.create_template(payload, created_by=ctx.user_id)
    return wrap_response(data, message="Plantilla creada")


@router.put("/templates/{template_id}", response_model=StandardResponse[Template])
async def update_template(
    payload: TemplateUpdate,
    template_id: str = Path(..., description="ID de la plantilla"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await catalog_service.update_template(template_id, payload)
    return wrap_response(data, message="Plantilla actualizada")


@router.delete("/templates/{template_id}", response_model=StandardResponse[dict])
async def delete_template(
    template_id: str = Path(..., description="ID de la plantilla"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    await catalog_service.delete_template(template_id)
    return wrap_response({"id": template_id}, message="Plantilla eliminada")
