from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile

from src.core.responses import StandardResponse, wrap_response
from src.core.security.auth import ROLE_ADMIN, ROLE_EDITOR, AuthContext, get_auth_context
from src.core.security.permissions import RequireRole
from src.features.renewal.models import Priority, RequirementStatus
from .models import (
    ApproveRequest, FileSubmission, RejectRequest, RequirementUpdate,
    RequirementView, StatusStatistics,
)
from .service import requirement_service

router = APIRouter(prefix="/employee-documents", tags=["Employee Requirements"])


@router.get("/employee/{employee_id}", response_model=StandardResponse[List[RequirementView]])
async def list_employee_requirements(
    employee_id: str = Path(..., description="Código de empleado"),
    status: Optional[RequirementStatus] = Query(None, description="Filtrar por estado efectivo (incluye vencido)"),
    priority: Optional[Priority] = Query(None, description="Filtrar por prioridad"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(get_auth_context),
):
    """
    Requerimientos del empleado con estado efectivo, urgencia,
    versión vigente del archivo y URL firmada para descargarlo.
    """
    data = await requirement_service.list_for_employee(
        employee_id, status, priority.value if priority else None, as_of
    )
    return wrap_response(data, message="Requerimientos obtenidos exitosamente")


@router.get("/requirements/statistics", response_model=StandardResponse[StatusStatistics])
async def requirement_statistics(
    employee_id: Optional[str] = Query(None, description="Limitar a un empleado"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(get_auth_context),
):
    data = await requirement_service.status_statistics(as_of, employee_id)
    return wrap_response(data, message="Estadísticas obtenidas exitosamente")


@router.get("/requirements/{requirement_id}", response_model=StandardResponse[RequirementView])
async def get_requirement(
    requirement_id: str = Path(..., description="ID del requerimiento"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(get_auth_context),
):
    data = await requirement_service.get_requirement(requirement_id, as_of)
    return wrap_response(data, message="Requerimiento obtenido exitosamente")


@router.patch("/requirements/{requirement_id}", response_model=StandardResponse[RequirementView])
async def update_requirement(
    payload: RequirementUpdate,
    requirement_id: str = Path(..., description="ID del requerimiento"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    """Edita prioridad, fecha límite, notas o renovación personalizada. Nunca cambia el estado."""
    data = await requirement_service.update_requirement(requirement_id, payload)
    return wrap_response(data, message="Requerimiento actualizado")


@router.delete("/requirements/{requirement_id}", response_model=StandardResponse[dict])
async def delete_requirement(
    requirement_id: str = Path(..., description="ID del requerimiento"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await requirement_service.remove(requirement_id)
    return wrap_response(data, message="Requerimiento eliminado con su historial")

# ========== FLUJO DE APROBACIÓN ==========

@router.post("/requirements/{requirement_id}/submit", response_model=StandardResponse[RequirementView])
async def submit_requirement(
    submission: FileSubmission,
    requirement_id: str = Path(..., description="ID del requerimiento"),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Registra una nueva versión con un archivo ya almacenado"""
    data = await requirement_service.submit(requirement_id, submission, uploaded_by=ctx.user_id)
    return wrap_response(data, message="Documento entregado, pendiente de revisión")


@router.post("/requirements/{requirement_id}/upload", response_model=StandardResponse[RequirementView])
async def upload_requirement_file(
    requirement_id: str = Path(..., description="ID del requerimiento"),
    file: UploadFile = File(..., description="Archivo del documento"),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Sube el archivo a almacenamiento y lo entrega en un solo paso"""
    content = await file.read()
    data = await requirement_service.upload(
        requirement_id, content, file.filename or "documento", file.content_type, uploaded_by=ctx.user_id
    )
    return wrap_response(data, message="Documento subido, pendiente de revisión")


@router.post("/requirements/{requirement_id}/approve", response_model=StandardResponse[RequirementView])
async def approve_requirement(
    payload: Optional[ApproveRequest] = None,
    requirement_id: str = Path(..., description="ID del requerimiento"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN, ROLE_EDITOR)),
):
    notes = payload.notes if payload else None
    data = await requirement_service.approve(requirement_id, approved_by=ctx.user_id, notes=notes)
    return wrap_response(data, message="Documento aprobado")


@router.post("/requirements/{requirement_id}/reject", response_model=StandardResponse[RequirementView])
async def reject_requirement(
    payload: RejectRequest,
    requirement_id: str = Path(..., description="ID del requerimiento"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN, ROLE_EDITOR)),
):
    data = await requirement_service.reject(requirement_id, rejected_by=ctx.user_id, reason=payload.reason)
    return wrap_response(data, message="Documento rechazado")
