from fastapi import APIRouter, Depends

from src.core.responses import StandardResponse, wrap_response
from src.core.security.auth import ROLE_ADMIN, AuthContext
from src.core.security.permissions import RequireRole
from .models import AssignmentReport, AssignRequest, AssignTemplateRequest
from .service import assignment_service

router = APIRouter(prefix="/employee-documents", tags=["Assignment"])


@router.post("/assign", response_model=StandardResponse[AssignmentReport])
async def assign_documents(
    payload: AssignRequest,
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    """
    Asigna tipos de documento a un empleado. Los ya asignados se reportan
    en `skipped` con su motivo; el resto se crea igualmente.
    """
    report = await assignment_service.assign_individual(payload.employee_id, payload.items, assigned_by=ctx.user_id)
    return wrap_response(report, message=f"{len(report.assigned)} documentos asignados")


@router.post("/assign-template", response_model=StandardResponse[AssignmentReport])
async def assign_template(
    payload: AssignTemplateRequest,
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    report = await assignment_service.assign_from_template(
        payload.employee_id,
        payload.template_id,
        assigned_by=ctx.user_id,
        override_due_date=payload.due_date,
    )
    return wrap_response(report, message=f"Plantilla aplicada: {len(report.assigned)} documentos asignados")
