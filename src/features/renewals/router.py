from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from src.core.config import settings
from src.core.responses import StandardResponse, wrap_response
from src.core.security.auth import ROLE_ADMIN, AuthContext, get_auth_context
from src.core.security.permissions import RequireRole
from src.features.renewal.models import UrgencyTier
from .models import (
    BulkNotifyReport, EmployeeRenewalSummary, NotificationResult,
    RenewalEligibility, UrgencyFeedItem,
)
from .notifier import renewal_notifier
from .service import renewal_service

router = APIRouter(prefix="/employee-documents/renewals", tags=["Renewals"])


@router.get("/expiring", response_model=StandardResponse[List[UrgencyFeedItem]])
async def list_expiring(
    days: int = Query(settings.FEED_DEFAULT_WINDOW_DAYS, ge=0, description="Ventana en días desde la fecha de referencia"),
    tier: Optional[UrgencyTier] = Query(None, description="Filtrar un solo nivel de urgencia"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(get_auth_context),
):
    """
    Feed de urgencia: lo vencido primero, luego urgente, alto y medio.
    Los documentos aprobados lejos de su vencimiento no aparecen.
    """
    data = await renewal_service.list_by_urgency(as_of, within_days=days, tier=tier)
    return wrap_response(data, message="Documentos por vencer obtenidos exitosamente")


@router.get("/expired", response_model=StandardResponse[List[UrgencyFeedItem]])
async def list_expired(
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(get_auth_context),
):
    data = await renewal_service.list_expired(as_of)
    return wrap_response(data, message="Documentos vencidos obtenidos exitosamente")


@router.get("/summary/{employee_id}", response_model=StandardResponse[EmployeeRenewalSummary])
async def employee_summary(
    employee_id: str = Path(..., description="Código de empleado"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(get_auth_context),
):
    data = await renewal_service.employee_summary(employee_id, as_of)
    return wrap_response(data, message="Resumen de renovaciones obtenido exitosamente")


@router.post("/notify-bulk", response_model=StandardResponse[BulkNotifyReport])
async def notify_bulk(
    days: int = Query(settings.FEED_DEFAULT_WINDOW_DAYS, ge=0, description="Ventana en días"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await renewal_notifier.notify_bulk(as_of, within_days=days)
    return wrap_response(data, message=f"{len(data.notified)} avisos de renovación enviados")


@router.get("/{requirement_id}/eligibility", response_model=StandardResponse[RenewalEligibility])
async def renewal_eligibility(
    requirement_id: str = Path(..., description="ID del requerimiento"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await renewal_service.eligible_for_renewal_email(requirement_id, as_of)
    return wrap_response(data, message="El requerimiento es elegible para aviso de renovación")


@router.post("/{requirement_id}/notify", response_model=StandardResponse[NotificationResult])
async def notify_renewal(
    requirement_id: str = Path(..., description="ID del requerimiento"),
    as_of: Optional[date] = Query(None, description="Fecha de referencia (por defecto hoy)"),
    ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN)),
):
    data = await renewal_notifier.notify(requirement_id, as_of)
    return wrap_response(data, message="Aviso de renovación enviado")
