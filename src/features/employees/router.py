from fastapi import APIRouter, Depends

from src.core.responses import StandardResponse, wrap_response
from src.core.security.auth import ROLE_ADMIN, AuthContext
from src.core.security.permissions import RequireRole
from .job import run_sync_job
from .models import SyncReport

router = APIRouter(prefix="/employee-documents/admin", tags=["Employees"])


@router.post("/sync-employees", response_model=StandardResponse[SyncReport])
async def sync_employees(ctx: AuthContext = Depends(RequireRole(ROLE_ADMIN))):
    """Fuerza la sincronización del directorio de empleados desde RRHH"""
    report = await run_sync_job()
    return wrap_response(report, message="Directorio de empleados sincronizado")
