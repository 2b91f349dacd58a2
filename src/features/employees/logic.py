import logging
from datetime import datetime, timezone

from arango.database import StandardDatabase

from src.core.setup import EMPLOYEES
from .models import DirectoryExport, SyncReport

logger = logging.getLogger(__name__)


async def sync_to_arango(db: StandardDatabase, data: DirectoryExport) -> SyncReport:
    logger.info("🔄 Sincronizando directorio de empleados (%s registros)...", len(data.employees))

    now_iso = datetime.now(timezone.utc).isoformat()
    rows = [
        {
            "key": emp.employee_id,
            "first_name": emp.first_name,
            "last_name": emp.last_name,
            # Un correo vacío se guarda como null para que el feed lo detecte
            "email": (emp.email or "").strip() or None,
            "department": emp.department,
            "position": emp.position,
            "is_active": emp.status.lower() == "active",
        }
        for emp in data.employees
        if emp.employee_id
    ]

    aql = f"""
    FOR e IN @rows
        UPSERT {{ _key: e.key }}
        INSERT MERGE(UNSET(e, 'key'), {{ _key: e.key, created_at: @now, updated_at: @now }})
        UPDATE MERGE(UNSET(e, 'key'), {{ updated_at: @now }})
        IN {EMPLOYEES}
    """
    if rows:
        db.aql.execute(aql, bind_vars={"rows": rows, "now": now_iso})

    without_email = [row["key"] for row in rows if not row["email"]]
    if without_email:
        logger.warning("⚠️ %s empleados sin correo: no recibirán avisos de renovación", len(without_email))

    logger.info("✅ Sincronización de empleados completada.")
    return SyncReport(received=len(data.employees), upserted=len(rows), without_email=without_email)
