import logging

import httpx

from src.core.database import get_db
from src.core.errors import DependencyError
from .client import fetch_directory
from .logic import sync_to_arango
from .models import SyncReport

logger = logging.getLogger(__name__)


async def run_sync_job() -> SyncReport:
    """
    Orquesta la sincronización del directorio.
    Puede ser llamada por un cron, un endpoint o al inicio.
    """
    # 1. Obtener datos
    try:
        data = await fetch_directory()
    except httpx.HTTPError as e:
        logger.error("🚨 Falló el job de sincronización de empleados: %s", e)
        raise DependencyError(
            "El directorio de empleados no está disponible",
            code="HR_DIRECTORY_UNAVAILABLE",
            details={"reason": str(e)},
        )

    # 2. Guardar en Arango
    return await sync_to_arango(get_db(), data)
