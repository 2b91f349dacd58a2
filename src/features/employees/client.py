import logging

import httpx

from src.core.config import settings
from .models import DirectoryExport

logger = logging.getLogger(__name__)


async def fetch_directory() -> DirectoryExport:
    """Descarga el directorio de empleados del servicio de RRHH"""
    async with httpx.AsyncClient() as client:
        logger.info("Conectando a %s...", settings.HR_DIRECTORY_URL)
        try:
            response = await client.get(settings.HR_DIRECTORY_URL, timeout=30.0)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("❌ Error consultando directorio de RRHH: %s", e)
            raise

        # Validación automática con Pydantic
        return DirectoryExport(**response.json())
