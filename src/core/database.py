import logging
from typing import Any, Dict, Optional

from arango import ArangoClient
from src.core.config import settings

logger = logging.getLogger(__name__)

# Códigos de error de ArangoDB usados para detectar carreras
ERROR_ARANGO_CONFLICT = 1200
ERROR_UNIQUE_CONSTRAINT_VIOLATED = 1210


def to_record(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convierte un documento de Arango en registro de dominio (`_key` -> `id`)."""
    if doc is None:
        return None
    record = {k: v for k, v in doc.items() if k not in ("_key", "_id", "_rev")}
    record["id"] = doc.get("_key", doc.get("id"))
    return record


def is_unique_violation(exc: Exception) -> bool:
    return getattr(exc, "error_code", None) == ERROR_UNIQUE_CONSTRAINT_VIOLATED


def is_write_conflict(exc: Exception) -> bool:
    return getattr(exc, "error_code", None) == ERROR_ARANGO_CONFLICT


class Database:
    def __init__(self):
        self.client = ArangoClient(hosts=settings.ARANGO_HOST_URL)
        self._db = None

    def get_db(self):
        if self._db is not None:
            return self._db

        # Conectarse como root para verificar/crear la DB
        sys_db = self.client.db("_system", username="root", password=settings.ARANGO_ROOT_PASSWORD)

        if not sys_db.has_database(settings.ARANGO_DB_NAME):
            sys_db.create_database(settings.ARANGO_DB_NAME)
            logger.info("✅ Base de datos '%s' creada.", settings.ARANGO_DB_NAME)

        self._db = self.client.db(
            settings.ARANGO_DB_NAME,
            username="root",
            password=settings.ARANGO_ROOT_PASSWORD
        )
        return self._db


# Instancia global
db_instance = Database()


def get_db():
    """Dependencia para inyectar en los endpoints"""
    return db_instance.get_db()
