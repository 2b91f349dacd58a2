from typing import Any, Dict

from src.core.database import db_instance, to_record
from src.core.setup import NOTIFICATIONS


class NotificationRepository:
    """Notificaciones in-app que consume el frontend"""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_instance.get_db()

    def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        result = self.db.collection(NOTIFICATIONS).insert(doc, return_new=True)
        return to_record(result["new"])

    def delete(self, notification_id: str) -> None:
        self.db.collection(NOTIFICATIONS).delete(notification_id, ignore_missing=True)


notification_repository = NotificationRepository()
