from typing import Any, Dict, List, Optional

from src.core.database import db_instance, to_record
from src.core.setup import EMPLOYEES


class EmployeeRepository:
    """Lectura del directorio de empleados sincronizado"""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_instance.get_db()

    def get_employee(self, employee_id: str) -> Optional[Dict[str, Any]]:
        return to_record(self.db.collection(EMPLOYEES).get(employee_id))

    def get_employees(self, employee_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not employee_ids:
            return {}
        aql = f"""
        FOR e IN {EMPLOYEES}
            FILTER e._key IN @ids
            RETURN MERGE(UNSET(e, '_id', '_rev', '_key'), {{ id: e._key }})
        """
        cursor = self.db.aql.execute(aql, bind_vars={"ids": list(set(employee_ids))})
        return {doc["id"]: doc for doc in cursor}


employee_repository = EmployeeRepository()
