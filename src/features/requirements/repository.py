import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from arango.exceptions import ArangoServerError

from src.core.database import db_instance, is_unique_violation, is_write_conflict, to_record
from src.core.errors import ConcurrentModification, DuplicateRequirement
from src.core.setup import DOCUMENT_TYPES, EMPLOYEE_DOCUMENTS, REQUIREMENTS

logger = logging.getLogger(__name__)

# Requerimiento + tipo de documento + versión vigente en una sola lectura
_JOINED_RETURN = f"""
    LET dt = DOCUMENT('{DOCUMENT_TYPES}', r.document_type_id)
    LET cur = r.current_document_id ? DOCUMENT('{EMPLOYEE_DOCUMENTS}', r.current_document_id) : null
    RETURN MERGE(UNSET(r, '_id', '_rev', '_key'), {{
        id: r._key,
        document_type: dt == null ? null : MERGE(UNSET(dt, '_id', '_rev', '_key'), {{ id: dt._key }}),
        current_document: cur == null ? null : MERGE(UNSET(cur, '_id', '_rev', '_key'), {{ id: cur._key }})
    }})
"""

# Compare-and-set: solo actualiza si nadie cambió el estado ni la versión
_CAS_UPDATE = f"""
FOR r IN {REQUIREMENTS}
    FILTER r._key == @key
       AND r.status == @expected_status
       AND r.current_version == @expected_version
    UPDATE r WITH @patch IN {REQUIREMENTS}
    RETURN NEW
"""


class RequirementRepository:
    """
    Persistencia de requerimientos y versiones de archivo.
    Las transiciones se ejecutan como stream transactions de ArangoDB.
    """

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_instance.get_db()

    # ========== LECTURA ==========

    def get_requirement(self, requirement_id: str) -> Optional[Dict[str, Any]]:
        result = list(self.db.aql.execute(
            f"FOR r IN {REQUIREMENTS} FILTER r._key == @key {_JOINED_RETURN}",
            bind_vars={"key": requirement_id},
        ))
        return result[0] if result else None

    def assigned_type_ids(self, employee_id: str) -> Set[str]:
        aql = f"""
        FOR r IN {REQUIREMENTS}
            FILTER r.employee_id == @employee_id
            RETURN r.document_type_id
        """
        return set(self.db.aql.execute(aql, bind_vars={"employee_id": employee_id}))

    def list_joined(
        self,
        employee_id: Optional[str] = None,
        priority: Optional[str] = None,
        only_with_clock: bool = False,
    ) -> List[Dict[str, Any]]:
        filters = []
        bind_vars: Dict[str, Any] = {}

        if employee_id:
            filters.append("r.employee_id == @employee_id")
            bind_vars["employee_id"] = employee_id

        if priority:
            filters.append("r.priority == @priority")
            bind_vars["priority"] = priority

        if only_with_clock:
            # Sin fecha límite ni versión vigente no puede haber reloj
            filters.append("(r.due_date != null OR r.current_document_id != null)")

        filter_clause = "FILTER " + " AND ".join(filters) if filters else ""
        aql = f"""
        FOR r IN {REQUIREMENTS}
            {filter_clause}
            SORT r.due_date ASC
            {_JOINED_RETURN}
        """
        return list(self.db.aql.execute(aql, bind_vars=bind_vars))

    # ========== ESCRITURA SIMPLE ==========

    def insert_requirement(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """El índice único (employee_id, document_type_id) es la verificación definitiva"""
        try:
            result = self.db.collection(REQUIREMENTS).insert(doc, return_new=True)
        except ArangoServerError as e:
            if is_unique_violation(e):
                raise DuplicateRequirement(doc["employee_id"], doc["document_type_id"])
            raise
        return to_record(result["new"])

    def update_fields(self, requirement_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        aql = f"""
        FOR r IN {REQUIREMENTS}
            FILTER r._key == @key
            UPDATE r WITH @patch IN {REQUIREMENTS}
            OPTIONS {{ keepNull: true }}
            RETURN NEW
        """
        result = list(self.db.aql.execute(aql, bind_vars={"key": requirement_id, "patch": patch}))
        return to_record(result[0]) if result else None

    # ========== TRANSICIONES ==========

    def _run_in_transaction(self, requirement_id: str, work: Callable[[Any], Optional[Any]]) -> Any:
        txn = self.db.begin_transaction(write=[REQUIREMENTS, EMPLOYEE_DOCUMENTS])
        try:
            result = work(txn)
        except Exception as e:
            txn.abort_transaction()
            if isinstance(e, ArangoServerError) and (is_write_conflict(e) or is_unique_violation(e)):
                logger.warning("⚠️ Conflicto de escritura en requerimiento %s: %s", requirement_id, e)
                raise ConcurrentModification(requirement_id) from e
            raise

        if result is None:
            txn.abort_transaction()
            logger.warning("⚠️ CAS fallido en requerimiento %s", requirement_id)
            raise ConcurrentModification(requirement_id)

        txn.commit_transaction()
        return result

    @staticmethod
    def _cas(txn, requirement_id: str, expected_status: str, expected_version: int, patch: Dict[str, Any]):
        cursor = txn.aql.execute(_CAS_UPDATE, bind_vars={
            "key": requirement_id,
            "expected_status": expected_status,
            "expected_version": expected_version,
            "patch": patch,
        })
        updated = list(cursor)
        return updated[0] if updated else None

    def submit_version(
        self,
        requirement_id: str,
        expected_status: str,
        expected_version: int,
        document: Dict[str, Any],
        patch: Dict[str, Any],
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Inserta la nueva versión y apunta el requerimiento a ella (atómico)"""

        def work(txn):
            inserted = txn.collection(EMPLOYEE_DOCUMENTS).insert(document, return_new=True)
            new_doc = inserted["new"]
            requirement = self._cas(
                txn, requirement_id, expected_status, expected_version,
                {**patch, "current_document_id": new_doc["_key"]},
            )
            if requirement is None:
                return None
            return to_record(requirement), to_record(new_doc)

        return self._run_in_transaction(requirement_id, work)

    def review_current(
        self,
        requirement_id: str,
        expected_status: str,
        expected_version: int,
        document_id: str,
        patch: Dict[str, Any],
        document_patch: Dict[str, Any],
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Aprobación o rechazo de la versión vigente (atómico)"""

        def work(txn):
            requirement = self._cas(txn, requirement_id, expected_status, expected_version, patch)
            if requirement is None:
                return None
            updated = txn.collection(EMPLOYEE_DOCUMENTS).update(
                {"_key": document_id, **document_patch}, return_new=True
            )
            return to_record(requirement), to_record(updated["new"])

        return self._run_in_transaction(requirement_id, work)

    def delete_with_history(self, requirement_id: str) -> Optional[List[str]]:
        """
        Borra el requerimiento y todas sus versiones.
        Retorna las rutas de archivo para limpiarlas después del commit,
        o None si el requerimiento no existía.
        """
        txn = self.db.begin_transaction(write=[REQUIREMENTS, EMPLOYEE_DOCUMENTS])
        try:
            removed = list(txn.aql.execute(
                f"FOR r IN {REQUIREMENTS} FILTER r._key == @key REMOVE r IN {REQUIREMENTS} RETURN OLD._key",
                bind_vars={"key": requirement_id},
            ))
            paths = list(txn.aql.execute(
                f"""
                FOR d IN {EMPLOYEE_DOCUMENTS}
                    FILTER d.requirement_id == @key
                    REMOVE d IN {EMPLOYEE_DOCUMENTS}
                    RETURN OLD.file_path
                """,
                bind_vars={"key": requirement_id},
            ))
        except Exception as e:
            txn.abort_transaction()
            if isinstance(e, ArangoServerError) and is_write_conflict(e):
                raise ConcurrentModification(requirement_id) from e
            raise

        if not removed:
            txn.abort_transaction()
            return None

        txn.commit_transaction()
        return [p for p in paths if p]


requirement_repository = RequirementRepository()
