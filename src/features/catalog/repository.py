import unicodedata
from typing import Any, Dict, List, Optional

from arango.exceptions import ArangoServerError

from src.core.database import db_instance, is_unique_violation, to_record
from src.core.errors import ConflictError
from src.core.setup import DOCUMENT_TYPES, TEMPLATES

# Listas de caracteres acentuados para normalización en AQL SUBSTITUTE
_ACCENT_FROM = ['á','é','í','ó','ú','à','è','ì','ò','ù','â','ê','î','ô','û','ã','õ','ä','ë','ï','ö','ü','ñ','ç']
_ACCENT_TO   = ['a','e','i','o','u','a','e','i','o','u','a','e','i','o','u','a','o','a','e','i','o','u','n','c']

# Proyección estándar: `_key` -> `id`, sin metadatos internos
_TYPE_PROJECTION = "MERGE(UNSET(dt, '_id', '_rev', '_key'), { id: dt._key })"


class CatalogRepository:
    """
    Repository del catálogo (tipos de documento y plantillas) en ArangoDB.
    Separa la lógica de acceso a datos del servicio.
    """

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_instance.get_db()

    @staticmethod
    def _search_vars(search: str) -> Dict:
        """
        Normaliza el término de búsqueda (minúsculas + sin acentos) y retorna
        los bind_vars necesarios para la búsqueda en AQL con SUBSTITUTE.
        """
        nfd = unicodedata.normalize('NFD', search.lower())
        normalized = ''.join(c for c in nfd if unicodedata.category(c) != 'Mn')
        return {
            "search": normalized,
            "accent_from": _ACCENT_FROM,
            "accent_to": _ACCENT_TO,
        }

    # ========== TIPOS DE DOCUMENTO ==========

    def list_document_types(
        self,
        category: Optional[str] = None,
        is_active: Optional[bool] = True,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        filters = []
        bind_vars: Dict[str, Any] = {}

        if is_active is not None:
            filters.append("dt.is_active == @is_active")
            bind_vars["is_active"] = is_active

        if category:
            filters.append("dt.category == @category")
            bind_vars["category"] = category

        if search:
            filters.append("SUBSTITUTE(LOWER(dt.name), @accent_from, @accent_to) LIKE CONCAT('%', @search, '%')")
            bind_vars.update(self._search_vars(search))

        filter_clause = "FILTER " + " AND ".join(filters) if filters else ""

        aql = f"""
        FOR dt IN {DOCUMENT_TYPES}
            {filter_clause}
            SORT dt.category ASC, dt.name ASC
            RETURN {_TYPE_PROJECTION}
        """
        return list(self.db.aql.execute(aql, bind_vars=bind_vars))

    def get_document_type(self, document_type_id: str) -> Optional[Dict[str, Any]]:
        return self.get_document_types([document_type_id]).get(document_type_id)

    def get_document_types(self, document_type_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not document_type_ids:
            return {}

        aql = f"""
        FOR dt IN {DOCUMENT_TYPES}
            FILTER dt._key IN @ids
            RETURN {_TYPE_PROJECTION}
        """
        cursor = self.db.aql.execute(aql, bind_vars={"ids": list(set(document_type_ids))})
        return {doc["id"]: doc for doc in cursor}

    def insert_document_type(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.db.collection(DOCUMENT_TYPES).insert(doc, return_new=True)
        except ArangoServerError as e:
            if is_unique_violation(e):
                raise ConflictError(
                    f"Ya existe un tipo de documento llamado '{doc.get('name')}'",
                    code="DOCUMENT_TYPE_NAME_TAKEN",
                    details={"name": doc.get("name")},
                )
            raise
        return to_record(result["new"])

    def update_document_type(self, document_type_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        aql = f"""
        FOR dt IN {DOCUMENT_TYPES}
            FILTER dt._key == @key
            UPDATE dt WITH @patch IN {DOCUMENT_TYPES}
            RETURN NEW
        """
        try:
            result = list(self.db.aql.execute(aql, bind_vars={"key": document_type_id, "patch": patch}))
        except ArangoServerError as e:
            if is_unique_violation(e):
                raise ConflictError(
                    f"Ya existe un tipo de documento llamado '{patch.get('name')}'",
                    code="DOCUMENT_TYPE_NAME_TAKEN",
                    details={"name": patch.get("name")},
                )
            raise
        return to_record(result[0]) if result else None

    # ========== PLANTILLAS ==========

    @staticmethod
    def _template_query(filter_clause: str) -> str:
        # Cada item se enriquece con su tipo de documento (o null si ya no existe)
        return f"""
        FOR t IN {TEMPLATES}
            {filter_clause}
            SORT t.name ASC
            RETURN MERGE(UNSET(t, '_id', '_rev', '_key'), {{
                id: t._key,
                items: (
                    FOR item IN (t.items || [])
                        LET dt = DOCUMENT('{DOCUMENT_TYPES}', item.document_type_id)
                        RETURN MERGE(item, {{
                            document_type: dt == null ? null : {_TYPE_PROJECTION}
                        }})
                )
            }})
        """

    def list_templates(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        filter_clause = "" if include_inactive else "FILTER t.is_active == true"
        return list(self.db.aql.execute(self._template_query(filter_clause), bind_vars={}))

    def get_template(self, template_id: str) -> Optional[Dict[str, Any]]:
        cursor = self.db.aql.execute(
            self._template_query("FILTER t._key == @key"),
            bind_vars={"key": template_id},
        )
        result = list(cursor)
        return result[0] if result else None

    def insert_template(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        result = self.db.collection(TEMPLATES).insert(doc, return_new=True)
        return to_record(result["new"])

    def update_template(self, template_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        # mergeObjects: false para que la lista de items se reemplace completa
        aql = f"""
        FOR t IN {TEMPLATES}
            FILTER t._key == @key
            UPDATE t WITH @patch IN {TEMPLATES}
            OPTIONS {{ mergeObjects: false }}
            RETURN NEW
        """
        result = list(self.db.aql.execute(aql, bind_vars={"key": template_id, "patch": patch}))
        return to_record(result[0]) if result else None


catalog_repository = CatalogRepository()
