# src/core/setup.py
import logging

from arango.database import StandardDatabase

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = "document_types"
TEMPLATES = "document_templates"
REQUIREMENTS = "required_documents"
EMPLOYEE_DOCUMENTS = "employee_documents"
EMPLOYEES = "employees"
NOTIFICATIONS = "notifications"


def init_arango_schema(db: StandardDatabase):
    """
    Crea las colecciones e índices necesarios si no existen.
    Los índices únicos son los que garantizan las invariantes bajo concurrencia.
    """
    logger.info("🛠️ Verificando esquema de ArangoDB...")

    collections = [
        DOCUMENT_TYPES,       # Catálogo de tipos de documento
        TEMPLATES,            # Plantillas por puesto (items embebidos)
        REQUIREMENTS,         # Requerimientos por empleado
        EMPLOYEE_DOCUMENTS,   # Versiones de archivos entregados
        EMPLOYEES,            # Directorio sincronizado desde RRHH
        NOTIFICATIONS,        # Notificaciones in-app
    ]

    for col in collections:
        if not db.has_collection(col):
            db.create_collection(col)
            logger.info("   ✅ Colección creada: %s", col)

    # --- Índices ---
    # Nombre único en el catálogo
    db.collection(DOCUMENT_TYPES).add_persistent_index(fields=["name"], unique=True)
    db.collection(DOCUMENT_TYPES).add_persistent_index(fields=["category", "is_active"], unique=False)

    # Un solo requerimiento activo por (empleado, tipo)
    requirements = db.collection(REQUIREMENTS)
    requirements.add_persistent_index(fields=["employee_id", "document_type_id"], unique=True)
    requirements.add_persistent_index(fields=["status"], unique=False)

    # Versión monotónica por requerimiento
    db.collection(EMPLOYEE_DOCUMENTS).add_persistent_index(fields=["requirement_id", "version"], unique=True)

    db.collection(EMPLOYEES).add_persistent_index(fields=["email"], unique=False, sparse=True)
    db.collection(NOTIFICATIONS).add_persistent_index(fields=["user_id", "read"], unique=False)

    logger.info("✨ Esquema de base de datos verificado.")




# Catálogo base: (nombre, categoría, descripción, obligatorio, periodo, unidad)
DEFAULT_DOCUMENT_TYPES = [
    ("Curriculum Vitae", "Personal", "CV actualizado del empleado", True, 12, "months"),
    ("DPI (Documento Personal de Identificación)", "Identificación", "Copia de DPI vigente", True, None, None),
    ("Fotografía Reciente", "Personal", "Fotografía tamaño cédula", True, 24, "months"),
    ("Partida de Nacimiento", "Identificación", "Partida de nacimiento certificada", True, None, None),
    ("Certificado de Antecedentes Penales", "Legal", "Certificado de antecedentes penales vigente", True, 12, "months"),
    ("Certificado de Antecedentes Policíacos", "Legal", "Certificado de antecedentes policíacos vigente", True, 12, "months"),
    ("Título Universitario", "Académico", "Título profesional universitario", False, None, None),
    ("Certificaciones Profesionales", "Académico", "Certificaciones adicionales relevantes", False, 36, "months"),
    ("Certificado Médico", "Salud", "Certificado médico de aptitud laboral", True, 12, "months"),
    ("Solvencia Fiscal (SAT)", "Legal", "Solvencia fiscal emitida por SAT", False, 12, "months"),
    ("Contrato de Trabajo", "Laboral", "Contrato de trabajo firmado", True, None, None),
    ("Carné de IGSS", "Salud", "Carné del Instituto Guatemalteco de Seguridad Social", True, None, None),
]


def seed_document_types(db: StandardDatabase, now_iso: str) -> int:
    """
    Inserta el catálogo base sin tocar los tipos que ya existen (match por nombre).
    Retorna cuántos tipos nuevos se crearon.
    """
    types = [
        {
            "name": name,
            "category": category,
            "description": description,
            "is_mandatory": mandatory,
            "has_expiration": period is not None,
            "renewal_period": period,
            "renewal_unit": unit,
            "default_due_days": None,
            "is_active": True,
            "created_at": now_iso,
            "updated_at": now_iso,
        }
        for name, category, description, mandatory, period, unit in DEFAULT_DOCUMENT_TYPES
    ]

    aql = f"""
    FOR t IN @types
        UPSERT {{ name: t.name }}
        INSERT t
        UPDATE {{}}
        IN {DOCUMENT_TYPES}
        RETURN OLD ? 0 : 1
    """
    created = sum(db.aql.execute(aql, bind_vars={"types": types}))
    logger.info("🌱 Catálogo base verificado: %s tipos nuevos", created)
    return created
