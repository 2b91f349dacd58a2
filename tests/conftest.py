import copy
import itertools
import threading

import pytest

from src.core.errors import ConcurrentModification, DuplicateRequirement
from src.features.assignment.service import AssignmentService
from src.features.renewals.service import RenewalService
from src.features.requirements.service import RequirementService


def _doc_type(key, name, category, mandatory, period=None, unit=None, default_due_days=None, active=True):
    return {
        "id": key,
        "name": name,
        "category": category,
        "description": "",
        "is_mandatory": mandatory,
        "has_expiration": period is not None,
        "renewal_period": period,
        "renewal_unit": unit,
        "default_due_days": default_due_days,
        "is_active": active,
    }


class FakeCatalog:
    def __init__(self):
        self.document_types = {
            "medico": _doc_type("medico", "Certificado Médico", "Salud", True, 12, "months"),
            "dpi": _doc_type("dpi", "DPI", "Identificación", True),
            "penales": _doc_type("penales", "Antecedentes Penales", "Legal", True, 12, "months", default_due_days=15),
            "titulo": _doc_type("titulo", "Título Universitario", "Académico", False),
            "viejo": _doc_type("viejo", "Carné Antiguo", "Salud", True, active=False),
        }
        self.templates = {
            "tpl_medico": {
                "id": "tpl_medico",
                "name": "Médico General",
                "description": "",
                "category": "Salud",
                "icon": "stethoscope",
                "is_active": True,
                "items": [
                    {
                        "document_type_id": "medico",
                        "priority": "alta",
                        "has_custom_renewal": True,
                        "custom_renewal_period": 6,
                        "custom_renewal_unit": "months",
                    },
                    {"document_type_id": "dpi", "priority": "urgente", "has_custom_renewal": False},
                    {"document_type_id": "titulo", "priority": "normal", "has_custom_renewal": False},
                ],
            },
            "tpl_admin": {
                "id": "tpl_admin",
                "name": "Administrativo",
                "description": "",
                "category": "Oficina",
                "icon": "briefcase",
                "is_active": True,
                "items": [
                    {"document_type_id": "dpi", "priority": "alta", "has_custom_renewal": False},
                    {"document_type_id": "penales", "priority": "normal", "has_custom_renewal": False},
                ],
            },
        }
        self._seq = itertools.count(1)

    # --- tipos ---
    def list_document_types(self, category=None, is_active=True, search=None):
        docs = list(self.document_types.values())
        if is_active is not None:
            docs = [d for d in docs if d["is_active"] == is_active]
        if category:
            docs = [d for d in docs if d["category"] == category]
        return copy.deepcopy(docs)

    def get_document_type(self, document_type_id):
        return copy.deepcopy(self.document_types.get(document_type_id))

    def get_document_types(self, ids):
        return {i: copy.deepcopy(self.document_types[i]) for i in ids if i in self.document_types}

    def insert_document_type(self, doc):
        key = f"type_{next(self._seq)}"
        self.document_types[key] = {**doc, "id": key}
        return copy.deepcopy(self.document_types[key])

    def update_document_type(self, document_type_id, patch):
        if document_type_id not in self.document_types:
            return None
        self.document_types[document_type_id].update(patch)
        return copy.deepcopy(self.document_types[document_type_id])

    # --- plantillas ---
    def list_templates(self, include_inactive=False):
        return [copy.deepcopy(t) for t in self.templates.values() if include_inactive or t["is_active"]]

    def get_template(self, template_id):
        return copy.deepcopy(self.templates.get(template_id))

    def insert_template(self, doc):
        key = f"tpl_{next(self._seq)}"
        self.templates[key] = {**doc, "id": key}
        return copy.deepcopy(self.templates[key])

    def update_template(self, template_id, patch):
        if template_id not in self.templates:
            return None
        self.templates[template_id].update(patch)
        return copy.deepcopy(self.templates[template_id])


class FakeEmployees:
    def __init__(self):
        self.people = {
            "MIN25001": {"id": "MIN25001", "first_name": "Ana", "last_name": "López", "email": "ana@empresa.com"},
            "MIN25002": {"id": "MIN25002", "first_name": "Luis", "last_name": "Pérez", "email": None},
        }

    def get_employee(self, employee_id):
        return copy.deepcopy(self.people.get(employee_id))

    def get_employees(self, ids):
        return {i: copy.deepcopy(self.people[i]) for i in ids if i in self.people}


class FakeRequirementRepo:
    """
    Réplica en memoria de RequirementRepository: índice único por
    (empleado, tipo) y compare-and-set sobre (status, current_version).
    """

    def __init__(self, catalog):
        self.catalog = catalog
        self.requirements = {}
        self.documents = {}
        self.race_barrier = None
        self._lock = threading.Lock()
        self._seq = itertools.count(1)

    def _join(self, req):
        record = copy.deepcopy(req)
        record["document_type"] = copy.deepcopy(self.catalog.document_types.get(req["document_type_id"]))
        current_id = req.get("current_document_id")
        record["current_document"] = copy.deepcopy(self.documents.get(current_id)) if current_id else None
        return record

    def get_requirement(self, requirement_id):
        req = self.requirements.get(requirement_id)
        return self._join(req) if req else None

    def assigned_type_ids(self, employee_id):
        if self.race_barrier is not None:
            # Ambos hilos leen antes de que cualquiera inserte
            self.race_barrier.wait(timeout=5)
        with self._lock:
            return {r["document_type_id"] for r in self.requirements.values() if r["employee_id"] == employee_id}

    def list_joined(self, employee_id=None, priority=None, only_with_clock=False):
        rows = list(self.requirements.values())
        if employee_id:
            rows = [r for r in rows if r["employee_id"] == employee_id]
        if priority:
            rows = [r for r in rows if r["priority"] == priority]
        if only_with_clock:
            rows = [r for r in rows if r.get("due_date") or r.get("current_document_id")]
        return [self._join(r) for r in rows]

    def insert_requirement(self, doc):
        with self._lock:
            for r in self.requirements.values():
                if r["employee_id"] == doc["employee_id"] and r["document_type_id"] == doc["document_type_id"]:
                    raise DuplicateRequirement(doc["employee_id"], doc["document_type_id"])
            key = f"req_{next(self._seq)}"
            self.requirements[key] = {**doc, "id": key}
            return copy.deepcopy(self.requirements[key])

    def update_fields(self, requirement_id, patch):
        if requirement_id not in self.requirements:
            return None
        self.requirements[requirement_id].update(patch)
        return copy.deepcopy(self.requirements[requirement_id])

    def _cas(self, requirement_id, expected_status, expected_version):
        req = self.requirements.get(requirement_id)
        if req is None or req["status"] != expected_status or req["current_version"] != expected_version:
            raise ConcurrentModification(requirement_id)
        return req

    def submit_version(self, requirement_id, expected_status, expected_version, document, patch):
        with self._lock:
            req = self._cas(requirement_id, expected_status, expected_version)
            key = f"doc_{next(self._seq)}"
            self.documents[key] = {**document, "id": key}
            req.update(patch)
            req["current_document_id"] = key
            return copy.deepcopy(req), copy.deepcopy(self.documents[key])

    def review_current(self, requirement_id, expected_status, expected_version, document_id, patch, document_patch):
        with self._lock:
            req = self._cas(requirement_id, expected_status, expected_version)
            req.update(patch)
            self.documents[document_id].update(document_patch)
            return copy.deepcopy(req), copy.deepcopy(self.documents[document_id])

    def delete_with_history(self, requirement_id):
        with self._lock:
            if requirement_id not in self.requirements:
                return None
            del self.requirements[requirement_id]
            doc_ids = [k for k, d in self.documents.items() if d["requirement_id"] == requirement_id]
            return [self.documents.pop(k)["file_path"] for k in doc_ids]


class FakeStorage:
    def __init__(self):
        self.uploaded = []
        self.removed = []

    def upload_file(self, file_data, destination_path, content_type):
        self.uploaded.append((destination_path, content_type, len(file_data)))
        return f"documents/{destination_path}"

    def get_presigned_url(self, partial_path):
        return f"https://files.local/{partial_path}?signed=1"

    def remove_files(self, paths):
        self.removed.extend(paths)
        return []


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def employees():
    return FakeEmployees()


@pytest.fixture
def requirements_repo(catalog):
    return FakeRequirementRepo(catalog)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def assignment(requirements_repo, catalog, employees):
    return AssignmentService(requirements=requirements_repo, catalog=catalog, employees=employees)


@pytest.fixture
def requirement_service(requirements_repo, storage):
    return RequirementService(repository=requirements_repo, storage=storage)


@pytest.fixture
def renewals(requirements_repo, employees):
    return RenewalService(requirements=requirements_repo, employees=employees)
