import jwt
import pytest
from fastapi.testclient import TestClient

from src.core.config import settings
from src.features.catalog.service import catalog_service
from src.main import app


def _token(role, sub="user-1"):
    claims = {"sub": sub, "user_role": role, "aud": settings.AUTH_JWT_AUDIENCE}
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def _auth(role):
    return {"Authorization": f"Bearer {_token(role)}"}


@pytest.fixture
def client(monkeypatch, catalog):
    # Sin bloque `with`: no se ejecuta el lifespan (ArangoDB / Kafka)
    monkeypatch.setattr(catalog_service, "repository", catalog)
    return TestClient(app)


def test_missing_token_is_401(client):
    response = client.get("/employee-documents/document-types")

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "HTTP_401"


def test_invalid_token_is_401(client):
    response = client.get("/employee-documents/document-types", headers={"Authorization": "Bearer basura"})
    assert response.status_code == 401


def test_viewer_can_read_catalog(client):
    response = client.get("/employee-documents/document-types", headers=_auth("viewer"))

    assert response.status_code == 200
    names = {t["name"] for t in response.json()["data"]["data"]}
    assert "Certificado Médico" in names
    assert "Carné Antiguo" not in names


def test_viewer_cannot_write(client):
    response = client.post(
        "/employee-documents/document-types",
        json={"name": "Licencia", "category": "Identificación"},
        headers=_auth("viewer"),
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PERMISSION_DENIED"


def test_domain_errors_keep_their_code(client):
    response = client.put(
        "/employee-documents/document-types/no-existe", json={"name": "X"}, headers=_auth("admin"),
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "DOCUMENT_TYPE_NOT_FOUND"

    response = client.post(
        "/employee-documents/document-types",
        json={"name": "Licencia", "category": "Identificación", "has_expiration": True, "renewal_period": 0,
              "renewal_unit": "years"},
        headers=_auth("admin"),
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_RENEWAL_SPEC"


def test_request_validation_error_shape(client):
    response = client.post(
        "/employee-documents/document-types", json={"category": "Identificación"}, headers=_auth("admin"),
    )

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["field"] == "name"


def test_null_in_update_is_rejected_before_writing(client, catalog):
    response = client.put(
        "/employee-documents/document-types/dpi", json={"name": None}, headers=_auth("admin"),
    )

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "NULL_NOT_ALLOWED"
    assert error["details"] == {"fields": ["name"]}
    assert catalog.document_types["dpi"]["name"] == "DPI"
