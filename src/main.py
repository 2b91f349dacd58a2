import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from arango.exceptions import ArangoError
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from src.core.config import settings
from src.core.database import db_instance
from src.core.errors import DocumentServiceError
from src.core.responses import error_response
from src.core.setup import init_arango_schema, seed_document_types
from src.features.assignment.router import router as assignment_router
from src.features.catalog.router import router as catalog_router
from src.features.employees.router import router as employees_router
from src.features.renewals.notifier import renewal_notifier
from src.features.renewals.router import router as renewals_router
from src.features.requirements.router import router as requirements_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- 1. LÓGICA DE INICIO (Startup) ---
    logger.info("🚀 Iniciando servicios...")

    # Inicializar DB (Síncrono)
    db = db_instance.get_db()
    init_arango_schema(db)
    if settings.SEED_DOCUMENT_TYPES:
        seed_document_types(db, datetime.now(timezone.utc).isoformat())

    # Productor Kafka para los avisos de renovación
    await renewal_notifier.start()

    yield  # <-- Aquí es donde la API está corriendo y recibiendo peticiones

    # --- 2. LÓGICA DE APAGADO (Shutdown) ---
    logger.info("Deteniendo servicios...")
    await renewal_notifier.stop()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# El orden importa: /requirements/statistics antes que /requirements/{id}
app.include_router(catalog_router)
app.include_router(assignment_router)
app.include_router(requirements_router)
app.include_router(renewals_router)
app.include_router(employees_router)


@app.exception_handler(DocumentServiceError)
async def domain_exception_handler(request: Request, exc: DocumentServiceError):
    if exc.status_code >= 500:
        logger.error("🚨 %s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("⚠️ %s %s -> %s", request.method, request.url.path, exc.code)
    return error_response(exc.status_code, **exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    field = first_error.get("loc", ["unknown"])[-1] if first_error.get("loc") else "unknown"
    message = f"Error de validación en el campo '{field}': {first_error.get('msg', 'valor inválido')}"
    return error_response(422, "VALIDATION_ERROR", message, {"field": field, "type": first_error.get("type")})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


@app.exception_handler(ArangoError)
async def arango_exception_handler(request: Request, exc: ArangoError):
    logger.error("🚨 Error de ArangoDB en %s %s: %s", request.method, request.url.path, exc)
    return error_response(503, "DATABASE_UNAVAILABLE", "La base de datos no está disponible")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("🚨 Excepción no controlada en %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return error_response(500, "INTERNAL_ERROR", "Error interno del servidor")


@app.get("/")
def health_check():
    return {"status": "ok", "service": "FastAPI + ArangoDB + MinIO + Kafka"}
