from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Employee Document Requirements Service"
    ENV_MODE: str = "dev"

    # ArangoDB
    ARANGO_HOST_URL: str = "http://localhost:8529"
    ARANGO_ROOT_PASSWORD: str = ""
    ARANGO_DB_NAME: str = "employee_docs_db"

    # MinIO (versiones de cada documento entregado)
    MINIO_ENDPOINT: str = "storage:9000"
    MINIO_ROOT_USER: str = "minioadmin"
    MINIO_ROOT_PASSWORD: str = "minioadmin"
    MINIO_BUCKET_NAME: str = "documents"
    MINIO_SECURE: bool = False
    SIGNED_URL_MINUTES: int = 60

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    KAFKA_RENEWAL_TOPIC: str = "documents.renewal.due"

    # Auth (JWT emitido por el proveedor de sesión)
    AUTH_JWT_SECRET: str = "dev-secret-change-me-0123456789abcdef"
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str = "authenticated"

    # Directorio de empleados (RRHH)
    HR_DIRECTORY_URL: str = "http://hr-api/api/internal/employees"

    # Reglas de negocio
    DEFAULT_DUE_DAYS: int = 7
    FEED_DEFAULT_WINDOW_DAYS: int = 30
    SEED_DOCUMENT_TYPES: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
