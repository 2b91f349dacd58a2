import io
import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

from minio import Minio
from minio.deleteobjects import DeleteObject
from minio.error import S3Error

from src.core.config import settings

logger = logging.getLogger(__name__)


def split_path(partial_path: str) -> Optional[Tuple[str, str]]:
    """'bucket/ruta/archivo.pdf' -> ('bucket', 'ruta/archivo.pdf')"""
    parts = (partial_path or "").split("/", 1)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


class StorageService:
    """
    Acceso a MinIO para los archivos de cada versión de documento.
    El cliente se crea en el primer uso para no conectar al importar.
    """

    def __init__(self, client: Optional[Minio] = None, bucket_name: Optional[str] = None):
        self._client = client
        self.bucket_name = bucket_name or settings.MINIO_BUCKET_NAME
        self._bucket_checked = client is not None

    @property
    def client(self) -> Minio:
        if self._client is None:
            self._client = Minio(
                settings.MINIO_ENDPOINT,
                access_key=settings.MINIO_ROOT_USER,
                secret_key=settings.MINIO_ROOT_PASSWORD,
                secure=settings.MINIO_SECURE,
            )
        if not self._bucket_checked:
            self._bucket_checked = True
            self._ensure_bucket_exists(self._client)
        return self._client

    def _ensure_bucket_exists(self, client: Minio):
        try:
            if not client.bucket_exists(self.bucket_name):
                client.make_bucket(self.bucket_name)
                logger.info("🪣 Bucket '%s' creado exitosamente.", self.bucket_name)
        except S3Error as e:
            logger.error("❌ Error verificando bucket %s: %s", self.bucket_name, e)

    def upload_file(self, file_data: bytes, destination_path: str, content_type: str) -> str:
        """
        Sube bytes a MinIO y retorna la ruta relativa (bucket/objeto).
        """
        try:
            self.client.put_object(
                self.bucket_name,
                destination_path,
                io.BytesIO(file_data),
                length=len(file_data),
                content_type=content_type,
            )
        except S3Error as e:
            logger.error("❌ Error subiendo archivo a MinIO (%s): %s", destination_path, e)
            raise
        return f"{self.bucket_name}/{destination_path}"

    def get_presigned_url(self, partial_path: str) -> Optional[str]:
        """
        URL temporal de lectura. Un archivo que no está en MinIO no impide
        listar el requerimiento: se devuelve None.
        """
        location = split_path(partial_path)
        if location is None:
            return None
        try:
            return self.client.get_presigned_url(
                "GET",
                location[0],
                location[1],
                expires=timedelta(minutes=settings.SIGNED_URL_MINUTES),
            )
        except S3Error as e:
            logger.warning("⚠️ No se pudo firmar URL para %s: %s", partial_path, e)
            return None

    def remove_files(self, paths: Iterable[str]) -> List[str]:
        """
        Elimina los objetos indicados. Retorna las rutas que no se pudieron borrar.
        """
        by_bucket = {}
        for path in paths:
            location = split_path(path)
            if location:
                by_bucket.setdefault(location[0], []).append(location[1])

        failed = []
        for bucket, objects in by_bucket.items():
            errors = self.client.remove_objects(bucket, [DeleteObject(name) for name in objects])
            for error in errors:
                logger.error("❌ Error eliminando %s/%s: %s", bucket, error.name, error.message)
                failed.append(f"{bucket}/{error.name}")
        return failed


storage_instance = StorageService()
