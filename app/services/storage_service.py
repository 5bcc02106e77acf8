"""Storage Service. Venue and service image uploads to S3 or local disk.

With AWS keys configured the client receives an S3 presigned PUT URL;
otherwise the upload goes to a local PUT endpoint and files are served
from /uploads.
"""

import logging
import uuid
from pathlib import Path

from app.config import settings
from app.utils.dates import utcnow
from app.utils.exceptions import BadRequestError

logger = logging.getLogger(__name__)

# Local upload directory: LOCAL_UPLOADS_DIR from .env or <project>/uploads
_SERVER_ROOT: Path = Path(__file__).resolve().parent.parent.parent
UPLOADS_DIR: Path = Path(settings.LOCAL_UPLOADS_DIR) if settings.LOCAL_UPLOADS_DIR else _SERVER_ROOT / "uploads"

IMAGE_CONTENT_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}

UPLOAD_FOLDERS: frozenset[str] = frozenset({"venues", "services"})


def image_content_type(file_name: str) -> str:
    """Content type for an image file name.

    Raises:
        BadRequestError: Extension is not jpg, jpeg, png, webp or gif
    """
    ext: str = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    content_type: str | None = IMAGE_CONTENT_TYPES.get(ext)
    if content_type is None:
        raise BadRequestError("Only jpg, png, webp and gif images are allowed")
    return content_type


class StorageService:
    """Image upload service; picks S3 or local mode from the settings."""

    def __init__(self) -> None:
        self._client = None

    @property
    def is_local(self) -> bool:
        return not settings.AWS_ACCESS_KEY_ID or not settings.AWS_S3_BUCKET

    @property
    def client(self):
        if self.is_local:
            return None
        if self._client is None:
            import boto3
            from botocore.config import Config as BotoConfig

            self._client = boto3.client(
                "s3",
                region_name=settings.AWS_S3_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                config=BotoConfig(signature_version="s3v4"),
            )
        return self._client

    def _generate_key(self, file_name: str, folder: str) -> str:
        ext: str = file_name.rsplit(".", 1)[-1].lower()
        date_prefix: str = utcnow().strftime("%Y/%m/%d")
        return f"{folder}/{date_prefix}/{uuid.uuid4().hex}.{ext}"

    def public_url(self, key: str) -> str:
        if self.is_local:
            return f"{settings.API_BASE_URL.rstrip('/')}/uploads/{key}"
        return f"https://{settings.AWS_S3_BUCKET}.s3.{settings.AWS_S3_REGION}.amazonaws.com/{key}"

    def generate_presigned_upload_url(
        self,
        file_name: str,
        folder: str = "venues",
        expires: int = 3600,
    ) -> dict[str, str]:
        """Return the PUT URL, the final public file URL and the storage key.

        Raises:
            BadRequestError: Unknown folder or unsupported image type
        """
        if folder not in UPLOAD_FOLDERS:
            raise BadRequestError("folder must be venues or services")
        content_type: str = image_content_type(file_name)
        key: str = self._generate_key(file_name, folder)

        if self.is_local:
            upload_url: str = f"{settings.API_BASE_URL.rstrip('/')}/api/upload/local/{key}"
        else:
            upload_url = self.client.generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": settings.AWS_S3_BUCKET,
                    "Key": key,
                    "ContentType": content_type,
                },
                ExpiresIn=expires,
            )
        logger.info("Issued %s upload URL for %s", "local" if self.is_local else "S3", key)
        return {"upload_url": upload_url, "file_url": self.public_url(key), "key": key}

    def save_local(self, key: str, data: bytes) -> str:
        """Write an uploaded file under UPLOADS_DIR and return its path.

        Raises:
            BadRequestError: Not in local mode, or the key escapes the upload folders
        """
        if not self.is_local:
            raise BadRequestError("Local uploads are disabled while S3 is configured")
        path: Path = (UPLOADS_DIR / key).resolve()
        root: Path = UPLOADS_DIR.resolve()
        if root not in path.parents or key.split("/", 1)[0] not in UPLOAD_FOLDERS:
            raise BadRequestError("Invalid upload key")
        image_content_type(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return str(path)


# Singleton instance
storage_service: StorageService = StorageService()
