import uuid
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
import structlog

from medquote.config import settings
from medquote.errors import bad_request, external_service_error, not_implemented

logger = structlog.get_logger()

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}


class R2Client:
    def __init__(self):
        self.s3 = boto3.client(
            "s3",
            endpoint_url=settings.R2_ENDPOINT_URL,
            aws_access_key_id=settings.R2_ACCESS_KEY_ID,
            aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
            region_name="auto",
        )
        self.bucket = settings.R2_BUCKET_NAME

    def get_presigned_upload_url(self, key: str, content_type: str, expires_in: int) -> str:
        return self.s3.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_in,
        )

    def get_presigned_url(self, key: str, expires_in: int = 3600) -> str:
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )


_r2_client: Optional[R2Client] = None


def get_r2_client() -> R2Client:
    global _r2_client
    if not settings.R2_ENDPOINT_URL:
        raise not_implemented("File storage is not configured")
    if _r2_client is None:
        _r2_client = R2Client()
    return _r2_client


def generate_upload_url(folder: str, owner_id: uuid.UUID, content_type: str) -> dict:
    """Return a write-once presigned PUT URL and the key the object will live at."""
    ext = ALLOWED_CONTENT_TYPES.get(content_type)
    if ext is None:
        raise bad_request(
            f"Unsupported file type: {content_type}. "
            f"Allowed: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}"
        )

    key = f"{folder}/{owner_id}/{uuid.uuid4()}.{ext}"
    client = get_r2_client()
    try:
        upload_url = client.get_presigned_upload_url(
            key, content_type, settings.UPLOAD_URL_EXPIRE_SECONDS
        )
    except (BotoCoreError, ClientError) as e:
        logger.error("upload_url_generation_failed", key=key, error=str(e))
        raise external_service_error("Could not create an upload URL")

    logger.info("upload_url_generated", key=key, owner_id=str(owner_id))
    return {
        "upload_url": upload_url,
        "file_key": key,
        "content_type": content_type,
        "expires_in": settings.UPLOAD_URL_EXPIRE_SECONDS,
    }


def get_download_url(key: str) -> str:
    client = get_r2_client()
    try:
        return client.get_presigned_url(key)
    except (BotoCoreError, ClientError) as e:
        logger.error("download_url_generation_failed", key=key, error=str(e))
        raise external_service_error("Could not create a download URL")
