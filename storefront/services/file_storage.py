"""Local disk storage for payment proof images."""
import logging
import os
import random
import time
from typing import BinaryIO, Optional

from storefront.config import (
    ALLOWED_IMAGE_CONTENT_TYPES,
    ALLOWED_IMAGE_EXTENSIONS,
    MAX_UPLOAD_BYTES,
    UPLOAD_DIR,
    UPLOAD_URL_PREFIX,
)
from storefront.errors import ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class FileStorage:
    """Stores uploaded images on disk and hands back their public URL."""

    def __init__(
        self,
        upload_dir: str = UPLOAD_DIR,
        url_prefix: str = UPLOAD_URL_PREFIX,
        max_bytes: int = MAX_UPLOAD_BYTES
    ):
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def save(
        self,
        stream: BinaryIO,
        filename: Optional[str],
        content_type: Optional[str],
        field_name: str = "paymentProof"
    ) -> str:
        """
        Validate and store an uploaded image.

        Args:
            stream: File object positioned at the start of the upload
            filename: Client-side file name, used for its extension
            content_type: Declared MIME type
            field_name: Form field name, used as the stored file name prefix

        Returns:
            URL under which the stored file is served

        Raises:
            ValidationError: If the file is missing, not an allowed image type, or too large
        """
        if not filename:
            raise ValidationError("No file uploaded")

        extension = os.path.splitext(filename)[1].lower()
        if extension not in ALLOWED_IMAGE_EXTENSIONS or (content_type or "").lower() not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValidationError("Only image files are allowed")

        os.makedirs(self.upload_dir, exist_ok=True)
        stored_name = f"{field_name}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{extension}"
        path = os.path.join(self.upload_dir, stored_name)

        written = 0
        try:
            with open(path, "wb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise ValidationError(
                            f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB"
                        )
                    out.write(chunk)
        except ValidationError:
            os.remove(path)
            raise

        logger.info("Stored payment proof", extra={
            "file_name": stored_name,
            "size_bytes": written,
            "content_type": content_type
        })
        return f"{self.url_prefix}/{stored_name}"
