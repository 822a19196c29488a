import logging
import secrets
import time
from pathlib import Path
from typing import Optional

from config import get_settings
from errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class AttachmentStore:
    """Local disk object store for feedback attachments."""

    def __init__(self, root: Optional[Path] = None, base_url: Optional[str] = None):
        settings = get_settings()
        self.root = Path(root or settings.upload_dir)
        self.base_url = (base_url or settings.upload_base_url).rstrip("/")
        self.max_bytes = settings.upload_max_bytes

    def save_image(
        self, user_id: int, filename: Optional[str], content_type: Optional[str], data: bytes
    ) -> str:
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError("File type not allowed. Use JPG, PNG, GIF or WebP.")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB."
            )
        if not data:
            raise ValidationError("No file sent")

        # Extension comes from the validated content type only.
        ext = ALLOWED_IMAGE_TYPES[content_type]
        key = f"{user_id}/{int(time.time() * 1000)}-{secrets.token_hex(6)}.{ext}"
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(
            f"attachment_stored: user_id={user_id} key={key} "
            f"filename={filename!r} bytes={len(data)}"
        )
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"
