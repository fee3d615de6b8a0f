"""
RxScribe Backend: Image Intake & Attachment Storage
====================================================

What:  Validates uploaded prescription photos, converts between raw bytes and
       base64 data URLs, and stores record attachments on disk.
How:   Extension and size checks first, then Pillow opens the bytes to
       confirm they really are a PNG, JPEG or WEBP image. Attachments are
       written under date-organized directories with UUID filenames.
Who:   Image intake (upload route, HandwritingSession) and SQLRecordStore.

Data URL format:
    data:<media-type>;base64,<payload>
    e.g. data:image/png;base64,iVBORw0KGgo...
"""

import base64
import binascii
import io
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
from PIL import Image

from app.config import settings
from app.exceptions import FileStorageError, ValidationError
from app.services.llm_base import ImagePart

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

# Pillow format name → media type. MPO is how Pillow reports many
# multi-frame JPEGs straight off phone cameras.
PILLOW_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "WEBP": "image/webp",
}

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}

DEFAULT_IMAGE_MIME = "image/jpeg"


# ══════════════════════════════════════════════════════════════════════════
# Data URL helpers
# ══════════════════════════════════════════════════════════════════════════

def encode_data_url(content: bytes, mime_type: str) -> str:
    """Encode raw bytes as a self-describing base64 data URL."""
    payload = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def decode_data_url(data_url: str) -> ImagePart:
    """
    Strip the media-type prefix of a data URL and decode its base64 payload.

    Returns:
        ImagePart with the decoded bytes and the media type from the prefix
        (image/jpeg when the prefix names none).

    Raises:
        ValidationError: Missing prefix, invalid base64 or an empty payload.
    """
    if not data_url or not data_url.startswith("data:") or "," not in data_url:
        raise ValidationError(
            message="Image must be a base64 data URL (data:<type>;base64,<payload>)",
            field="image",
        )

    header, payload = data_url.split(",", 1)
    # Encoders such as base64.encodebytes wrap lines
    payload = "".join(payload.split())
    mime_type = header[len("data:"):].split(";", 1)[0].strip() or DEFAULT_IMAGE_MIME

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(
            message="Image payload is not valid base64",
            field="image",
            context={"error": str(e)},
        ) from e

    if not data:
        raise ValidationError(message="Image payload is empty", field="image")

    return ImagePart(mime_type=mime_type, data=data)


# ══════════════════════════════════════════════════════════════════════════
# File Service
# ══════════════════════════════════════════════════════════════════════════

class FileService:
    """
    Image validation plus attachment storage lifecycle.

    Directory Structure:
        storage/
        └── 2026/
            └── 10/
                └── 19/
                    ├── a1b2c3d4-....jpg
                    └── e5f6g7h8-....png
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def _validate_extension(self, filename: str) -> str:
        """Returns the lowercase extension; raises ValidationError if unsupported."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def _validate_size(self, content: bytes, content_length: Optional[int] = None) -> None:
        """
        Rejects empty files and files over settings.max_file_size.

        content_length is the client-reported size and is checked first so an
        obviously oversized upload fails before its bytes are inspected.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"File is too large. Maximum size is {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if not content:
            raise ValidationError(message="Uploaded file is empty.", field="file")

        if len(content) > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"File is too large ({len(content) / (1024 * 1024):.1f}MB). "
                    f"Maximum size is {max_mb:.0f}MB."
                ),
                field="file",
                context={"max_size_mb": max_mb, "actual_size": len(content)},
            )

    def _validate_image_content(self, content: bytes) -> str:
        """
        Open the bytes with Pillow and return the detected media type.

        Raises:
            ValidationError: Bytes are not a decodable PNG/JPEG/WEBP image.
        """
        try:
            with Image.open(io.BytesIO(content)) as img:
                image_format = img.format
                img.verify()
        except Exception as e:
            raise ValidationError(
                message="The file is not a readable image. Please upload a PNG, JPEG or WEBP photo.",
                field="file",
                context={"error_type": type(e).__name__},
            ) from e

        mime_type = PILLOW_FORMAT_MIME.get(image_format or "")
        if mime_type is None:
            raise ValidationError(
                message=f"Image format '{image_format}' is not supported.",
                field="file",
                context={"detected_format": image_format},
            )
        return mime_type

    def validate_image(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> str:
        """
        Full intake validation for a selected prescription photo.

        Order: extension → size → decoded content (cheapest first).

        Returns:
            Media type detected from the image content.
        """
        self._validate_extension(filename)
        self._validate_size(content, content_length)
        return self._validate_image_content(content)

    def validate_image_bytes(self, content: bytes) -> str:
        """
        Size and content checks for an image that arrived without a filename
        (a decoded data URL). Returns the detected media type.
        """
        self._validate_size(content)
        return self._validate_image_content(content)

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """Returns (absolute_path, relative_path) for YYYY/MM/DD/<uuid><ext>."""
        now = datetime.now(timezone.utc)
        relative_path = f"{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Write attachment bytes to disk.

        Returns:
            (absolute_path, relative_path)

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save the attached image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            ) from e

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def cleanup_file(self, file_path: str) -> None:
        """
        Best-effort removal of a stored attachment after a failed save.

        Missing files are ignored; other errors are logged, not raised.
        """
        path = Path(file_path)
        try:
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))


file_service = FileService()
