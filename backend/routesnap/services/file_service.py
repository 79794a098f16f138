"""
RouteSnap Backend — Upload Scratch Storage Service
====================================================

What:  Validates uploaded route-sheet photos and keeps a scratch copy on disk
       while the OCR provider reads them.
Why:   Gemini's upload API takes a file path, and every upload is a security
       boundary that must be checked before anything else touches it.
How:   Extension check, size check, image decoding with Pillow, then an async
       write to a date-organized directory with a UUID filename.
Who:   Called by RouteService.scan_image(); cleanup_file() runs once OCR is done.

Security Model:
    1. Extension check:   fast rejection of obviously wrong files
    2. Size check:        prevents memory exhaustion
    3. Image decode:      Pillow must identify the bytes as PNG or JPEG, so a
                          renamed executable is rejected
    4. UUID filename:     no user input in the stored path (no traversal)
"""

import io
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
from PIL import Image, UnidentifiedImageError

from routesnap.config import settings
from routesnap.exceptions import ValidationError, FileStorageError

logger = logging.getLogger(__name__)

# Pillow format name → MIME type
ALLOWED_IMAGE_FORMATS = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg"}


class FileService:
    """
    Manages the short lifecycle of an uploaded route-sheet photo.

    Lifecycle:
        1. validate_and_store(): extension → size → decode → write
        2. OCR provider reads the stored file
        3. cleanup_file(): scratch copy removed, success or not

    Directory Structure:
        storage/
        └── 2024/
            └── 01/
                └── 15/
                    └── a1b2c3d4-5678.jpg
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        """
        Returns: Normalized extension (lowercase with dot).
        Raises:  ValidationError if extension is not allowed.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Validate file size against the configured maximum.

        Checks the Content-Length header first, then the actual byte count
        (clients can send a wrong header). Empty uploads are rejected too.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(
                message="The uploaded file is empty.",
                field="file",
            )

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) is too large; maximum is {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_image(self, file_content: bytes) -> str:
        """
        Decode the image header with Pillow and return its MIME type.

        Raises:
            ValidationError if Pillow cannot identify the bytes, the pixel count
            is over Pillow's decompression-bomb limit, or they are not PNG / JPEG.
        """
        try:
            with Image.open(io.BytesIO(file_content)) as image:
                image_format = image.format
                image.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            raise ValidationError(
                message="The file is not a readable image. Please upload a PNG or JPEG photo.",
                field="file",
                context={"error": str(e)},
            )

        mime_type = ALLOWED_IMAGE_FORMATS.get(image_format or "")
        if mime_type is None:
            raise ValidationError(
                message=(
                    f"Image format '{image_format}' is not supported. "
                    f"The file must be a PNG or JPEG photo."
                ),
                field="file",
                context={"detected_format": image_format, "allowed": sorted(ALLOWED_IMAGE_FORMATS)},
            )
        return mime_type

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """Creates a YYYY/MM/DD/<uuid>.<ext> path. Returns (absolute, relative)."""
        now = datetime.now(timezone.utc)
        date_dir = now.strftime("%Y/%m/%d")
        unique_name = f"{uuid.uuid4()}{extension}"

        relative_path = f"{date_dir}/{unique_name}"
        absolute_path = self.storage_root / relative_path

        return absolute_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Write validated content to disk.

        Returns: Tuple of (absolute_path, relative_path).
        Raises:  FileStorageError if directory creation or file write fails.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)

            logger.info("File stored: %s (%d bytes)", relative_path, len(content))
            return str(absolute_path), relative_path

        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a scratch file. Best-effort: a failed delete is logged, not raised,
        so it never masks the scan result or the original error.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Complete validation and storage pipeline, cheapest checks first.

        Returns: Tuple of (absolute_path, relative_path).
        """
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        self.validate_image(content)
        return await self.store_file(content, ext)


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
