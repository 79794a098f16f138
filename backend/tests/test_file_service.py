"""
RouteSnap Backend — File Service Unit Tests
=============================================

What:  Tests for FileService validation (extension, size, image decoding)
       and the scratch-file lifecycle.
Why:   File validation is a security boundary and must be thoroughly tested.
How:   Real images generated with Pillow, temporary directories for storage.

Test Strategy:
    ✅ Allowed extensions (.jpg, .jpeg, .png), case-insensitive
    ✅ Rejected extensions (.gif, .pdf, .exe, none)
    ✅ Size limits (empty, header too large, body too large)
    ✅ Pillow decoding (PNG/JPEG accepted, renamed junk and GIF rejected)
    ✅ Store → cleanup round trip with UUID filenames
"""

import io
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from routesnap.config import settings
from routesnap.services.file_service import FileService
from routesnap.exceptions import FileStorageError, ValidationError


class TestFileValidation:
    """Tests for file validation logic in FileService."""

    @pytest.fixture(autouse=True)
    def _service(self, temp_storage):
        self.service = FileService(storage_root=temp_storage)

    # ── Extension Validation ──────────────────────────────────────────────

    @pytest.mark.parametrize("filename", ["sheet.jpg", "sheet.jpeg", "sheet.png", "SHEET.JPG", "s.Jpeg"])
    def test_allowed_extensions(self, filename):
        assert self.service.validate_extension(filename) in {".jpg", ".jpeg", ".png"}

    @pytest.mark.parametrize("filename", ["animation.gif", "route.pdf", "malware.exe", "noextension"])
    def test_rejected_extensions(self, filename):
        with pytest.raises(ValidationError, match="not supported") as exc_info:
            self.service.validate_extension(filename)
        assert exc_info.value.field == "file"

    # ── Size Validation ───────────────────────────────────────────────────

    def test_empty_file_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(content_length=0, actual_size=0)

    def test_size_at_limit_accepted(self):
        self.service.validate_size(settings.max_file_size, settings.max_file_size)

    def test_reported_size_over_limit_rejected(self):
        with pytest.raises(ValidationError, match="exceeds"):
            self.service.validate_size(settings.max_file_size + 1, 100)

    def test_actual_size_over_limit_rejected(self):
        """A lying Content-Length header does not get a large body through."""
        with pytest.raises(ValidationError, match="too large"):
            self.service.validate_size(100, settings.max_file_size + 1)

    def test_missing_content_length_uses_actual_size(self):
        self.service.validate_size(None, 1024)

    # ── Image Decoding ────────────────────────────────────────────────────

    def test_png_accepted(self, sample_png_bytes):
        assert self.service.validate_image(sample_png_bytes) == "image/png"

    def test_jpeg_accepted(self, sample_jpeg_bytes):
        assert self.service.validate_image(sample_jpeg_bytes) == "image/jpeg"

    def test_non_image_rejected(self):
        with pytest.raises(ValidationError, match="not a readable image"):
            self.service.validate_image(b"MZ\x90\x00 this is an executable")

    def test_decompression_bomb_rejected(self, monkeypatch):
        """A small file that decodes to a huge canvas is a 400, not an unhandled error."""
        buffer = io.BytesIO()
        Image.new("1", (100, 100)).save(buffer, format="PNG")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        with pytest.raises(ValidationError, match="not a readable image"):
            self.service.validate_image(buffer.getvalue())

    def test_gif_rejected(self):
        buffer = io.BytesIO()
        Image.new("P", (4, 4)).save(buffer, format="GIF")
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_image(buffer.getvalue())


class TestFileStorage:

    @pytest.mark.asyncio
    async def test_store_and_cleanup(self, temp_storage, sample_png_bytes):
        service = FileService(storage_root=temp_storage)

        absolute_path, relative_path = await service.validate_and_store(
            filename="../../etc/route.png",
            content=sample_png_bytes,
        )

        stored = Path(absolute_path)
        assert stored.exists()
        assert stored.read_bytes() == sample_png_bytes
        assert stored.is_relative_to(Path(temp_storage).resolve())
        assert relative_path.endswith(".png")
        assert "route" not in relative_path

        await service.cleanup_file(absolute_path)
        assert not stored.exists()

    @pytest.mark.asyncio
    async def test_cleanup_missing_file_is_quiet(self, temp_storage):
        service = FileService(storage_root=temp_storage)
        await service.cleanup_file(str(Path(temp_storage) / "gone.png"))

    @pytest.mark.asyncio
    async def test_validation_runs_before_write(self, temp_storage):
        service = FileService(storage_root=temp_storage)

        with pytest.raises(ValidationError):
            await service.validate_and_store(filename="sheet.png", content=b"not an image")

        assert list(Path(temp_storage).rglob("*.png")) == []

    @pytest.mark.asyncio
    async def test_write_failure_raises_storage_error(self, temp_storage, sample_png_bytes):
        service = FileService(storage_root=temp_storage)

        with patch("routesnap.services.file_service.aiofiles.open", side_effect=OSError("disk full")):
            with pytest.raises(FileStorageError):
                await service.store_file(sample_png_bytes, ".png")
