"""
RouteSnap Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (temp storage, images, API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── temp_storage: Temporary directory for file operations
    ├── sample_png_bytes / sample_jpeg_bytes: Real images made with Pillow
    ├── sample_route_sheet: Mixed-delimiter route-sheet text
    └── test_client: HTTPX AsyncClient for API endpoint testing
"""

import io
import os
import tempfile

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any routesnap imports
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="routesnap_test_")
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests
os.environ["PARSER_DEBUG"] = "false"
os.environ["PARSER_STRICT_STATUS"] = "false"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    """A fresh storage directory per test (pytest cleans tmp_path up)."""
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


def _image_bytes(image_format: str) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(255, 255, 255)).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def sample_png_bytes():
    """
    A tiny but real PNG.

    Pillow must be able to decode the upload, so hand-written magic bytes
    are not enough here.
    """
    return _image_bytes("PNG")


@pytest.fixture
def sample_jpeg_bytes():
    return _image_bytes("JPEG")


@pytest.fixture
def sample_route_sheet():
    """Three stops, one per delimiter style, plus a comment and a blank line."""
    return (
        "# Route 14, Tuesday\n"
        "123 Main St\tActive\tLeave at door\n"
        "\n"
        '"456 Oak Dr, Apt 2", Suspended, "Customer request"\n'
        "789 Pine Rd    Cancelled    Moved away\n"
    )


@pytest_asyncio.fixture
async def test_client():
    """
    Provides an async HTTP test client for endpoint testing.

    What:    HTTPX AsyncClient configured to talk to our FastAPI app.
    Why:     Enables testing of HTTP endpoints without running a server.
    How:     Uses ASGITransport to route requests directly to the app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from routesnap.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
