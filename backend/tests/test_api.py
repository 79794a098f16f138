"""
RouteSnap Backend — API Endpoint Tests
========================================

What:  HTTP-level tests for /api/stops/parse, /api/stops/scan and /health.
How:   httpx AsyncClient over ASGITransport (see conftest.test_client).
       Providers are patched so no request leaves the process.

What we test:
    ✅ Text parsing endpoint, including header and strict flags
    ✅ Photo scan endpoint form handling
    ✅ Error envelope and status codes from the global handlers
    ✅ Request ID propagation
    ✅ Health endpoint states
"""

import io
from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from routesnap.exceptions import CircuitBreakerOpenError, OCRServiceError, ValidationError
from routesnap.schemas.stops import ScanResponse, StopResponse
from routesnap.services.gemini_service import gemini_service


class TestParseEndpoint:

    @pytest.mark.asyncio
    async def test_parse_text(self, test_client):
        response = await test_client.post(
            "/api/stops/parse",
            json={"text": "123 Main St\tActive\tLeave at door\n\tActive\tno address"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["stops"] == [
            {"address": "123 main st", "status": "active", "notes": "leave at door"}
        ]

    @pytest.mark.asyncio
    async def test_parse_with_header_and_strict(self, test_client):
        response = await test_client.post(
            "/api/stops/parse",
            json={
                "text": "Status,Address,Notes\nCANC,123 Main St,Moved",
                "has_header": True,
                "strict_status": True,
            },
        )

        assert response.status_code == 200
        assert response.json()["stops"][0] == {
            "address": "123 main st",
            "status": "canceled",
            "notes": "moved",
        }

    @pytest.mark.asyncio
    async def test_missing_text_is_rejected(self, test_client):
        response = await test_client.post("/api/stops/parse", json={"has_header": True})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.post(
            "/api/stops/parse",
            json={"text": "1 First Ave"},
            headers={"X-Request-ID": "abc12345"},
        )
        assert response.headers["X-Request-ID"] == "abc12345"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, test_client):
        response = await test_client.post("/api/stops/parse", json={"text": "1 First Ave"})
        assert len(response.headers["X-Request-ID"]) == 8


class TestScanEndpoint:

    @pytest.mark.asyncio
    async def test_scan_passes_form_flags(self, test_client, sample_png_bytes):
        scan_result = ScanResponse(
            raw_text="1 First Ave\tActive",
            stops=[StopResponse(address="1 first ave", status="active")],
            count=1,
        )
        with patch("routesnap.routes.stops.route_service") as mock_service:
            mock_service.scan_image = AsyncMock(return_value=scan_result)

            response = await test_client.post(
                "/api/stops/scan",
                files={"file": ("sheet.png", sample_png_bytes, "image/png")},
                data={"has_header": "true", "strict_status": "true", "geocode": "false"},
            )

        assert response.status_code == 200
        assert response.json()["count"] == 1

        kwargs = mock_service.scan_image.await_args.kwargs
        assert kwargs["filename"] == "sheet.png"
        assert kwargs["content"] == sample_png_bytes
        assert kwargs["geocode"] is False
        assert kwargs["flags"].has_header is True
        assert kwargs["flags"].strict_status is True
        assert kwargs["flags"].skip_comments is None

    @pytest.mark.asyncio
    async def test_scan_rejects_wrong_file_type(self, test_client):
        response = await test_client.post(
            "/api/stops/scan",
            files={"file": ("sheet.gif", b"GIF89a", "image/gif")},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert "not supported" in body["message"]
        assert body["details"]["field"] == "file"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_scan_rejects_oversized_canvas(self, test_client, monkeypatch):
        buffer = io.BytesIO()
        Image.new("1", (100, 100)).save(buffer, format="PNG")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        response = await test_client.post(
            "/api/stops/scan",
            files={"file": ("sheet.png", buffer.getvalue(), "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_scan_ocr_failure_is_503(self, test_client, sample_png_bytes):
        with patch("routesnap.routes.stops.route_service") as mock_service:
            mock_service.scan_image = AsyncMock(side_effect=OCRServiceError(retry_after=60))

            response = await test_client.post(
                "/api/stops/scan",
                files={"file": ("sheet.png", sample_png_bytes, "image/png")},
            )

        assert response.status_code == 503
        assert response.json()["error"] == "ocr_service_error"
        assert response.headers["Retry-After"] == "60"

    @pytest.mark.asyncio
    async def test_scan_circuit_open_is_503(self, test_client, sample_png_bytes):
        with patch("routesnap.routes.stops.route_service") as mock_service:
            mock_service.scan_image = AsyncMock(side_effect=CircuitBreakerOpenError(recovery_time=30))

            response = await test_client.post(
                "/api/stops/scan",
                files={"file": ("sheet.png", sample_png_bytes, "image/png")},
            )

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "service_unavailable"
        assert body["details"] == {"recovery_time": 30}

    @pytest.mark.asyncio
    async def test_scan_validation_error_from_service(self, test_client, sample_png_bytes):
        with patch("routesnap.routes.stops.route_service") as mock_service:
            mock_service.scan_image = AsyncMock(
                side_effect=ValidationError("The uploaded file is empty.", field="file")
            )

            response = await test_client.post(
                "/api/stops/scan",
                files={"file": ("sheet.png", sample_png_bytes, "image/png")},
            )

        assert response.status_code == 400
        assert response.json()["message"] == "The uploaded file is empty."


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_healthy(self, test_client):
        with patch.object(gemini_service, "health_check", AsyncMock(return_value=True)):
            response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["ocr"] == "available"
        assert body["uptime_seconds"] >= 0

    @pytest.mark.asyncio
    async def test_degraded_when_ocr_unreachable(self, test_client):
        with patch.object(gemini_service, "health_check", AsyncMock(return_value=False)):
            response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["ocr"] == "unavailable"

    @pytest.mark.asyncio
    async def test_degraded_when_circuit_open(self, test_client):
        with patch.object(gemini_service.circuit_breaker, "state", "open"):
            response = await test_client.get("/health")

        assert response.json()["ocr"] == "circuit_open"
