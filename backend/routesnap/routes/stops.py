"""
RouteSnap Backend — Stop Route Handlers
=========================================

What:  POST /api/stops/parse (text) and POST /api/stops/scan (photo).
Why:   Entry points for the core feature: turning a route sheet into stops.
How:   Extract request data, delegate to RouteService, return the schema.
Who:   The courier app's "Scan Route Sheet" and "Paste Route" screens.

Request Flow (scan):
    1. Client sends multipart/form-data with 'file' and optional flags
    2. We read the file content into memory (bounded by size validation)
    3. RouteService handles: validate → store → OCR → parse → geocode
    4. Return 200 with ScanResponse
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile

from routesnap.schemas.stops import (
    ErrorResponse,
    ParseFlags,
    ParseRequest,
    ParseResponse,
    ScanResponse,
)
from routesnap.services.route_service import route_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stops", tags=["Stops"])


@router.post(
    "/parse",
    response_model=ParseResponse,
    summary="Parse route-sheet text",
    description=(
        "Parse tab-, comma- or column-aligned route-sheet text into stops. "
        "Malformed lines are dropped rather than rejected."
    ),
)
async def parse_stops(request: ParseRequest) -> ParseResponse:
    """Parse text the client already has (pasted CSV or on-device OCR)."""
    return route_service.parse_text(request)


@router.post(
    "/scan",
    response_model=ScanResponse,
    responses={
        400: {"description": "Invalid file type or size", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        503: {"description": "OCR service unavailable", "model": ErrorResponse},
    },
    summary="Scan a route-sheet photo",
    description=(
        "Upload a route-sheet photo (PNG, JPG, JPEG, max 10MB). The image is "
        "transcribed with Google Gemini Vision, parsed into stops, and each "
        "stop is geocoded into a map pin."
    ),
)
async def scan_stops(
    file: UploadFile = File(..., description="Route-sheet photo (PNG or JPEG)"),
    strict_status: Optional[bool] = Form(default=None),
    has_header: bool = Form(default=False),
    skip_comments: Optional[bool] = Form(default=None),
    fold_notes_case: bool = Form(default=True),
    geocode: bool = Form(default=True),
) -> ScanResponse:
    """
    Scan a route-sheet photo.

    Error responses (handled by global exception handlers):
        HTTP 400: Invalid file type, size or unreadable image (ValidationError)
        HTTP 503: Gemini unavailable (OCRServiceError / CircuitBreakerOpenError)
    """
    content = await file.read()

    logger.info(
        "Received scan request: filename=%s, size=%d bytes",
        file.filename or "unknown",
        len(content),
    )

    flags = ParseFlags(
        strict_status=strict_status,
        has_header=has_header,
        skip_comments=skip_comments,
        fold_notes_case=fold_notes_case,
    )
    try:
        return await route_service.scan_image(
            filename=file.filename or "route-sheet.jpg",
            content=content,
            content_length=file.size,
            flags=flags,
            geocode=geocode,
        )
    finally:
        await file.close()
