"""
RouteSnap Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract between the app and backend.
Why:   Strict input validation, automatic serialization, and OpenAPI docs.
Who:   Route handlers and RouteService.

Design Decision:
    Schemas are separate from the parser's dataclasses (StopRecord,
    ParseOptions) so the parser has no pydantic dependency and stays a plain
    function library usable from the CLI.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from routesnap.config import settings
from routesnap.parser import ParseOptions


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ParseFlags(BaseModel):
    """
    Parser switches shared by the text and photo endpoints.

    Unset flags fall back to the PARSER_* settings.
    """
    strict_status: Optional[bool] = Field(
        default=None,
        description="Fold statuses onto active/suspended/canceled/unknown",
    )
    has_header: bool = Field(default=False, description="First line is a header row")
    debug: Optional[bool] = Field(default=None, description="Log parser diagnostics")
    skip_comments: Optional[bool] = Field(
        default=None,
        description="Drop lines starting with '#' or '//'",
    )
    fold_notes_case: bool = Field(default=True, description="Lower-case the notes field")

    def to_options(self) -> ParseOptions:
        return ParseOptions(
            strict_status=(
                settings.parser_strict_status if self.strict_status is None else self.strict_status
            ),
            has_header=self.has_header,
            debug=settings.parser_debug if self.debug is None else self.debug,
            skip_comments=(
                settings.parser_skip_comments if self.skip_comments is None else self.skip_comments
            ),
            fold_notes_case=self.fold_notes_case,
        )


class ParseRequest(ParseFlags):
    """
    What:  Body of POST /api/stops/parse.
    Who:   Clients that already have text (pasted CSV, on-device OCR).
    """
    text: str = Field(description="Raw route-sheet text, one stop per line")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class StopResponse(BaseModel):
    """One parsed stop."""
    address: str = Field(description="Normalized address (lower-case, single spaces)")
    status: str = Field(description="Status token, or canonical status in strict mode")
    notes: str = Field(default="", description="Trailing free-text note")

    model_config = {"from_attributes": True}


class ParseResponse(BaseModel):
    """
    What:  Result of parsing route-sheet text.
    Who:   Returned by POST /api/stops/parse.
    """
    stops: List[StopResponse] = Field(description="Stops in route-sheet order")
    count: int = Field(description="Number of stops parsed")


class MapPin(BaseModel):
    """
    What:  A stop ready for the map renderer.
    Why:   The renderer only needs coordinates and a color; the status → color
           mapping is decided server-side so every client shows the same thing.
    """
    address: str
    status: str
    notes: str = ""
    latitude: float
    longitude: float
    color: str = Field(description="Pin color derived from status")


class ScanResponse(BaseModel):
    """
    What:  Result of scanning a route-sheet photo.
    Who:   Returned by POST /api/stops/scan.

    Why include raw_text:
        The courier can compare the transcription against the paper when a
        stop looks wrong, and resubmit corrected text to /api/stops/parse.
    """
    message: str = Field(default="Route sheet scanned successfully")
    raw_text: str = Field(description="Text returned by the OCR provider")
    stops: List[StopResponse] = Field(description="Parsed stops in route-sheet order")
    pins: List[MapPin] = Field(default_factory=list, description="Geocoded stops")
    ungeocoded: List[StopResponse] = Field(
        default_factory=list,
        description="Stops the geocoder could not place",
    )
    count: int = Field(description="Number of stops parsed")


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "validation_error",
            "message": "File type '.gif' is not supported",
            "details": {"field": "file"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and OCR provider status."""
    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    ocr: str = Field(description="OCR provider status: available, unavailable, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
