"""
RouteSnap Backend — Route Service (Business Logic Orchestrator)
=================================================================

What:  Coordinates photo → text → stops → coordinates → map pins.
Why:   The parser is pure and the providers are I/O; something has to order
       them, decide what a failed lookup means, and shape the response.
How:   Composes FileService, GeminiService, parse_route_sheet() and
       GeocodingService.
Who:   Called by the /api/stops route handlers.

Orchestration Flow (POST /api/stops/scan):
    ┌──────────┐   ┌────────────┐   ┌──────────┐   ┌──────────┐   ┌──────────┐
    │ Validate │──▶│ Gemini OCR │──▶│  Parse   │──▶│ Geocode  │──▶│  Pins    │
    │ & Store  │   │ (text)     │   │ (stops)  │   │ (coords) │   │ (colors) │
    └──────────┘   └────────────┘   └──────────┘   └──────────┘   └──────────┘

    The scratch photo is removed once OCR has run, whether it succeeded
    or not.

Geocoding Policy:
    A stop the geocoder cannot place is still returned in `stops` and listed
    in `ungeocoded`; only placed stops become pins. A geocoder outage never
    fails the scan.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from routesnap.config import settings
from routesnap.exceptions import GeocodingError
from routesnap.parser import StopRecord, parse_route_sheet
from routesnap.schemas.stops import (
    MapPin,
    ParseFlags,
    ParseRequest,
    ParseResponse,
    ScanResponse,
    StopResponse,
)
from routesnap.services.file_service import file_service
from routesnap.services.gemini_service import gemini_service
from routesnap.services.geocoding_service import Coordinates, geocoding_service

logger = logging.getLogger(__name__)

# Status → pin color for the map renderer
STATUS_PIN_COLORS: Dict[str, str] = {
    "active": "green",
    "suspended": "orange",
    "canceled": "red",
    "cancelled": "red",
}
DEFAULT_PIN_COLOR = "gray"

GeocodedStop = Tuple[StopRecord, Optional[Coordinates]]


def pin_color(status: str) -> str:
    return STATUS_PIN_COLORS.get(status, DEFAULT_PIN_COLOR)


def _stop_response(stop: StopRecord) -> StopResponse:
    return StopResponse(address=stop.address, status=stop.status, notes=stop.notes)


class RouteService:
    """
    Business logic layer for route-sheet operations.

    Responsibilities:
        - parse_text():    text → stops
        - scan_image():    photo → text → stops → pins
        - geocode_stops(): bounded-concurrency lookups, order preserved
        - build_pins():    split geocoded stops into pins and leftovers

    Stateless; providers are module-level singletons (patched in tests).
    """

    def parse_text(self, request: ParseRequest) -> ParseResponse:
        """Parse already-recognized text. Never raises for malformed text."""
        stops = parse_route_sheet(request.text, request.to_options())
        logger.info("Parsed %d stops from %d chars of text", len(stops), len(request.text))
        return ParseResponse(stops=[_stop_response(s) for s in stops], count=len(stops))

    async def geocode_stops(
        self,
        stops: Sequence[StopRecord],
        concurrency: Optional[int] = None,
    ) -> List[GeocodedStop]:
        """
        Geocode every stop, at most `concurrency` lookups in flight.

        Returns (stop, coordinates-or-None) pairs in the same order as `stops`.
        A GeocodingError for one stop is logged and yields None for that stop.
        """
        semaphore = asyncio.Semaphore(concurrency or settings.geocode_concurrency)

        async def lookup(stop: StopRecord) -> GeocodedStop:
            async with semaphore:
                try:
                    return stop, await geocoding_service.geocode(stop.address)
                except GeocodingError as e:
                    logger.warning("Could not geocode '%s': %s", stop.address, e.message)
                    return stop, None

        return list(await asyncio.gather(*(lookup(stop) for stop in stops)))

    def build_pins(
        self, geocoded: Sequence[GeocodedStop]
    ) -> Tuple[List[MapPin], List[StopResponse]]:
        """Split geocoded stops into map pins and stops without coordinates."""
        pins: List[MapPin] = []
        ungeocoded: List[StopResponse] = []
        for stop, coordinates in geocoded:
            if coordinates is None:
                ungeocoded.append(_stop_response(stop))
                continue
            pins.append(
                MapPin(
                    address=stop.address,
                    status=stop.status,
                    notes=stop.notes,
                    latitude=coordinates.latitude,
                    longitude=coordinates.longitude,
                    color=pin_color(stop.status),
                )
            )
        return pins, ungeocoded

    async def scan_image(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
        flags: Optional[ParseFlags] = None,
        geocode: bool = True,
    ) -> ScanResponse:
        """
        Complete workflow: validate → store → OCR → parse → geocode → pins.

        Raises:
            ValidationError: Invalid file type, size or unreadable image
            FileStorageError: Scratch copy could not be written
            OCRServiceError: Gemini failed after retries
            CircuitBreakerOpenError: Too many recent Gemini failures
        """
        flags = flags or ParseFlags()

        absolute_path, relative_path = await file_service.validate_and_store(
            filename=filename,
            content=content,
            content_length=content_length,
        )
        logger.info("Route sheet photo stored: %s", relative_path)

        try:
            raw_text = await gemini_service.extract_text(absolute_path)
        finally:
            await file_service.cleanup_file(absolute_path)

        stops = parse_route_sheet(raw_text, flags.to_options())
        logger.info("Scan produced %d stops from %d OCR lines", len(stops), len(raw_text.splitlines()))

        pins: List[MapPin] = []
        ungeocoded: List[StopResponse] = []
        if geocode and stops:
            pins, ungeocoded = self.build_pins(await self.geocode_stops(stops))
            logger.info("Geocoded %d of %d stops", len(pins), len(stops))

        return ScanResponse(
            raw_text=raw_text,
            stops=[_stop_response(s) for s in stops],
            pins=pins,
            ungeocoded=ungeocoded,
            count=len(stops),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
route_service = RouteService()
