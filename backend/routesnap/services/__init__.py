# Services package init
"""
RouteSnap Backend — Services Layer
====================================

What:  Business logic layer sitting between routes (HTTP) and the outside world.
Why:   Routes handle HTTP; services handle provider calls and orchestration.

Service Inventory:
    - OCRService (abstract): Interface for route-sheet text recognition
    - GeminiService: Concrete OCR implementation using Google Gemini Vision
    - FileService: Upload validation and scratch storage
    - GeocodingService: Address → coordinates over HTTP
    - RouteService: Orchestrates photo → text → stops → map pins
    - retry_policy.backoff_wait(): Shared tenacity backoff for provider calls
"""
