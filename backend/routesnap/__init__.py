"""
RouteSnap Backend — Application Package Initializer
=====================================================

What: Route-sheet scanning backend: photo → OCR text → stops → map pins.

Architecture Note:
    ┌─────────────────────────────────────┐
    │       Routes / CLI (entry points)   │  ← HTTP and terminal concerns only
    ├─────────────────────────────────────┤
    │      Services (orchestration, I/O)  │  ← OCR, geocoding, uploads
    ├─────────────────────────────────────┤
    │      Parser (pure text → stops)     │  ← no I/O, no framework imports
    └─────────────────────────────────────┘

    The parser sits at the bottom and imports nothing from the layers above,
    so the CLI and tests use it without FastAPI or provider SDKs configured.
"""

__version__ = "1.0.0"
