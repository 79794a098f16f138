"""
RouteSnap Backend — Abstract OCR Service Interface
====================================================

What:  Abstract base class for providers that turn a route-sheet photo into text.
Why:   The parser only cares that it receives newline-separated text. Keeping
       the provider behind an interface lets Gemini be swapped for Tesseract
       or a device-side engine without touching RouteService.
How:   Concrete implementations inherit from OCRService and implement
       extract_text() and health_check().
Who:   Called by RouteService.scan_image().
"""

from abc import ABC, abstractmethod


class OCRService(ABC):
    """
    Abstract interface for route-sheet text recognition.

    Contract:
        - extract_text() accepts a file path and returns recognized text,
          one route-sheet row per line. Text may be noisy; the parser copes.
        - Implementations handle their own retries and wrap provider errors
          in OCRServiceError.

    Implementations:
        - GeminiService: Google Gemini Vision API (default)
    """

    @abstractmethod
    async def extract_text(self, image_path: str) -> str:
        """
        Recognize the text of a route-sheet photo.

        Args:
            image_path: Absolute path to a validated PNG/JPEG on disk.

        Returns:
            Recognized text, newline-separated. Empty string when nothing
            was found; never None.

        Raises:
            OCRServiceError: The provider failed after all retries.
            CircuitBreakerOpenError: Too many recent consecutive failures.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability probe (no recognition quota consumed)."""
        ...
