"""
RouteSnap Backend — Google Gemini OCR Implementation
======================================================

What:  Concrete OCR service using Google Gemini Vision to transcribe route sheets.
Why:   Route sheets are a mix of printed columns and handwritten status marks;
       a vision model reads both, where classic OCR loses the handwriting.
How:   Uploads the photo with a transcription prompt, returns the text, and
       wraps the call in tenacity retries and a circuit breaker.
Who:   Instantiated once at import; called by RouteService.scan_image().

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
       (connection drops, timeouts, 429/503 from the API)
    2. Circuit breaker to fail fast while Gemini is down
    3. Non-transient errors (bad key, invalid image) fail on the first attempt

Output Contract:
    The prompt asks for one stop per line with tab-separated columns, which is
    the first delimiter rule the parser tries. The model does not always
    comply; the parser's comma and column-gap rules cover the rest.
"""

import logging
import time
import uuid
from pathlib import Path
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    stop_after_attempt,
    retry_if_exception_type,
    before_sleep_log,
    RetryError,
)

from routesnap.config import settings
from routesnap.exceptions import OCRServiceError, CircuitBreakerOpenError
from routesnap.services.ocr_base import OCRService
from routesnap.services.retry_policy import backoff_wait

logger = logging.getLogger(__name__)

# Errors worth another attempt; everything else is reported immediately
TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding calls to the OCR provider.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Thread Safety:
        Not thread-safe (plain counters). uvicorn async workers share one
        process and one event loop, so a single instance is enough.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        """
        Args:
            failure_threshold: Consecutive failures before opening circuit
            recovery_timeout: Seconds to wait before testing recovery
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Returns:
            True if the request can proceed (CLOSED or HALF_OPEN after timeout).

        Raises:
            CircuitBreakerOpenError if circuit is OPEN and recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        # HALF_OPEN: allow the test request through
        return True

    def record_success(self) -> None:
        """Record a successful call. Resets the circuit breaker to CLOSED."""
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        """Record a failed call. May trigger CLOSED → OPEN transition."""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(OCRService):
    """
    Google Gemini Vision implementation of OCRService.

    Error Handling Chain:
        Transient API error → tenacity retries (3 attempts with backoff)
        → All retries fail → record circuit breaker failure → OCRServiceError
        → Threshold reached → future calls rejected instantly
        → Recovery timeout → allow test call (HALF_OPEN)
    """

    TRANSCRIBE_PROMPT = """You are transcribing a courier's delivery route sheet.
The sheet is a table with one delivery stop per row. Columns usually include an
address, a delivery status (for example Active, Suspended, Cancelled) and notes.

Instructions:
1. Output one line per table row, in the order the rows appear on the sheet
2. Separate columns with a single TAB character
3. Keep the header row if the sheet has one
4. Copy text exactly as written; do not correct addresses or expand abbreviations
5. Leave a column empty (but keep its TAB) when a cell is blank
6. Return ONLY the transcribed rows, with no commentary
7. If the image contains no table, return an empty response

Transcribe the route sheet in this image:"""

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def extract_text(self, image_path: str) -> str:
        """
        Transcribe a route-sheet photo.

        Flow:
            1. Check circuit breaker → may raise CircuitBreakerOpenError
            2. Send to Gemini with retry logic (transient errors only)
            3. Record success/failure in circuit breaker
            4. Return transcribed text

        Raises:
            CircuitBreakerOpenError: Circuit is open (too many recent failures)
            OCRServiceError: Gemini failed after all retry attempts, or with a
                non-transient error
        """
        request_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute()

        logger.info(
            "[%s] Starting Gemini transcription for image: %s",
            request_id,
            Path(image_path).name,
        )

        try:
            result = await self._call_gemini_with_retry(image_path, request_id)
            self.circuit_breaker.record_success()
            return result

        except CircuitBreakerOpenError:
            raise
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted: %s",
                request_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise OCRServiceError(
                message="Route sheet recognition failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Unexpected Gemini error: %s",
                request_id,
                str(e),
                exc_info=True,
            )
            raise OCRServiceError(
                message="An unexpected error occurred while reading the route sheet.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=backoff_wait(),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    async def _call_gemini_with_retry(self, image_path: str, request_id: str) -> str:
        """
        The actual Gemini call, kept separate so that only it is retried and
        the circuit breaker check in extract_text() is not.
        """
        start_time = time.time()

        try:
            image_file = genai.upload_file(path=image_path)

            response = await self.model.generate_content_async(
                [self.TRANSCRIBE_PROMPT, image_file],
                request_options={"timeout": 60},
            )

            duration_ms = (time.time() - start_time) * 1000
            # Only outer newlines go: a leading tab marks an empty first column
            extracted_text = response.text.strip("\r\n") if response.text else ""

            logger.info(
                "[%s] Gemini transcription completed in %.0fms, %d lines",
                request_id,
                duration_ms,
                len(extracted_text.splitlines()),
            )
            return extracted_text

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                duration_ms,
                str(e),
            )
            raise

    async def health_check(self) -> bool:
        """
        Check if Gemini API is reachable.

        How:     Lists available models (no token cost).
        Returns: True if reachable and authenticated, False otherwise.
        """
        try:
            models = genai.list_models()
            model_names = [m.name for m in models]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds the circuit breaker state, which must be shared across requests
gemini_service = GeminiService()
