"""
RouteSnap Backend — Gemini OCR Service Unit Tests (Mocked)
============================================================

What:  Tests for GeminiService with mocked Google Generative AI SDK.
Why:   Tests should not make real API calls (costs money, requires network).
How:   Patches the genai module and model to simulate success/failure.

What we test:
    ✅ Successful transcription returns the stripped text
    ✅ Non-transient failures become OCRServiceError on the first attempt
    ✅ Circuit breaker opens after consecutive failures
    ✅ Circuit breaker resets after recovery timeout
    ❌ Real API calls (use integration tests for that)
"""

import time
import warnings

import pytest
from unittest.mock import patch, MagicMock, AsyncMock

from routesnap.parser import parse_route_sheet
from routesnap.services.gemini_service import GeminiService, CircuitBreaker
from routesnap.services.retry_policy import backoff_wait
from routesnap.exceptions import CircuitBreakerOpenError, OCRServiceError


class TestCircuitBreaker:
    """Tests for the CircuitBreaker resilience pattern."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute() is True

    def test_opens_at_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == "open"

    def test_open_circuit_rejects_calls(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        cb.record_failure()

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert 0 < exc_info.value.recovery_time <= 60

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.failure_count == 2

        cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == "closed"

    def test_half_open_after_recovery_timeout(self):
        """With a 0s timeout the next check moves OPEN → HALF_OPEN and lets one call through."""
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        assert cb.state == "open"

        time.sleep(0.01)
        assert cb.can_execute() is True
        assert cb.state == "half_open"

    def test_half_open_failure_reopens(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=0)
        for _ in range(3):
            cb.record_failure()
        cb.can_execute()
        assert cb.state == "half_open"

        cb.record_failure()
        assert cb.state == "open"

    def test_success_after_half_open_closes(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_success()
        assert cb.state == "closed"
        assert cb.failure_count == 0


def _mock_model(text=None, side_effect=None):
    model = MagicMock()
    if side_effect is not None:
        model.generate_content_async = AsyncMock(side_effect=side_effect)
    else:
        response = MagicMock()
        response.text = text
        model.generate_content_async = AsyncMock(return_value=response)
    return model


class TestGeminiServiceMocked:
    """Tests for GeminiService with mocked Gemini API."""

    @pytest.mark.asyncio
    async def test_extract_text_success(self):
        with patch("routesnap.services.gemini_service.genai") as mock_genai:
            mock_genai.upload_file.return_value = MagicMock()

            service = GeminiService()
            service.model = _mock_model("\n123 Main St\tActive\tLeave at door\n")

            result = await service.extract_text("/path/to/sheet.jpg")

            assert result == "123 Main St\tActive\tLeave at door"
            mock_genai.upload_file.assert_called_once_with(path="/path/to/sheet.jpg")
            prompt, _ = service.model.generate_content_async.call_args.args[0]
            assert "TAB" in prompt

    @pytest.mark.asyncio
    async def test_leading_tab_of_blank_first_cell_survives(self):
        """Only outer newlines are trimmed; a row with an empty address stays address-less."""
        with patch("routesnap.services.gemini_service.genai"):
            service = GeminiService()
            service.model = _mock_model("\tActive\tno address\n1 Main St\tActive\tok\n")

            text = await service.extract_text("/path/to/sheet.jpg")

        assert text == "\tActive\tno address\n1 Main St\tActive\tok"
        assert [s.address for s in parse_route_sheet(text)] == ["1 main st"]

    @pytest.mark.asyncio
    async def test_extract_text_empty_response(self):
        with patch("routesnap.services.gemini_service.genai"):
            service = GeminiService()
            service.model = _mock_model(text="")

            assert await service.extract_text("/path/to/blank.jpg") == ""

    @pytest.mark.asyncio
    async def test_non_transient_error_is_not_retried(self):
        """A bad request fails on the first attempt and is wrapped in OCRServiceError."""
        with patch("routesnap.services.gemini_service.genai"):
            service = GeminiService()
            service.model = _mock_model(side_effect=ValueError("invalid image"))

            with pytest.raises(OCRServiceError) as exc_info:
                await service.extract_text("/path/to/sheet.jpg")

            assert service.model.generate_content_async.await_count == 1
            assert exc_info.value.context["error_type"] == "ValueError"
            assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_success_resets_breaker(self):
        with patch("routesnap.services.gemini_service.genai"):
            service = GeminiService()
            service.circuit_breaker.record_failure()
            service.model = _mock_model("1 First Ave")

            await service.extract_text("/path/to/sheet.jpg")
            assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_extract_text_circuit_breaker_open(self):
        with patch("routesnap.services.gemini_service.genai"):
            service = GeminiService()
            service.model = _mock_model("unused")

            for _ in range(service.circuit_breaker.failure_threshold):
                service.circuit_breaker.record_failure()

            with pytest.raises(CircuitBreakerOpenError):
                await service.extract_text("/path/to/sheet.jpg")
            service.model.generate_content_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_health_check_true_when_reachable(self):
        with patch("routesnap.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.return_value = [MagicMock()]

            service = GeminiService()
            assert await service.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self):
        with patch("routesnap.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.side_effect = PermissionError("bad key")

            service = GeminiService()
            assert await service.health_check() is False


class TestBackoffWait:
    """Shared exponential backoff used by the Gemini and geocoder clients."""

    @pytest.mark.parametrize("attempt, low, high", [(1, 2, 3), (2, 4, 5), (3, 8, 9), (6, 10, 11)])
    def test_wait_grows_then_caps(self, attempt, low, high):
        with patch("routesnap.services.retry_policy.settings") as mock_settings:
            mock_settings.retry_min_wait = 2
            mock_settings.retry_max_wait = 10
            wait = backoff_wait()

        assert low <= wait(MagicMock(attempt_number=attempt)) <= high

    def test_builds_without_deprecation_warnings(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            backoff_wait()
