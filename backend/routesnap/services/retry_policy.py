"""
RouteSnap Backend — Shared Retry Backoff
==========================================

What:  The wait strategy used by every provider client (Gemini, geocoder).
How:   Exponential growth from RETRY_MIN_WAIT, capped at RETRY_MAX_WAIT,
       plus up to one second of random jitter so parallel scans spread out.

       wait(n) = clamp(min_wait * 2^(n-1), min_wait, max_wait) + random(0, 1)
"""

from tenacity import wait_exponential, wait_random
from tenacity.wait import wait_base

from routesnap.config import settings

JITTER_SECONDS = 1


def backoff_wait() -> wait_base:
    return wait_exponential(
        multiplier=settings.retry_min_wait,
        min=settings.retry_min_wait,
        max=settings.retry_max_wait,
    ) + wait_random(0, JITTER_SECONDS)
