"""Bounded retry with exponential backoff for fetch and contract-read boundaries."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import httpx
import structlog

from nftcatalog.errors import HttpError

log = structlog.get_logger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float = 0.5) -> float:
    """Return delay in seconds before retry number ``attempt`` (0-based). Exponential backoff."""
    return base_delay * (2 ** attempt)


def is_retryable_fetch_error(exc: BaseException) -> bool:
    """Transport failures, 429 and 5xx are worth another try; 4xx and bad documents are not."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, HttpError):
        return exc.status == 429 or exc.status >= 500
    return False


async def with_retries(
    op: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 0,
    base_delay: float = 0.5,
    retryable: Callable[[BaseException], bool] = lambda exc: True,
    what: str = "operation",
) -> T:
    """Run ``op``; on a retryable error try again up to ``max_retries`` more times."""
    attempt = 0
    while True:
        try:
            return await op()
        except Exception as e:
            if attempt >= max_retries or not retryable(e):
                raise
            delay = backoff_delay(attempt, base_delay)
            log.info("retrying", what=what, attempt=attempt + 1, delay=delay, error=str(e))
            attempt += 1
            await asyncio.sleep(delay)
