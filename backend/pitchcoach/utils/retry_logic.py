# backend/pitchcoach/utils/retry_logic.py
"""
Backoff for LLM calls.

End-of-call analyses tend to arrive in bursts (a practice session ends, the
webhook and the client both ask for grading), so 429s from the model provider
are normal. retry_async() retries only the exception types it is given and
honors a Retry-After header when the error carries one.
"""

import asyncio
import functools
import random
from typing import Any, Callable, Optional, Tuple, Type

from pitchcoach.utils.logger import logger


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """base_delay * exponential_base ** attempt, capped, scaled into [0.5x, 1.5x) with jitter."""
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_after_seconds(exc: BaseException) -> Optional[float]:
    """Retry-After from an HTTP error response, if the provider sent one in seconds."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None


def retry_async(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[BaseException, int], Any]] = None,
):
    """
    Retry a coroutine function on `exceptions`.

    The wait is the larger of the computed backoff and the server's
    Retry-After, never above max_delay. Other exceptions propagate at once.

        @retry_async(max_retries=2, exceptions=(openai.RateLimitError,))
        async def grade():
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempts = max_retries + 1
            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt + 1 >= attempts:
                        logger.error(f"[Retry] {func.__name__} gave up after {attempts} attempts: {e}")
                        raise

                    delay = calculate_backoff(attempt, base_delay, max_delay)
                    server_hint = retry_after_seconds(e)
                    if server_hint is not None:
                        delay = min(max(delay, server_hint), max_delay)

                    logger.warning(
                        f"[Retry] {func.__name__} attempt {attempt + 1}/{attempts} failed "
                        f"({type(e).__name__}), waiting {delay:.2f}s"
                    )
                    if on_retry is not None:
                        result = on_retry(e, attempt)
                        if asyncio.iscoroutine(result):
                            await result
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
