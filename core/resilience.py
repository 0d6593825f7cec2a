"""
Backoff and retry helpers.

Provides:
- Exponential backoff computation (shared by ledger writes and retry hints)
- Async retry with backoff
"""
import asyncio
import random
from dataclasses import dataclass
from typing import Optional, Callable, Any, TypeVar

from core.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    jitter: float = 0.1  # random jitter factor


def compute_backoff(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> float:
    """
    Delay before the given attempt, without jitter.

    ``attempt`` is zero-based: attempt 0 waits ``base_delay``, each following
    attempt multiplies by ``exponential_base``, capped at ``max_delay``.
    """
    if attempt < 0:
        attempt = 0
    return min(base_delay * (exponential_base ** attempt), max_delay)


async def retry_with_backoff(
    func: Callable[..., Any],
    *args,
    config: Optional[RetryConfig] = None,
    retryable_exceptions: tuple = (Exception,),
    **kwargs
) -> Any:
    """
    Execute function with exponential backoff retry.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        config: Retry configuration
        retryable_exceptions: Exceptions to retry on
        **kwargs: Keyword arguments for func

    Returns:
        Result of func

    Raises:
        Last exception if all retries fail
    """
    config = config or RetryConfig()

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            if attempt == config.max_attempts:
                logger.error(
                    f"All {config.max_attempts} retry attempts failed",
                    extra={"error": str(e)}
                )
                raise

            delay = compute_backoff(
                attempt - 1,
                config.base_delay,
                config.max_delay,
                config.exponential_base,
            )
            delay += delay * config.jitter * random.random()

            logger.warning(
                f"Attempt {attempt} failed, retrying in {delay:.2f}s",
                extra={"attempt": attempt, "delay": delay, "error": str(e)}
            )

            await asyncio.sleep(delay)
