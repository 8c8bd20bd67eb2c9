"""Utility functions for aspect RAG."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")


def timestamp_to_seconds(timestamp: str) -> float:
    """
    Convert MM:SS or HH:MM:SS (optionally with fractional seconds) to seconds.

    Args:
        timestamp: Timestamp string

    Returns:
        Time in seconds

    Raises:
        ValueError: If the timestamp is not in a supported format
    """
    parts = timestamp.strip().split(":")
    if len(parts) == 2:
        hours = 0
        minutes = int(parts[0])
        seconds = float(parts[1])
    elif len(parts) == 3:
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = float(parts[2])
    else:
        raise ValueError(f"Unsupported timestamp format: {timestamp!r}")

    if hours < 0 or minutes < 0 or seconds < 0:
        raise ValueError(f"Negative timestamp component: {timestamp!r}")

    return hours * 3600 + minutes * 60 + seconds


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: tuple = (Exception,),
) -> Callable:
    """
    Decorator for retry with exponential backoff.

    The final failure is re-raised unchanged.

    Args:
        max_retries: Maximum number of attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        retryable_exceptions: Tuple of exceptions to retry

    Returns:
        Decorator
    """
    return retry(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(
            multiplier=initial_delay,
            max=max_delay,
            exp_base=exponential_base,
        ),
        retry=retry_if_exception_type(retryable_exceptions),
        reraise=True,
    )


def elapsed_ms(start: float) -> int:
    """Milliseconds elapsed since a ``time.perf_counter()`` reading."""
    return int((time.perf_counter() - start) * 1000)


def chunk_list(lst: list, chunk_size: int) -> list[list]:
    """
    Split a list into chunks.

    Args:
        lst: List to split
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [lst[i : i + chunk_size] for i in range(0, len(lst), chunk_size)]
