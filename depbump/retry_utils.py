"""
retry_utils.py - typed retry helpers for depbump.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, ParamSpec, TypeVar, cast

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

P = ParamSpec("P")
R = TypeVar("R")


class TransientError(Exception):
    """A failure worth retrying (network hiccups while talking to an index)."""


def typed_retry(*args: Any, **kwargs: Any) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Typed wrapper to avoid untyped decorator issues with tenacity retry."""
    return cast(Callable[[Callable[P, R]], Callable[P, R]], retry(*args, **kwargs))


def retry_transient(
    attempts: int = 3,
    wait_min: float = 2,
    wait_max: float = 10,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Retry on TransientError with exponential backoff, re-raising the last one."""
    return typed_retry(
        retry=retry_if_exception_type(TransientError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=wait_min, max=wait_max),
        reraise=True,
    )
