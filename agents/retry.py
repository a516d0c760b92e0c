# agents/retry.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from agents.errors import describe, is_non_retryable, is_retryable

logger = logging.getLogger("dealfinder.retry")

T = TypeVar("T")


class RetryConfig(BaseModel):
    """Delays are in milliseconds."""

    max_retries: int = Field(3, ge=0)
    base_delay: float = Field(1000, gt=0)
    max_delay: float = Field(10000, gt=0)
    backoff_multiplier: float = Field(2.0, gt=1)

    @model_validator(mode="after")
    def _max_not_below_base(self):
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return self

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        base = settings.retry_base_delay_ms
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay=base,
            max_delay=max(base, settings.retry_max_delay_ms),
            backoff_multiplier=settings.retry_backoff_multiplier,
        )


DEFAULT_RETRY_CONFIG = RetryConfig()


def _log_before_sleep(context: str, total_attempts: int):
    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay_ms = int((state.next_action.sleep if state.next_action else 0) * 1000)
        logger.warning(
            "Attempt %d/%d failed for %s, retrying in %dms: %s",
            state.attempt_number, total_attempts, context, delay_ms, describe(exc),
        )
    return _log


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    context: str = "operation",
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` up to `max_retries + 1` times.

    Non-retryable failures (see `agents.errors.is_non_retryable`) propagate
    after the first attempt. The delay before retry N is
    `min(base_delay * multiplier ** (N - 1), max_delay)`. The last error is
    always re-raised unchanged.
    """
    config = config or DEFAULT_RETRY_CONFIG
    total_attempts = config.max_retries + 1

    retrying = AsyncRetrying(
        stop=stop_after_attempt(total_attempts),
        wait=wait_exponential(
            multiplier=config.base_delay / 1000.0,
            exp_base=config.backoff_multiplier,
            max=config.max_delay / 1000.0,
        ),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_before_sleep(context, total_attempts),
        sleep=sleep,
        reraise=True,
    )

    try:
        return await retrying(operation)
    except Exception as exc:
        if is_non_retryable(exc):
            logger.info("Non-retryable error in %s, not retrying: %s", context, exc)
        else:
            logger.error("All %d attempts failed for %s: %s", total_attempts, context, exc)
        raise
