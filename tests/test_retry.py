# tests/test_retry.py
import pytest
from pydantic import ValidationError as PydanticValidationError

from agents.errors import ConfigurationError, TransientServiceError
from agents.retry import DEFAULT_RETRY_CONFIG, RetryConfig, retry_with_backoff
from tests.helpers import SleepRecorder

FAST = RetryConfig(max_retries=3, base_delay=100, max_delay=1000, backoff_multiplier=2)


@pytest.mark.asyncio
async def test_transient_failures_then_success():
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        if calls["n"] < 3:
            raise TransientServiceError("Request timeout after 35s")
        return "ok"

    sleep = SleepRecorder()
    out = await retry_with_backoff(op, FAST, context="test", sleep=sleep)

    assert out == "ok"
    assert calls["n"] == 3
    assert sleep.delays == pytest.approx([0.1, 0.2])


@pytest.mark.asyncio
async def test_non_retryable_fails_after_one_attempt():
    err = ConfigurationError("Invalid API key")
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        raise err

    sleep = SleepRecorder()
    with pytest.raises(ConfigurationError) as exc_info:
        await retry_with_backoff(op, FAST, sleep=sleep)

    assert exc_info.value is err
    assert calls["n"] == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_exhausted_retries_reraise_last_error():
    raised = []

    async def op():
        e = TransientServiceError(f"Network connection error #{len(raised)}")
        raised.append(e)
        raise e

    sleep = SleepRecorder()
    cfg = RetryConfig(max_retries=2, base_delay=100, max_delay=1000)
    with pytest.raises(TransientServiceError) as exc_info:
        await retry_with_backoff(op, cfg, sleep=sleep)

    assert len(raised) == 3
    assert exc_info.value is raised[-1]
    assert sleep.delays == pytest.approx([0.1, 0.2])


@pytest.mark.asyncio
async def test_delays_are_capped_at_max_delay():
    async def op():
        raise TransientServiceError("Service unavailable")

    sleep = SleepRecorder()
    cfg = RetryConfig(max_retries=4, base_delay=100, max_delay=250, backoff_multiplier=2)
    with pytest.raises(TransientServiceError):
        await retry_with_backoff(op, cfg, sleep=sleep)

    assert sleep.delays == pytest.approx([0.1, 0.2, 0.25, 0.25])


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt():
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        raise TransientServiceError("Request timeout")

    with pytest.raises(TransientServiceError):
        await retry_with_backoff(op, RetryConfig(max_retries=0), sleep=SleepRecorder())
    assert calls["n"] == 1


def test_default_config():
    assert DEFAULT_RETRY_CONFIG.max_retries == 3
    assert DEFAULT_RETRY_CONFIG.base_delay == 1000
    assert DEFAULT_RETRY_CONFIG.max_delay == 10000
    assert DEFAULT_RETRY_CONFIG.backoff_multiplier == 2


def test_max_delay_below_base_is_rejected():
    with pytest.raises(PydanticValidationError):
        RetryConfig(base_delay=1000, max_delay=500)
