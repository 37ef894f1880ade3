"""
Tests for rate-limit retry with exponential backoff.
"""

import asyncio
import pytest
from src.core.errors import ExternalAPIError, RateLimitError
from src.services.retry import RetryExecutor, RetryingGateway


def _failing(errors, result="ok"):
    """Operation that raises each queued error once, then returns result"""
    calls = []

    async def operation():
        calls.append(1)
        if errors:
            raise errors.pop(0)
        return result

    return operation, calls


def test_success_without_retry(retry_executor, recording_sleep):
    operation, calls = _failing([])
    assert asyncio.run(retry_executor.run(operation)) == "ok"
    assert len(calls) == 1
    assert recording_sleep.delays == []


def test_rate_limit_retried_then_succeeds(retry_executor, recording_sleep):
    operation, calls = _failing([RateLimitError(), RateLimitError()])

    assert asyncio.run(retry_executor.run(operation)) == "ok"
    assert len(calls) == 3
    assert recording_sleep.delays == [1.0, 2.0]


def test_rate_limit_exhausts_retries_and_propagates_original(retry_executor, recording_sleep):
    errors = [RateLimitError(f"throttled {i}") for i in range(4)]
    last = errors[-1]
    operation, calls = _failing(list(errors))

    with pytest.raises(RateLimitError) as exc_info:
        asyncio.run(retry_executor.run(operation))

    assert exc_info.value is last
    assert len(calls) == 4
    assert recording_sleep.delays == [1.0, 2.0, 4.0]


def test_other_faults_not_retried(retry_executor, recording_sleep):
    error = ExternalAPIError("Duplicate", fault={"Error": [{"Message": "Duplicate", "code": "6240"}]})
    operation, calls = _failing([error])

    with pytest.raises(ExternalAPIError) as exc_info:
        asyncio.run(retry_executor.run(operation))

    assert exc_info.value is error
    assert len(calls) == 1
    assert recording_sleep.delays == []


def test_sdk_style_fault_code_is_retried(retry_executor, recording_sleep):
    class SdkError(Exception):
        fault = {"error": [{"message": "Throttled", "code": "3200"}]}

    operation, calls = _failing([SdkError()])

    assert asyncio.run(retry_executor.run(operation)) == "ok"
    assert recording_sleep.delays == [1.0]


def test_delay_doubles_each_retry():
    executor = RetryExecutor(base_delay_ms=250)
    assert [executor.delay_ms(n) for n in range(4)] == [250, 500, 1000, 2000]


def test_retrying_gateway_wraps_every_operation(gateway, retry_executor, recording_sleep):
    gateway.fail_next("create_vendor", RateLimitError())
    gateway.fail_next("find_customer_by_name", RateLimitError(), RateLimitError())
    retrying = RetryingGateway(gateway, retry_executor)

    async def run():
        vendor = await retrying.create_vendor("V")
        customer = await retrying.find_customer_by_name("Nobody")
        return vendor, customer

    vendor, customer = asyncio.run(run())

    assert vendor.name == "V"
    assert customer is None
    assert gateway.call_count("create_vendor") == 2
    assert gateway.call_count("find_customer_by_name") == 3
    assert recording_sleep.delays == [1.0, 1.0, 2.0]
