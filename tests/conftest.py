"""
Pytest configuration and shared fixtures.

This file registers custom pytest markers and command-line options, and
provides settings, gateway and retry fixtures used across the suite.
"""

import pytest
from src.models.rows import ProcessingSettings
from src.services.accounting.in_memory import InMemoryAccountingGateway
from src.services.retry import RetryExecutor
from .factories import RecordingSleep


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against a real QuickBooks sandbox company"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring a QuickBooks sandbox"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def settings():
    return ProcessingSettings()


@pytest.fixture
def gateway():
    return InMemoryAccountingGateway()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retry_executor(recording_sleep):
    """Default retry policy with sleeps recorded instead of awaited"""
    return RetryExecutor(max_retries=3, base_delay_ms=1000, rate_limit_code="3200", sleep=recording_sleep)
