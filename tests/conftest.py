"""Pytest configuration and shared fixtures for the intentbridge test suite."""

import logging
import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest

# Make the tests.fixtures package importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from intentbridge.bridge.context import BridgeContext
from intentbridge.bridge.dispatcher import IntentDispatcher
from intentbridge.bridge.sink import ResponseSink
from intentbridge.bridge.transport import BridgeTransport
from intentbridge.connector import Connector
from tests.fixtures.channels import StubChannel
from tests.fixtures.handlers import RecordingHandler
from tests.fixtures.sdk import FakeConnectivity, FakeDIDSdk


# Configure logging for tests
logging.basicConfig(level=logging.WARNING)


@pytest.fixture
def context() -> BridgeContext:
    return BridgeContext()


@pytest.fixture
def sink(context: BridgeContext) -> ResponseSink:
    return ResponseSink(context)


@pytest.fixture
def dispatcher(context: BridgeContext, sink: ResponseSink) -> IntentDispatcher:
    return IntentDispatcher(context, sink)


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def channel() -> StubChannel:
    return StubChannel()


@pytest.fixture
async def transport(channel: StubChannel, context: BridgeContext) -> AsyncGenerator[BridgeTransport, None]:
    """Started transport over the stub channel, closed after the test."""
    transport = BridgeTransport(channel, context)
    await transport.start()
    yield transport
    await transport.close()


@pytest.fixture
def connectivity() -> FakeConnectivity:
    return FakeConnectivity()


@pytest.fixture
async def connector(channel: StubChannel, connectivity: FakeConnectivity) -> AsyncGenerator[Connector, None]:
    """Configured, started connector over the stub channel."""
    connector = Connector(channel)
    connector.configure(FakeDIDSdk(), connectivity)
    await connector.start()
    yield connector
    await connector.drain()
    await connector.close()


# Test markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Component integration tests")
    config.addinivalue_line("markers", "slow: Tests that take >1s")


# Timeout configuration
def pytest_collection_modifyitems(config, items):
    """Add a timeout to every test based on its markers."""
    for item in items:
        if item.get_closest_marker("slow"):
            item.add_marker(pytest.mark.timeout(30))
        elif item.get_closest_marker("unit"):
            item.add_marker(pytest.mark.timeout(5))
        else:
            item.add_marker(pytest.mark.timeout(10))
