"""Root conftest — shared test configuration and core fixtures."""

import os

import pytest

from lightrpc.config import get_settings
from lightrpc.core.context import create_call_context
from lightrpc.core.options import ProtocolOptions
from lightrpc.core.registry import ServiceRegistry

# Ensure a developer's shell or .env never changes test behaviour
for _key in list(os.environ):
    if _key.startswith("LIGHTRPC_"):
        del os.environ[_key]


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def options():
    return ProtocolOptions()


@pytest.fixture
def registry(options):
    return ServiceRegistry(options)


@pytest.fixture
def context():
    return create_call_context("test_conn", "127.0.0.1", verbose=True)
