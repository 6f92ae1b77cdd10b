import typing as tp

import pytest

from cloud_conformance_tests.providers import base
from cloud_conformance_tests.providers import inmemory
from cloud_conformance_tests.resource_management import manager
from cloud_conformance_tests.utils import api_trace


@pytest.fixture(autouse=True)
def reset_clouds() -> tp.Generator[None, None, None]:
    """Start every test with fresh simulated clouds."""
    inmemory.reset_clouds()
    yield
    inmemory.reset_clouds()


@pytest.fixture
def inmemory_config() -> base.ProviderConfig:
    return base.ProviderConfig(account_number="12345", cloud_name="testcloud")


@pytest.fixture
def inmemory_provider(inmemory_config: base.ProviderConfig) -> inmemory.InMemoryProvider:
    provider = inmemory.InMemoryProvider(config=inmemory_config, trace=api_trace.ApiTrace())
    provider.connect()
    return provider


@pytest.fixture
def resource_manager(
    inmemory_provider: inmemory.InMemoryProvider,
) -> manager.SharedResourceManager:
    manager_obj = manager.SharedResourceManager()
    manager_obj.init(provider=inmemory_provider)
    return manager_obj
