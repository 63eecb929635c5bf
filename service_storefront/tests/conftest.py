"""
Shared fixtures for Storefront service tests.
"""

import pytest

from shared.metrics import MetricsCollector
from shared.test_helpers import FakeRedis, FakeShipmentClient
from service_storefront.app.caching import CacheInvalidator, ReadThroughCache, RedisCacheStore
from service_storefront.app.persistence import InMemoryDocumentStore


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache_store(fake_redis):
    return RedisCacheStore("redis://unused:6379/0", client=fake_redis)


@pytest.fixture
def metrics():
    return MetricsCollector("storefront")


@pytest.fixture
def read_through(cache_store, metrics):
    return ReadThroughCache(cache_store, metrics=metrics)


@pytest.fixture
def invalidator(cache_store, metrics):
    return CacheInvalidator(cache_store, metrics=metrics)


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def shipment_client():
    return FakeShipmentClient()
