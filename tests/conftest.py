"""Shared pytest fixtures for dix tests."""

import pytest

from dix import Container
from dix._internal.providers import ProviderInspector, ProvidersRegistry
from dix._internal.resolver import ObjectStore, Resolver


@pytest.fixture()
def container() -> Container:
    """Container with default options."""
    return Container()


@pytest.fixture()
def lenient_container() -> Container:
    """Container that resolves missing values to None or empty collections."""
    return Container(allow_values_null=True)


@pytest.fixture()
def registry() -> ProvidersRegistry:
    """Empty providers registry."""
    return ProvidersRegistry()


@pytest.fixture()
def store() -> ObjectStore:
    """Empty object store."""
    return ObjectStore()


@pytest.fixture()
def resolver(registry: ProvidersRegistry, store: ObjectStore) -> Resolver:
    """Resolver over the registry and store fixtures."""
    return Resolver(registry, store)


@pytest.fixture()
def inspector() -> ProviderInspector:
    """ProviderInspector instance."""
    return ProviderInspector()
