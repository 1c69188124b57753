"""Pytest configuration and shared fixtures."""

import pytest
from rest_framework.test import APIClient

from registrations.conf import RegistrationConfig
from registrations.domain import Session
from registrations.services import build_engine
from registrations.stores.memory_store import InMemoryRegistrationStore
from tests.factories import FakeClock, make_session


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryRegistrationStore:
    return InMemoryRegistrationStore()


@pytest.fixture
def config() -> RegistrationConfig:
    return RegistrationConfig()


@pytest.fixture
def engine(store, config, clock):
    return build_engine(store=store, config=config, clock=clock)


@pytest.fixture
def add_session(store):
    """Seed the in-memory store with a session built by ``make_session``."""

    def _add(*args, **kwargs) -> Session:
        session = make_session(*args, **kwargs)
        store.add_session(session)
        return session

    return _add
