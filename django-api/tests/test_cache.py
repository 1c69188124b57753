"""Tests for availability cache behavior.

Run with: pytest tests/test_cache.py -v
"""

from decimal import Decimal

import pytest
from django.core.cache import cache

from registrations import models
from registrations.handlers.cache import SESSION_LIST_KEY, roles_key, session_key


@pytest.fixture
def session(db):
    return models.Session.objects.create(title="Radio drama", price=Decimal("2800"), capacity=6)


def _prime(session_id) -> None:
    cache.set_many({SESSION_LIST_KEY: ["stale"], session_key(session_id): "stale", roles_key(session_id): "stale"})


@pytest.mark.django_db
class TestCacheInvalidation:
    """Tests for cache invalidation on model changes."""

    def test_session_save_invalidates_list_cache(self, session):
        """Saving a session invalidates the availability:list cache key."""
        _prime(session.pk)
        session.capacity = 8
        session.save()
        assert cache.get(SESSION_LIST_KEY) is None

    def test_session_save_invalidates_detail_cache(self, session):
        """Saving a session invalidates the availability:{id} cache key."""
        _prime(session.pk)
        session.save()
        assert cache.get(session_key(session.pk)) is None
        assert cache.get(roles_key(session.pk)) is None

    def test_role_save_invalidates_roles_cache(self, session):
        """Saving a character role invalidates the availability:{id}:roles cache key."""
        role = models.CharacterRole.objects.create(session=session, key="aileen", name="Aileen", capacity=2)
        _prime(session.pk)
        role.assigned = 1
        role.save()
        assert cache.get(roles_key(session.pk)) is None

    def test_other_sessions_keep_their_cache(self, session):
        other = models.Session.objects.create(title="Dubbing", price=Decimal("2800"), capacity=4)
        _prime(other.pk)
        session.save()
        assert cache.get(session_key(other.pk)) == "stale"

    def test_deleting_session_invalidates_detail_cache(self, session):
        session_id = session.pk
        _prime(session_id)
        session.delete()
        assert cache.get(session_key(session_id)) is None
