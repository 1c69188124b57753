"""Tests for admin editing of sessions and roles.

Run with: pytest tests/test_admin.py -v
"""

from decimal import Decimal

import pytest
from django.contrib.admin.sites import AdminSite

from registrations import models
from registrations.admin import CharacterRoleForm, SessionAdmin, SessionAdminForm


@pytest.fixture
def session(db):
    session = models.Session.objects.create(title="Radio drama", price=Decimal("2800"), capacity=4)
    models.CharacterRole.objects.create(session=session, key="aileen", name="Aileen", capacity=2)
    return session


def _form_data(session, **changes):
    data = {
        "title": session.title,
        "starts_at": "",
        "price": "2800",
        "capacity": session.capacity,
        "hidden_buffer": session.hidden_buffer,
        "status": session.status,
    }
    data.update(changes)
    return data


@pytest.mark.django_db
class TestSessionAdminForm:
    def test_capacity_cannot_drop_below_registrations(self, session):
        models.Session.objects.filter(pk=session.pk).update(current_registrations=3)

        form = SessionAdminForm(data=_form_data(session, capacity=2), instance=session)

        assert not form.is_valid()

    def test_hidden_buffer_counts_towards_the_limit(self, session):
        models.Session.objects.filter(pk=session.pk).update(current_registrations=3)

        form = SessionAdminForm(data=_form_data(session, capacity=2, hidden_buffer=1), instance=session)

        assert form.is_valid(), form.errors

    def test_role_capacity_cannot_drop_below_assigned(self, session):
        role = session.roles.get(key="aileen")
        models.CharacterRole.objects.filter(pk=role.pk).update(assigned=2)

        form = CharacterRoleForm(data={"key": "aileen", "name": "Aileen", "capacity": 1}, instance=role)

        assert not form.is_valid()
        assert "capacity" in form.errors


@pytest.mark.django_db
class TestSessionAdminSave:
    def test_save_keeps_counters_committed_meanwhile(self, session, rf, admin_user):
        stale = models.Session.objects.get(pk=session.pk)
        # A reservation commits after the admin page was loaded.
        models.Session.objects.filter(pk=session.pk).update(current_registrations=3)
        stale.title = "Radio drama (evening)"
        request = rf.post("/")
        request.user = admin_user

        SessionAdmin(models.Session, AdminSite()).save_model(request, stale, form=None, change=True)

        session.refresh_from_db()
        assert session.title == "Radio drama (evening)"
        assert session.current_registrations == 3
