"""
Tests for the designate_master_admin management command.
"""
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.rbac.models import AuditAction, AuditLogEntry, User


def run(**options):
    out = StringIO()
    call_command('designate_master_admin', stdout=out, **options)
    return out.getvalue()


@pytest.mark.django_db
class TestDesignateMasterAdmin:

    def test_bootstrap_creates_first_master_admin(self):
        output = run(email='founder@example.com', create_user=True, name='Founder')

        founder = User.objects.get(email='founder@example.com')
        assert founder.is_master_admin is True
        assert founder.name == 'Founder'
        assert 'first master administrator' in output
        entry = AuditLogEntry.objects.get()
        assert entry.details['bootstrap'] is True

    def test_unknown_user_without_create(self):
        with pytest.raises(CommandError, match='User not found'):
            run(email='nobody@example.com')

    def test_bootstrap_refused_when_admin_exists(self, master_admin, user):
        with pytest.raises(CommandError, match='already exists'):
            run(email=user.email)

        user.refresh_from_db()
        assert user.is_master_admin is False

    def test_grant_with_actor(self, master_admin, user):
        output = run(email=user.email, actor=master_admin.email)

        user.refresh_from_db()
        assert user.is_master_admin is True
        assert 'designated as a master administrator' in output
        assert AuditLogEntry.objects.get().user_id == master_admin.id

    def test_email_lookup_ignores_case(self, master_admin, user):
        run(email='Alice@Example.com', actor='ROOT@example.com', create_user=True)

        assert User.objects.filter(email__iexact='alice@example.com').count() == 1
        user.refresh_from_db()
        assert user.is_master_admin is True

    def test_unknown_actor(self, master_admin, user):
        with pytest.raises(CommandError, match='Actor not found'):
            run(email=user.email, actor='ghost@example.com')

    def test_revoke_requires_actor(self, master_admin, second_master_admin):
        with pytest.raises(CommandError, match='--actor is required'):
            run(email=second_master_admin.email, revoke=True)

    def test_revoke(self, master_admin, second_master_admin):
        run(email=second_master_admin.email, actor=master_admin.email, revoke=True)

        second_master_admin.refresh_from_db()
        assert second_master_admin.is_master_admin is False
        assert AuditLogEntry.objects.get().action == AuditAction.REVOKE_MASTER_ADMIN

    def test_guard_errors_become_command_errors(self, master_admin, second_master_admin):
        with pytest.raises(CommandError, match='cannot modify own admin status'):
            run(email=master_admin.email, actor=master_admin.email, revoke=True)
