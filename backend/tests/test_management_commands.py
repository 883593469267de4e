# tests/test_management_commands.py
import pytest
from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command

from accounts.models import UserRole
from accounts.roles import Role

User = get_user_model()


@pytest.mark.django_db
class TestSeedPlatformUsers:
    def test_creates_developer_and_admin(self, capsys):
        call_command("seed_platform_users", "--password", "seed-password")

        out = capsys.readouterr().out
        assert "DEVELOPER: developer@staffdesk.local (created)" in out
        assert "ADMIN: admin@staffdesk.local (created)" in out

        admin = User.objects.get(email="admin@staffdesk.local")
        assert admin.check_password("seed-password")
        assert list(admin.roles.values_list("name", flat=True)) == [Role.ADMIN]

    def test_running_twice_changes_nothing(self, capsys):
        call_command("seed_platform_users", "--password", "seed-password")
        call_command("seed_platform_users", "--password", "other-password", "--admin-email", "ADMIN@staffdesk.local")

        assert "ADMIN: admin@staffdesk.local (exists)" in capsys.readouterr().out
        assert User.objects.count() == 2
        assert UserRole.objects.count() == 2
        assert User.objects.get(email="admin@staffdesk.local").check_password("seed-password")

    def test_short_password_rejected(self, monkeypatch):
        monkeypatch.delenv("SEED_PASSWORD", raising=False)
        with pytest.raises(CommandError):
            call_command("seed_platform_users", "--password", "short")
        assert not User.objects.exists()
