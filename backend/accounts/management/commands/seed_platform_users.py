# accounts/management/commands/seed_platform_users.py
"""
Create the platform accounts: one DEVELOPER and one ADMIN.

Emails default to SEED_DEVELOPER_EMAIL / SEED_ADMIN_EMAIL, the password to
SEED_PASSWORD. Running it again leaves existing accounts untouched.

Usage:
    python manage.py seed_platform_users
    python manage.py seed_platform_users --admin-email ops@example.com --password '...'
"""

import os

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand, CommandError

from accounts.models import UserRole
from accounts.roles import Role, default_permissions
from accounts.validators import MIN_PASSWORD_LENGTH, normalize_email
from store.repository import Ensure, Ref, run_transaction

User = get_user_model()


class Command(BaseCommand):
    help = "Create the DEVELOPER and ADMIN platform accounts"

    def add_arguments(self, parser):
        parser.add_argument(
            "--developer-email",
            default=os.getenv("SEED_DEVELOPER_EMAIL", "developer@staffdesk.local"),
        )
        parser.add_argument(
            "--admin-email",
            default=os.getenv("SEED_ADMIN_EMAIL", "admin@staffdesk.local"),
        )
        parser.add_argument(
            "--password",
            default=os.getenv("SEED_PASSWORD", ""),
            help="Password for both accounts (default: $SEED_PASSWORD)",
        )

    def handle(self, *args, **options):
        password = options["password"]
        if len(password) < MIN_PASSWORD_LENGTH:
            raise CommandError(
                f"A password of at least {MIN_PASSWORD_LENGTH} characters is required "
                "(--password or SEED_PASSWORD)"
            )

        accounts = [
            (Role.DEVELOPER, options["developer_email"], "Developer"),
            (Role.ADMIN, options["admin_email"], "Admin"),
        ]
        for role, email, last_name in accounts:
            result = run_transaction([
                Ensure("user", User, {"email": normalize_email(email)}, {
                    "first_name": "Platform",
                    "last_name": last_name,
                    "password": make_password(password),
                }),
                Ensure("role", UserRole, {"user": Ref("user"), "name": str(role)}, {
                    "permissions": default_permissions(role),
                }),
            ])
            state = "created" if result.was_created("user") else "exists"
            self.stdout.write(f"  {role}: {result['user'].email} ({state})")

        self.stdout.write(self.style.SUCCESS("Platform accounts ready."))
