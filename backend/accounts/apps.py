# accounts/apps.py
"""Accounts app configuration."""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Configuration for the accounts app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    verbose_name = "Accounts & Companies"

    def ready(self):
        """Register the reactions this app owns and the login receiver."""
        from django.contrib.auth.signals import user_logged_in

        from accounts import reactions  # noqa: F401
        from accounts.models import record_last_login

        # django.contrib.auth connects update_last_login under this uid;
        # it saves User outside any write context.
        user_logged_in.disconnect(dispatch_uid="update_last_login")
        user_logged_in.connect(record_last_login, dispatch_uid="record_last_login")
