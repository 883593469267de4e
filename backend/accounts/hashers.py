# accounts/hashers.py
"""Password hasher whose work factor comes from settings."""

from django.conf import settings
from django.contrib.auth.hashers import PBKDF2PasswordHasher


class ConfigurablePBKDF2PasswordHasher(PBKDF2PasswordHasher):
    """
    PBKDF2-SHA256 with PASSWORD_HASH_ITERATIONS rounds.

    Keeps the stock algorithm name, so existing hashes verify and are
    upgraded on login when the setting changes.
    """

    @property
    def iterations(self):
        return getattr(settings, "PASSWORD_HASH_ITERATIONS", None) or PBKDF2PasswordHasher.iterations
