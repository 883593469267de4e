# accounts/passwords.py
"""
One-time codes for password setup and reset.

Codes are 6 uppercase hex characters, stored only as a password hash
with an expiry (OTP_EXPIRY_MINUTES). Issuing a new code replaces the
previous one, so at most one code per user is valid at any time.
"""

import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import check_password, make_password
from django.utils import timezone

from store.repository import Update, run_transaction

User = get_user_model()

OTP_BYTES = 3


def generate_otp() -> str:
    return secrets.token_hex(OTP_BYTES).upper()


def otp_expiry():
    return timezone.now() + timedelta(minutes=getattr(settings, "OTP_EXPIRY_MINUTES", 60))


def otp_fields(otp: str) -> dict:
    """Model values storing a freshly generated code."""
    return {"otp_hash": make_password(otp), "otp_expires_at": otp_expiry()}


def issue_password_otp(user) -> str:
    """Generate a code, store its hash on the user, return the raw code."""
    otp = generate_otp()
    run_transaction([
        Update("user", User, {"pk": user.pk}, otp_fields(otp)),
    ])
    return otp


def verify_otp(user, otp: str) -> bool:
    if not otp or not user.otp_hash or user.otp_expires_at is None:
        return False
    if user.otp_expires_at < timezone.now():
        return False
    return check_password(otp.strip().upper(), user.otp_hash)
