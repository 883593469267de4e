# accounts/throttles.py
"""
Rate limiting classes for the public auth endpoints.

These throttles protect against:
- Bot signups
- Brute force attacks (login)
- Reset code flooding and email enumeration (password reset)
"""

from rest_framework.throttling import AnonRateThrottle


class SignupThrottle(AnonRateThrottle):
    """
    Rate limit self-registration.

    Configured via settings.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['signup']
    """
    scope = 'signup'


class LoginThrottle(AnonRateThrottle):
    """
    Rate limit login attempts per IP.

    Configured via settings.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['login']
    """
    scope = 'login'


class PasswordResetThrottle(AnonRateThrottle):
    """Both reset steps: requesting a code and confirming it."""
    scope = 'password_reset'
