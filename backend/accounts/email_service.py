# accounts/email_service.py
"""
Email service for staffdesk.

Handles:
- Password setup codes for newly provisioned company admins
- Staff invitations
- Password reset codes

All emails are sent from DEFAULT_FROM_EMAIL. Every function returns True
when the message was handed to the mail backend and False otherwise;
failures are logged, never raised.
"""

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def send_email(recipient: str, subject: str, body: str) -> bool:
    try:
        send_mail(
            subject=subject,
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
            fail_silently=False,
        )
        logger.info("email_sent", extra={"recipient": recipient, "subject": subject})
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {recipient}: {e}", extra={"recipient": recipient, "subject": subject})
        return False


def _context(user, otp: str, **extra) -> dict:
    context = {
        "user": user,
        "user_name": user.first_name or user.email.split("@")[0],
        "otp": otp,
        "expiry_minutes": getattr(settings, "OTP_EXPIRY_MINUTES", 60),
        "frontend_url": settings.FRONTEND_URL,
    }
    context.update(extra)
    return context


def send_company_admin_welcome_email(user, company, otp: str) -> bool:
    """Sent when a company is created and its contact person gets an account."""
    body = render_to_string(
        "emails/company_admin_welcome.txt",
        _context(user, otp, company=company, setup_url=f"{settings.FRONTEND_URL}/set-password"),
    )
    return send_email(user.email, f"Your {company.name} administrator account", body)


def send_staff_invitation_email(user, company, otp: str) -> bool:
    body = render_to_string(
        "emails/staff_invitation.txt",
        _context(user, otp, company=company, setup_url=f"{settings.FRONTEND_URL}/set-password"),
    )
    return send_email(user.email, f"You have been added to {company.name}", body)


def send_password_reset_email(user, otp: str) -> bool:
    body = render_to_string(
        "emails/password_reset.txt",
        _context(user, otp, reset_url=f"{settings.FRONTEND_URL}/reset-password"),
    )
    return send_email(user.email, "Your password reset code", body)
