"""OTP mail delivery through Resend."""
import logging

import resend

import config

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Password Reset OTP - Ecommerce App"


def otp_email_html(otp: str) -> str:
    return (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        "<h2>Password Reset Request</h2>"
        "<p>You have requested to reset your password for your Ecommerce App account.</p>"
        f"<h3 style=\"letter-spacing: 3px;\">{otp}</h3>"
        f"<p>This OTP is valid for {config.OTP_TTL_MINUTES} minutes. Please do not share this code with anyone.</p>"
        "<p>If you didn't request this password reset, please ignore this email.</p>"
        "</div>"
    )


def send_otp_email(email: str, otp: str) -> bool:
    """
    Send the reset OTP. Returns False instead of raising: callers must not
    reveal delivery problems to the requester.
    """
    if not config.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set, OTP email to %s skipped", email)
        return False
    resend.api_key = config.RESEND_API_KEY
    payload = {
        "from": config.EMAIL_FROM,
        "to": [email],
        "subject": OTP_SUBJECT,
        "html": otp_email_html(otp),
    }
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.error("OTP email to %s failed: %s", email, exc)
        return False
    logger.info("OTP email sent to %s (%s)", email, (response or {}).get("id"))
    return True
